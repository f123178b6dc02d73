import logging
from gettext import gettext as _

import cv2

from review_annotation.core.annotation import AnnotationSet
from review_annotation.interfaces import render_annotations
from review_annotation.utils.config import load_config

logger = logging.getLogger(__name__)


def handle(args):
    cfg = load_config(args.config)

    image = cv2.imread(str(args.image), cv2.IMREAD_COLOR)
    if image is None:
        raise SystemExit(_("Cannot read image {path}").format(path=args.image))

    annotation_set = AnnotationSet.deserialize(args.payload.read_text(encoding="utf-8"))
    logger.info(
        _("Rendering {count} annotations over {path}").format(
            count=len(annotation_set), path=args.image
        )
    )
    vis = render_annotations(
        image,
        annotation_set,
        thickness_scale=float(cfg.render.thickness_scale),
        arrow_tip_length=float(cfg.render.arrow_tip_length),
    )
    args.output.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(args.output), vis):
        raise SystemExit(_("Cannot write image {path}").format(path=args.output))
