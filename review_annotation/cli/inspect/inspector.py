import json
import logging
from gettext import gettext as _

from review_annotation.core.annotation import AnnotationSet, Viewport
from review_annotation.core.annotation.shapes import annotation_to_dict
from review_annotation.core.annotation.utils import (
    compute_annotation_statistics,
    outline_pixels,
)
from review_annotation.core.errors import Malformed
from review_annotation.utils.misc import try_tqdm

logger = logging.getLogger(__name__)


def describe(annotation_set: AnnotationSet, viewport=None):
    """One printable record per annotation."""
    for annotation in annotation_set:
        record = annotation_to_dict(annotation)
        if viewport is not None:
            record["pixels"] = outline_pixels(annotation, viewport).round(2).tolist()
        yield record


def handle(args):
    viewport = Viewport(*args.size) if args.size is not None else None
    failed = 0
    for path in try_tqdm(args.payloads, desc=_("Payloads")):
        try:
            annotation_set = AnnotationSet.deserialize(path.read_text(encoding="utf-8"))
        except Malformed as e:
            logger.error(_("Cannot decode {path}: {error}").format(path=path, error=e))
            failed += 1
            continue

        stats = compute_annotation_statistics(annotation_set)
        print(f"{path}: {json.dumps(stats)}")
        for record in describe(annotation_set, viewport):
            print("  " + json.dumps(record, ensure_ascii=False))

    if failed:
        raise SystemExit(1)
