from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Draw an annotation payload over an image")


def command(subparser):
    subparser.add_argument("image", type=Path)
    subparser.add_argument("payload", type=Path)
    subparser.add_argument("output", type=Path)

    def handle(args):
        from .renderer import handle as renderer_handle

        renderer_handle(args)

    return handle
