from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Decode annotation payloads and list their shapes")


def parse_size(value: str):
    width, _sep, height = value.lower().partition("x")
    return float(width), float(height)


def command(subparser):
    subparser.add_argument("payloads", type=Path, nargs="+")
    subparser.add_argument(
        "-s",
        "--size",
        dest="size",
        type=parse_size,
        default=None,
        help=_("Also print pixel coordinates for a WIDTHxHEIGHT view"),
    )

    def handle(args):
        from .inspector import handle as inspector_handle

        inspector_handle(args)

    return handle
