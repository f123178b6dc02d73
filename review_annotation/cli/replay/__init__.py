from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Feed recorded pointer events through a drawing session")


def command(subparser):
    subparser.add_argument(
        "events", type=Path, help=_("JSON list of pointer events")
    )
    subparser.add_argument("output", type=Path, help=_("Where to write the payload"))

    def handle(args):
        from .replayer import handle as replayer_handle

        replayer_handle(args)

    return handle
