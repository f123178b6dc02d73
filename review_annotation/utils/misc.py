import importlib.util
import logging
import sys
from pathlib import Path

from tqdm import tqdm

logger = logging.getLogger(__name__)


def incrf(start: int = 1):
    """Infinite counter, one integer per ``next()``."""
    value = start
    while True:
        yield value
        value += 1


def try_tqdm(iterable, **kwargs):
    """Wrap ``iterable`` in a progress bar, silent when stderr is not a tty."""
    kwargs.setdefault("disable", not sys.stderr.isatty())
    return tqdm(iterable, **kwargs)


def load_module(script_path: Path, module_name: str = "module"):
    script_path = Path(script_path)
    search_locations = None
    if script_path.name == "__init__.py":
        search_locations = [str(script_path.parent)]
    spec = importlib.util.spec_from_file_location(
        module_name, str(script_path), submodule_search_locations=search_locations
    )
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module
