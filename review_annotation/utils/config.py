"""
Configuration tree for drawing, erasing and rendering defaults.

Defaults live here; the environment (``REVIEW_<SECTION>__<KEY>``) and an
optional JSON file can override them.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from easydict import EasyDict as edict

from .env import load_cfg_from_env

logger = logging.getLogger(__name__)

DEFAULTS = {
    "drawing": {
        "color": "#ffff00",
        "stroke_width": 2,
        # One freehand sample per animation frame
        "frame_interval": 1.0 / 60.0,
    },
    "eraser": {
        "radius": 20.0,
    },
    "render": {
        "thickness_scale": 1.0,
        "arrow_tip_length": 0.15,
    },
}


def _merge(cfg: edict, overrides: Dict):
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(cfg.get(key), dict):
            _merge(cfg[key], value)
        else:
            cfg[key] = value
    return cfg


def load_config(
    path: Optional[Path] = None, env: Optional[Dict[str, str]] = None
) -> edict:
    """
    Build the configuration tree.

    Args:
        path: Optional JSON file with overrides
        env: Environment mapping, defaults to ``os.environ``

    Returns:
        EasyDict with every section of ``DEFAULTS``
    """
    cfg = edict(copy.deepcopy(DEFAULTS))
    if path is not None:
        logger.debug(f"Loading configuration overrides from {path}")
        with Path(path).open("r", encoding="utf-8") as f:
            _merge(cfg, json.load(f))
    return load_cfg_from_env(cfg, os.environ if env is None else env)
