import logging
from gettext import gettext as _
from typing import Dict

from easydict import EasyDict as edict

logger = logging.getLogger(__name__)

ENV_PREFIX = "REVIEW_"

_TRUTHY = {"1", "true", "yes", "on"}


def _cast_like(current, value):
    if isinstance(value, str) and current is not None:
        if isinstance(current, bool):
            return value.strip().lower() in _TRUTHY
        if isinstance(current, float):
            return float(value)
        if isinstance(current, int):
            try:
                return int(value)
            except ValueError:
                return float(value)
    return value


def load_cfg_from_env(cfg: edict, env: Dict[str, str], prefix: str = ENV_PREFIX):
    for k, v in env.items():
        if k.startswith(prefix):
            cfgkey = k[len(prefix):].replace("__", ".").lower()
            logger.warning(
                _(
                    "Changing configuration entry from environment variable: {k}={v}"
                ).format(
                    k=cfgkey, v=v
                )  # noqa:E501
            )  # noqa: E501
            *parts, last = cfgkey.split(".")
            this_cfg = cfg
            for part in parts:
                if this_cfg.get(part) is None:
                    this_cfg[part] = edict()
                this_cfg = this_cfg[part]
            this_cfg[last] = _cast_like(this_cfg.get(last), v)
    return cfg
