# carewatch/core/config_loader.py
from __future__ import annotations

import logging
from typing import Any, Dict
from zoneinfo import ZoneInfo

import yaml

from carewatch.core.errors import ConfigError
from carewatch.core.logging_utils import kv

log = logging.getLogger("carewatch.config")


def load_overrides(path: str, cfg: Any) -> Dict[str, Any]:
    """
    Apply a YAML file of overrides onto the config module.

    Keys are the config names, case-insensitive ("wellness:", "family_members:").
    The WELLNESS mapping is merged, not replaced. Unknown keys are rejected.
    Returns the applied {NAME: value} mapping.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    applied: Dict[str, Any] = {}
    for raw_key, value in data.items():
        name = str(raw_key).upper()
        if not name.isidentifier() or not hasattr(cfg, name):
            raise ConfigError(f"{path}: unknown setting '{raw_key}'")
        if name == "WELLNESS":
            if not isinstance(value, dict):
                raise ConfigError(f"{path}: 'wellness' must be a mapping")
            value = {**cfg.WELLNESS, **value}
        setattr(cfg, name, value)
        applied[name] = value

    if "TIMEZONE" in applied:
        cfg.TZ = ZoneInfo(cfg.TIMEZONE)

    log.info("config.overrides " + kv(path=path, keys=sorted(applied)))
    return applied
