"""Engine configuration loaded from ``config/engine.yaml``."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .errors import ConfigError

CONFIG_ENV_VAR = "VOUCHER_RULES_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config" / "engine.yaml"


def config_path() -> Path:
    override = os.getenv(CONFIG_ENV_VAR)
    return Path(override) if override else DEFAULT_CONFIG_PATH


def _validate(data: Dict[str, Any]) -> None:
    """Check that the sections the engine reads are present and well-typed."""
    missing: List[str] = []
    publications = data.get("publications")
    qualification = data.get("qualification")
    if not isinstance(publications, dict):
        missing.append("publications")
    else:
        if not isinstance(publications.get("sort_keys"), dict):
            missing.append("publications.sort_keys")
        if not isinstance(publications.get("default_order"), str):
            missing.append("publications.default_order")
    if not isinstance(qualification, dict):
        missing.append("qualification")
    else:
        if not isinstance(qualification.get("audience_rule_prefixes"), list):
            missing.append("qualification.audience_rule_prefixes")
        for key in ("default_limit", "max_limit"):
            if not isinstance(qualification.get(key), int):
                missing.append(f"qualification.{key}")
    if missing:
        raise ConfigError(f"Engine config missing or invalid keys: {', '.join(missing)}")


@lru_cache(maxsize=1)
def load_engine_config() -> Dict[str, Any]:
    """Load and validate the engine configuration (cached; see ``reload_config``)."""
    path = config_path()
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found at {path}")
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Engine config must be a mapping: {path}")
    _validate(raw)
    return raw


def reload_config() -> None:
    load_engine_config.cache_clear()


def publication_sort_keys() -> Dict[str, str]:
    return dict(load_engine_config()["publications"]["sort_keys"])


def publication_default_order() -> str:
    return load_engine_config()["publications"]["default_order"]


def audience_rule_prefixes() -> frozenset:
    return frozenset(load_engine_config()["qualification"]["audience_rule_prefixes"])


def qualification_limits() -> Dict[str, int]:
    section = load_engine_config()["qualification"]
    return {"default": section["default_limit"], "max": section["max_limit"]}


__all__ = [
    "CONFIG_ENV_VAR",
    "audience_rule_prefixes",
    "config_path",
    "load_engine_config",
    "publication_default_order",
    "publication_sort_keys",
    "qualification_limits",
    "reload_config",
]
