"""Configuration loading for the ledger datastore.

Values come from ``config.yaml`` and are overlaid by environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml

from datastore_shared.constants import (
    CFG_FILE_EXTENSION,
    CFG_FILES_PER_PARTITION,
    CFG_LEDGERS_PER_FILE,
    CFG_UNGROUPED,
)

from .logging_config import log

# Environment variable -> key below ``datastore``
_ENV_DATASTORE = {
    "DATASTORE_URL": "url",
    "DATASTORE_BUCKET": "bucket",
    "DATASTORE_USER": "user",
    "DATASTORE_PASSWORD": "password",
    "DATASTORE_PREFIX": "prefix",
}

# Environment variable -> key below ``datastore.schema``
_ENV_SCHEMA = {
    "LEDGERS_PER_FILE": CFG_LEDGERS_PER_FILE,
    "FILES_PER_PARTITION": CFG_FILES_PER_PARTITION,
    "FILE_EXTENSION": CFG_FILE_EXTENSION,
    "UNGROUPED": CFG_UNGROUPED,
}

_TRUE_STRINGS = {"1", "true", "yes", "on"}


def set_config(path: str | Path | None = None) -> dict:
    """Build configuration from config.yaml overlaid with environment variables.

    Args:
        path: Optional config file location; defaults to ``config.yaml`` in the
            working directory.

    Returns:
        dict: Configuration map derived from the file and environment.
    """
    path = Path(path) if path is not None else Path("config.yaml")
    cfg: dict = {}

    # First, load config from the YAML file if it exists
    try:
        if path.exists():
            with path.open("r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
            if not isinstance(data, dict):
                log.warning("Config file %s does not contain a mapping", path)
            else:
                cfg.update(data)
    except (OSError, yaml.YAMLError) as exc:
        log.warning("Failed to load config from %s: %s", path, exc)

    # Environment variables override config.yaml values
    for env_name, key in _ENV_DATASTORE.items():
        value = os.getenv(env_name)
        if value:
            _section(cfg, "datastore")[key] = value

    for env_name, key in _ENV_SCHEMA.items():
        value = os.getenv(env_name)
        if value:
            _section(_section(cfg, "datastore"), "schema")[key] = value

    # UNGROUPED alone is enough; it replaces any ledgers_per_file from config.yaml
    if os.getenv("UNGROUPED", "").strip().lower() in _TRUE_STRINGS and not os.getenv("LEDGERS_PER_FILE"):
        _section(_section(cfg, "datastore"), "schema")[CFG_LEDGERS_PER_FILE] = 0

    datastore_cfg = cfg.get("datastore")
    if isinstance(datastore_cfg, dict):
        url = datastore_cfg.get("url")
        if isinstance(url, str):
            normalized = normalize_url(url)
            if normalized != url:
                datastore_cfg["url"] = normalized
                log.info("Normalized datastore.url to %s", normalized)

    log.info("Configuration loaded: %s", mask_sensitive(cfg))
    return cfg


def normalize_url(url: str) -> str:
    """Prefix an endpoint URL with ``https://`` when it has no scheme."""
    trimmed_url = url.strip()
    if trimmed_url and not trimmed_url.startswith(("http://", "https://")):
        return f"https://{trimmed_url}"
    return trimmed_url


def _section(cfg: dict, name: str) -> dict:
    section = cfg.get(name)
    if not isinstance(section, dict):
        section = {}
        cfg[name] = section
    return section


def mask_sensitive(data):
    """Return a copy of config data with sensitive values masked."""
    if isinstance(data, dict):
        return {k: _mask_sensitive_value(k, v) for k, v in data.items()}
    if isinstance(data, list):
        return [mask_sensitive(item) for item in data]
    return data


def _mask_sensitive_value(key: str, value):
    if isinstance(value, dict):
        return mask_sensitive(value)
    if isinstance(value, list):
        return [_mask_sensitive_value(key, item) for item in value]
    if isinstance(value, str) and _is_sensitive_key(key):
        if len(value) <= 6:
            return f"{value[:1]}***{value[-1:]}"
        return f"{value[:3]}***{value[-3:]}"
    return value


def _is_sensitive_key(key: str) -> bool:
    key_lower = str(key).lower()
    return any(token in key_lower for token in ("password", "secret", "token", "key"))


__all__ = ["set_config", "normalize_url", "mask_sensitive"]
