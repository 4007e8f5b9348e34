"""
Settings loader (``vending_config.loader``).

Responsibility
--------------
Reads an optional YAML settings file and applies environment overrides,
producing a frozen ``AppSettings``.

Resolution order (later wins)
-----------------------------
1. Dataclass defaults.
2. YAML file: ``path`` argument, else ``$VENDING_CONFIG``; a missing file
   named by the environment is an error, no file at all is not.
3. ``$DATABASE_URL`` and ``$BUSINESS_UTC_OFFSET_HOURS``.

Failure modes
-------------
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section/key or an out-of-range value -> ``ConfigurationError``.
"""

from __future__ import annotations

import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Mapping

import yaml

from vending_kernel.exceptions import ConfigurationError

from vending_config.schema import (
    AppSettings,
    ArchiveSettings,
    DatabaseSettings,
    IngestionSettings,
    ReconciliationSettings,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "ingestion": IngestionSettings,
    "reconciliation": ReconciliationSettings,
    "archive": ArchiveSettings,
}

_POSITIVE_INTS = (
    "ingestion.chunk_size",
    "ingestion.max_client_errors",
    "ingestion.max_logged_errors",
    "ingestion.skip_log_limit",
    "database.pool_size",
    "archive.max_workers",
)


def _load_yaml(path: Path) -> dict[str, Any]:
    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def _build_section(name: str, cls: type, raw: Any) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(name, "section must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(f"{name}.{unknown[0]}", "unknown setting")
    return cls(**raw)


def _override(sections: dict[str, Any], name: str, key: str, value: Any) -> None:
    current = sections[name]
    if current is None:
        current = {}
    if not isinstance(current, dict):
        raise ConfigurationError(name, "section must be a mapping")
    sections[name] = {**current, key: value}


def _validate(settings: AppSettings) -> None:
    for dotted in _POSITIVE_INTS:
        section, key = dotted.split(".")
        value = getattr(getattr(settings, section), key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ConfigurationError(dotted, f"must be a positive integer, got {value!r}")
    offset = settings.reconciliation.utc_offset_hours
    if not isinstance(offset, (int, float)) or not -14 <= offset <= 14:
        raise ConfigurationError(
            "reconciliation.utc_offset_hours", f"must be between -14 and 14, got {offset!r}"
        )
    if not settings.database.url:
        raise ConfigurationError("database.url", "must not be empty")


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AppSettings:
    """Load settings from YAML (optional) plus environment overrides."""
    env = os.environ if environ is None else environ

    raw: dict[str, Any] = {}
    if path is None and env.get("VENDING_CONFIG"):
        path = env["VENDING_CONFIG"]
    if path is not None:
        raw = _load_yaml(Path(path))

    unknown = sorted(set(raw) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(unknown[0], "unknown settings section")

    sections: dict[str, Any] = {name: raw.get(name) for name in _SECTIONS}

    if env.get("DATABASE_URL"):
        _override(sections, "database", "url", env["DATABASE_URL"])
    if env.get("BUSINESS_UTC_OFFSET_HOURS"):
        try:
            offset = float(env["BUSINESS_UTC_OFFSET_HOURS"])
        except ValueError as exc:
            raise ConfigurationError("BUSINESS_UTC_OFFSET_HOURS", "must be a number") from exc
        _override(sections, "reconciliation", "utc_offset_hours", offset)

    settings = AppSettings(
        **{name: _build_section(name, cls, sections[name]) for name, cls in _SECTIONS.items()}
    )
    _validate(settings)
    return settings
