"""Runtime settings: YAML file plus environment overrides."""

from vending_config.loader import load_settings
from vending_config.schema import (
    AppSettings,
    ArchiveSettings,
    DatabaseSettings,
    IngestionSettings,
    ReconciliationSettings,
)

__all__ = [
    "load_settings",
    "AppSettings",
    "ArchiveSettings",
    "DatabaseSettings",
    "IngestionSettings",
    "ReconciliationSettings",
]
