"""
Typed exception hierarchy for the vending sales kernel.

Every error has a typed class (catch by type, not message) and a ``code``
class attribute (machine-readable, API-safe). Exceptions carry structured
data as attributes so the JSON log formatter can emit them.

    VendingKernelError (base)
    |
    +-- IngestionError
    |   +-- SpreadsheetStructureError
    |
    +-- PersistenceError
    |   +-- UnsupportedDialectError
    |
    +-- ConfigurationError

Row-level problems during import (unparsable dates, unknown payment
resources, empty machine codes) are NOT exceptions: they are returned as
row outcomes and summarized. Only structural problems abort an import.
"""


class VendingKernelError(Exception):
    """
    Base exception for all vending kernel errors.

    All subclasses must have a ``code`` class attribute
    for machine-readable error identification.
    """

    code: str = "VENDING_KERNEL_ERROR"


# Ingestion


class IngestionError(VendingKernelError):
    """Base exception for spreadsheet ingestion errors."""

    code: str = "INGESTION_ERROR"


class SpreadsheetStructureError(IngestionError):
    """The uploaded file has no readable worksheet."""

    code: str = "SPREADSHEET_STRUCTURE"

    def __init__(self, reason: str, file_name: str | None = None):
        self.reason = reason
        self.file_name = file_name
        where = f" ({file_name})" if file_name else ""
        super().__init__(f"Spreadsheet is not readable{where}: {reason}")


# Persistence


class PersistenceError(VendingKernelError):
    """Base exception for persistence-layer errors."""

    code: str = "PERSISTENCE_ERROR"


class UnsupportedDialectError(PersistenceError):
    """Duplicate-safe insert is not available for this database backend."""

    code: str = "UNSUPPORTED_DIALECT"

    def __init__(self, dialect: str):
        self.dialect = dialect
        super().__init__(
            f"Insert-or-ignore is not supported for dialect {dialect!r}; "
            "use postgresql or sqlite"
        )


# Configuration


class ConfigurationError(VendingKernelError):
    """Settings file or environment contains an invalid value."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, message: str):
        self.key = key
        super().__init__(f"Invalid setting {key!r}: {message}")
