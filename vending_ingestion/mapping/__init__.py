"""Header detection and row normalization (pure)."""

from vending_ingestion.mapping.columns import (
    CRITICAL_FIELDS,
    DEFAULT_COLUMNS,
    HEADER_PATTERNS,
    detect_columns,
)
from vending_ingestion.mapping.normalizer import (
    normalize_row,
    parse_order_date,
    parse_payment_method,
    parse_payment_status,
    parse_price,
)

__all__ = [
    "CRITICAL_FIELDS",
    "DEFAULT_COLUMNS",
    "HEADER_PATTERNS",
    "detect_columns",
    "normalize_row",
    "parse_order_date",
    "parse_payment_method",
    "parse_payment_status",
    "parse_price",
]
