"""
Header detection: map semantic sales fields to spreadsheet columns.

POS exports arrive with renamed, reordered and partly missing headers, in
Russian or English. HEADER_PATTERNS is a plain rule table: for each field,
an ordered tuple of lower-case substrings. For each field the header cells
are scanned left to right and the first cell containing any pattern wins.

If a critical field cannot be found, nothing that was detected is trusted and
the whole DEFAULT_COLUMNS layout (the primary known export format) is used.
A partial map never leaves this module.
"""

from __future__ import annotations

from typing import Any, Sequence

from vending_kernel.logging_config import get_logger

from vending_ingestion.adapters.xlsx_adapter import normalize_header_cell
from vending_ingestion.domain.types import ColumnDetection, ColumnMap

logger = get_logger("ingestion.columns")

HEADER_PATTERNS: dict[str, tuple[str, ...]] = {
    "order_number": ("номер заказ", "№ заказ", "order number", "order_number", "номер", "заказ №"),
    "product": ("продукт", "товар", "product", "напиток", "наименование"),
    "flavor": ("вкус", "flavor", "добавка"),
    "payment_resource": (
        "ресурс оплат",
        "оплат",
        "payment resource",
        "способ оплат",
        "метод оплат",
        "тип оплат",
    ),
    "payment_status": ("статус оплат", "payment status", "статус платеж"),
    "machine_code": (
        "код автомат",
        "код аппарат",
        "machine code",
        "машин",
        "автомат",
        "аппарат",
        "код устройства",
    ),
    "address": ("адрес", "address", "расположение", "локация"),
    "price": ("цена", "сумма", "стоимость", "price", "amount"),
    "order_date": ("дата заказ", "дата продаж", "order date", "дата", "date"),
}

DEFAULT_COLUMNS = ColumnMap(
    order_number=1,
    product=3,
    flavor=4,
    payment_resource=5,
    payment_status=7,
    machine_code=9,
    address=10,
    price=11,
    order_date=13,
)

CRITICAL_FIELDS: tuple[str, ...] = ("payment_resource", "machine_code", "price", "order_date")


def _find_column(headers: Sequence[str], patterns: tuple[str, ...]) -> int | None:
    for index, text in enumerate(headers, start=1):
        if not text:
            continue
        for pattern in patterns:
            if pattern in text:
                return index
    return None


def detect_columns(header_row: Sequence[Any]) -> ColumnDetection:
    """
    Resolve a complete ColumnMap from the header row's cell values.

    Returns:
        ColumnDetection whose ``columns`` is either the detected layout with
        per-field defaults for undetected non-critical fields, or
        DEFAULT_COLUMNS unchanged when any critical field was not found.
    """
    headers = [normalize_header_cell(v) for v in header_row]

    detected: dict[str, int] = {}
    for field_name, patterns in HEADER_PATTERNS.items():
        index = _find_column(headers, patterns)
        if index is not None:
            detected[field_name] = index

    missing_critical = tuple(f for f in CRITICAL_FIELDS if f not in detected)
    if missing_critical:
        logger.warning(
            "column_detection_fallback",
            extra={
                "missing_fields": list(missing_critical),
                "detected": detected,
                "headers": headers,
            },
        )
        return ColumnDetection(
            columns=DEFAULT_COLUMNS,
            detected=detected,
            missing_critical=missing_critical,
            used_defaults=ColumnMap.field_names(),
        )

    defaults = DEFAULT_COLUMNS.as_dict()
    used_defaults = tuple(f for f in ColumnMap.field_names() if f not in detected)
    merged = {name: detected.get(name, defaults[name]) for name in ColumnMap.field_names()}
    return ColumnDetection(
        columns=ColumnMap(**merged),
        detected=detected,
        used_defaults=used_defaults,
    )
