"""
Row normalizer: one spreadsheet row -> NormalizedRow | SkippedRow | FailedRow.

ZERO I/O. The machine lookup is passed in already built (once per import),
so normalizing a row never touches the database.

Policy:
    - Payment resource that is neither cash nor card -> skipped.
    - Empty machine code -> skipped.
    - Unparsable price -> 0.00 (the row is kept).
    - Unparsable order date -> failed; the row cannot be reconciled.
    - Unknown machine code -> kept with machine_id None.
Any unexpected exception while handling a row becomes a FailedRow for that
row; it never escapes to the import loop.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, tzinfo
from decimal import Decimal
from typing import Any, Mapping, Sequence
from uuid import UUID

from openpyxl.utils.datetime import from_excel

from vending_kernel.domain.values import MONEY_LIMIT, round_money
from vending_kernel.domain.timezone import BUSINESS_TZ, localize
from vending_kernel.models.sales_order import PaymentMethod, PaymentStatus

from vending_ingestion.domain.types import (
    ColumnMap,
    FailedRow,
    NormalizedRow,
    RowOutcome,
    SalesRecord,
    SkippedRow,
    SkipReason,
)

_CASH_MARKERS = ("наличн", "cash")
_CARD_MARKERS = ("таможен", "карт", "card", "qr")
_REFUND_MARKERS = ("возвращ", "refund")

_PRICE_NOISE_RE = re.compile(r"[^\d.\-]")
_LEADING_NUMBER_RE = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")

# Tried in order after ISO-8601
_DATE_FORMATS = (
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
)


def _text(value: Any) -> str | None:
    """Cell as stripped text; integral floats lose their ``.0``."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    s = str(value).strip()
    return s or None


def parse_payment_method(value: Any) -> PaymentMethod | None:
    """Map payment-resource text to a payment method; None means unmapped."""
    text = (_text(value) or "").lower()
    if any(marker in text for marker in _CASH_MARKERS):
        return PaymentMethod.CASH
    if any(marker in text for marker in _CARD_MARKERS):
        return PaymentMethod.CARD
    return None


def parse_payment_status(value: Any) -> PaymentStatus:
    text = (_text(value) or "").lower()
    if any(marker in text for marker in _REFUND_MARKERS):
        return PaymentStatus.REFUNDED
    return PaymentStatus.PAID


def parse_price(value: Any) -> Decimal:
    """
    Price as a 2-decimal Decimal, rounded half away from zero.

    Text has every character except digits, ``.`` and ``-`` removed and the
    leading number is taken ("15 000 сум" -> 15000.00). Anything unparsable
    is 0.00, and so is a value too large for the price column (13 integer
    digits) or not finite. parse_price(parse_price(x)) == parse_price(x).
    """
    if value is None or isinstance(value, bool):
        return round_money(0)
    if isinstance(value, (int, float, Decimal)):
        raw: Any = value
    else:
        match = _LEADING_NUMBER_RE.match(_PRICE_NOISE_RE.sub("", str(value)))
        if match is None:
            return round_money(0)
        raw = match.group(0)
    try:
        price = round_money(raw)
    except ValueError:
        # Beyond Decimal precision or infinite
        return round_money(0)
    if not price.is_finite() or abs(price) >= MONEY_LIMIT:
        return round_money(0)
    return price


def parse_order_date(value: Any, tz: tzinfo = BUSINESS_TZ) -> datetime:
    """
    Order timestamp as aware UTC; naive values are business-local time.

    Raises:
        ValueError: value is empty or not a recognizable date.
    """
    if isinstance(value, datetime):
        return localize(value, tz)
    if isinstance(value, date):
        return localize(datetime.combine(value, time.min), tz)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Date cell without a date number format: Excel serial day number
        return localize(from_excel(value), tz)

    text = _text(value)
    if text is None:
        raise ValueError("order date is empty")
    try:
        return localize(datetime.fromisoformat(text.replace("Z", "+00:00")), tz)
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return localize(datetime.strptime(text, fmt), tz)
        except ValueError:
            continue
    raise ValueError(f"unrecognized date {text!r}")


def _cell(values: Sequence[Any], column: int) -> Any:
    index = column - 1
    if 0 <= index < len(values):
        return values[index]
    return None


def normalize_row(
    values: Sequence[Any],
    row_number: int,
    columns: ColumnMap,
    machine_lookup: Mapping[str, UUID],
    batch_id: str,
    tz: tzinfo = BUSINESS_TZ,
) -> RowOutcome:
    """Normalize one data row. Never raises."""
    try:
        resource = _cell(values, columns.payment_resource)
        method = parse_payment_method(resource)
        if method is None:
            return SkippedRow(row_number, SkipReason.PAYMENT_RESOURCE, str(resource or ""))

        machine_code = _text(_cell(values, columns.machine_code))
        if machine_code is None:
            return SkippedRow(row_number, SkipReason.MACHINE_CODE)

        raw_date = _cell(values, columns.order_date)
        try:
            order_date = parse_order_date(raw_date, tz)
        except ValueError:
            return FailedRow(row_number, f"Row {row_number}: invalid order date {raw_date!r}")

        machine_id = machine_lookup.get(machine_code.lower())
        record = SalesRecord(
            order_number=_text(_cell(values, columns.order_number)),
            product_name=_text(_cell(values, columns.product)),
            flavor=_text(_cell(values, columns.flavor)),
            payment_method=method.value,
            payment_status=parse_payment_status(_cell(values, columns.payment_status)).value,
            machine_code=machine_code,
            machine_id=machine_id,
            address=_text(_cell(values, columns.address)),
            price=parse_price(_cell(values, columns.price)),
            order_date=order_date,
            import_batch_id=batch_id,
        )
        return NormalizedRow(row_number, record, machine_resolved=machine_id is not None)
    except Exception as exc:  # noqa: BLE001
        return FailedRow(row_number, f"Row {row_number}: {exc}")
