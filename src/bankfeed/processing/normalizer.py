"""Conversion of parsed rows into canonical transactions.

Each step (amount, currency, dates, void flag, checksum) can fail on its
own; a record is emitted only when every step succeeds.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from datetime import date, datetime
from decimal import ROUND_DOWN, Decimal, InvalidOperation, localcontext

from dateutil import parser as date_parser

from bankfeed.core.currencies import is_iso4217
from bankfeed.core.errors import (
    InvalidAmount,
    InvalidCurrency,
    InvalidDate,
    MissingValue,
    NormalizationError,
)
from bankfeed.core.models import NormalizedBankTransaction
from bankfeed.ingestion.base import RawRecord
from bankfeed.ingestion.profiles import CsvProfile
from bankfeed.processing.checksum import compute_checksum


logger = logging.getLogger(__name__)

_AMOUNT_RE = re.compile(r"^(?:\d+(?:\.\d*)?|\.\d+)$")
_CURRENCY_SYMBOLS = "$€£¥₹"
_TRUTHY = {"true", "t", "1", "yes", "y", "void", "voided"}
_MIN_MINOR = -(2**63)
_MAX_MINOR = 2**63 - 1


def parse_amount(raw: str | None, factor: int) -> int:
    """Parse a textual amount into signed integer minor units.

    Handles a leading sign, surrounding parentheses (negative), a leading
    currency symbol and thousands separators. Fractions finer than the
    factor are truncated toward zero. The result must fit a signed 64-bit
    integer.

    Raises:
        InvalidAmount: empty, non-numeric, malformed or out-of-range amount
    """
    if raw is None:
        raise InvalidAmount("amount is missing")
    s = raw.strip()
    if not s:
        raise InvalidAmount("amount is empty")

    negative = False
    # Strip sign, currency symbol and parentheses in any order until stable
    while True:
        changed = False
        if s.startswith("+"):
            s = s[1:].lstrip()
            changed = True
        elif s.startswith("-"):
            negative = True
            s = s[1:].lstrip()
            changed = True
        if s and s[0] in _CURRENCY_SYMBOLS:
            s = s[1:].lstrip()
            changed = True
        if s.startswith("(") and s.endswith(")") and len(s) >= 2:
            negative = True
            s = s[1:-1].strip()
            changed = True
        if not changed:
            break

    s = s.replace(",", "")
    if not _AMOUNT_RE.match(s):
        raise InvalidAmount(f"invalid amount {raw!r}")

    # Exact arithmetic: the default 28-digit context would round long inputs
    with localcontext() as ctx:
        ctx.prec = len(s) + len(str(factor)) + 2
        try:
            scaled = Decimal(s) * factor
        except InvalidOperation as exc:
            raise InvalidAmount(f"invalid amount {raw!r}") from exc
        minor = int(scaled.to_integral_value(rounding=ROUND_DOWN))
    if negative:
        minor = -minor
    if not _MIN_MINOR <= minor <= _MAX_MINOR:
        raise InvalidAmount(f"amount {raw!r} out of range")
    return minor


def parse_date(raw: str | None, profile: CsvProfile) -> date:
    """Parse a date with the profile's format; ``auto`` profiles parse leniently.

    Raises:
        InvalidDate: empty or unparseable value
    """
    value = (raw or "").strip()
    if not value:
        raise InvalidDate("date is empty")

    if profile.strptime_format is None:
        try:
            return date_parser.parse(value, dayfirst=profile.day_first).date()
        except (ValueError, OverflowError) as exc:
            raise InvalidDate(f"invalid date {value!r}: {exc}") from exc

    try:
        return datetime.strptime(value, profile.strptime_format).date()
    except ValueError as exc:
        raise InvalidDate(
            f"invalid date {value!r} for format {profile.date_format!r}"
        ) from exc


def parse_void(raw: str | None) -> bool:
    return (raw or "").strip().lower() in _TRUTHY


def _resolve_amount(record: RawRecord, profile: CsvProfile) -> int:
    factor = profile.amount_minor_factor
    if profile.maps("amount"):
        amount = parse_amount(record.get("amount"), factor)
    else:
        # Split columns: credits flow in, debits flow out
        debit_raw = record.get("debit").strip()
        credit_raw = record.get("credit").strip()
        if not debit_raw and not credit_raw:
            raise InvalidAmount("debit and credit are both empty")
        debit = abs(parse_amount(debit_raw, factor)) if debit_raw else 0
        credit = abs(parse_amount(credit_raw, factor)) if credit_raw else 0
        amount = credit - debit
    if profile.invert_sign:
        amount = -amount
    if not _MIN_MINOR <= amount <= _MAX_MINOR:
        raise InvalidAmount(f"amount {amount} minor units out of range")
    return amount


def _resolve_currency(record: RawRecord, profile: CsvProfile) -> str:
    currency = (record.get("currency").strip() or profile.default_currency or "").upper()
    if not is_iso4217(currency):
        raise InvalidCurrency(f"invalid ISO-4217 currency code {currency!r}")
    return currency


def synthesize_transaction_id(checksum: str, line_number: int) -> str:
    """Deterministic id for records whose source carries none."""
    return f"syn-{checksum[:16]}-{line_number}"


def normalize(record: RawRecord, profile: CsvProfile) -> NormalizedBankTransaction:
    """Convert one parsed row into a ``NormalizedBankTransaction``.

    Raises:
        NormalizationError: any step failed; ``line_number`` is set from
            the record
    """
    try:
        amount_minor = _resolve_amount(record, profile)
        currency = _resolve_currency(record, profile)

        posted_date = parse_date(record.get("posted_date"), profile)
        if record.get("transaction_date").strip():
            transaction_date = parse_date(record.get("transaction_date"), profile)
        else:
            transaction_date = posted_date

        account_id = record.get("account_id").strip()
        if not account_id:
            raise MissingValue("account_id is empty")

        is_void = parse_void(record.get("void"))
        description = record.get("description")

        checksum = record.get("checksum").strip()
        if not checksum:
            checksum = compute_checksum(
                account_id=account_id,
                posted_date=posted_date,
                amount_minor=amount_minor,
                currency=currency,
                description=description,
            )
    except NormalizationError as exc:
        if exc.line_number is None:
            exc.line_number = record.line_number
        raise

    transaction_id = record.get("transaction_id").strip()
    id_synthesized = not transaction_id
    if id_synthesized:
        transaction_id = synthesize_transaction_id(checksum, record.line_number)

    return NormalizedBankTransaction(
        transaction_id=transaction_id,
        account_id=account_id,
        amount_minor=amount_minor,
        currency=currency,
        posted_date=posted_date,
        transaction_date=transaction_date,
        description=description,
        checksum=checksum,
        source_reference=record.get("source_reference").strip() or None,
        is_void=is_void,
        id_synthesized=id_synthesized,
        source=record.source,
        line_number=record.line_number,
    )


def normalize_all(
    records: Iterable[RawRecord], profile: CsvProfile
) -> tuple[list[NormalizedBankTransaction], list[NormalizationError]]:
    """Normalize every record, collecting failures instead of stopping."""
    transactions: list[NormalizedBankTransaction] = []
    failures: list[NormalizationError] = []
    for record in records:
        try:
            transactions.append(normalize(record, profile))
        except NormalizationError as exc:
            logger.debug("Line %s rejected: %s", exc.line_number, exc)
            failures.append(exc)
    return transactions, failures
