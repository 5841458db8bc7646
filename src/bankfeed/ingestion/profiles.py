"""Provider profiles mapping statement columns onto the canonical schema."""

from __future__ import annotations

import codecs
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    ValidationError,
    model_validator,
)

from bankfeed.core.config import settings
from bankfeed.core.currencies import is_iso4217
from bankfeed.core.errors import InvalidProfileFormat, MissingRequiredField


CANONICAL_FIELDS = (
    "transaction_id",
    "account_id",
    "posted_date",
    "transaction_date",
    "amount",
    "debit",
    "credit",
    "currency",
    "description",
    "source_reference",
    "checksum",
    "void",
)

REQUIRED_FIELDS = ("account_id", "posted_date", "amount", "currency", "description")

_FIELD_ALIASES = {
    "transactionId": "transaction_id",
    "accountId": "account_id",
    "postedDate": "posted_date",
    "transactionDate": "transaction_date",
    "sourceReference": "source_reference",
    "source_checksum": "checksum",
    "sourceChecksum": "checksum",
    "is_void": "void",
    "isVoid": "void",
    "voided": "void",
}

ColumnRef = Union[str, int]


def canonical_field_name(key: str) -> Optional[str]:
    """Return the canonical field for a mapping key, accepting aliases."""
    if key in CANONICAL_FIELDS:
        return key
    return _FIELD_ALIASES.get(key)


# ---- Date patterns ----

_TOKEN_DIRECTIVES = {
    "YYYY": ("%Y", "year"),
    "YY": ("%y", "year"),
    "MMMM": ("%B", "month"),
    "MMM": ("%b", "month"),
    "MM": ("%m", "month"),
    "DD": ("%d", "day"),
    "%Y": ("%Y", "year"),
    "%y": ("%y", "year"),
    "%B": ("%B", "month"),
    "%b": ("%b", "month"),
    "%m": ("%m", "month"),
    "%d": ("%d", "day"),
}

_TOKEN_PATTERN_RE = re.compile(r"YYYY|YY|MMMM|MMM|MM|DD|[-/. ,]")
_STRPTIME_PATTERN_RE = re.compile(r"%[YymdbB]|[-/. ,]")

AUTO_DATE_FORMAT = "auto"


def compile_date_format(pattern: str) -> Optional[str]:
    """Translate a profile date pattern into a ``strptime`` format.

    Accepts token patterns (``YYYY-MM-DD``, ``dd/mm/yy``, ``DD MMM YYYY``),
    raw ``strptime`` patterns limited to date directives, and ``auto``.
    Returns None for ``auto``, meaning lenient parsing.

    Raises:
        InvalidProfileFormat: unsupported pattern
    """
    text = (pattern or "").strip()
    if text.lower() == AUTO_DATE_FORMAT:
        return None
    if not text:
        raise InvalidProfileFormat("date_format cannot be empty")

    if "%" in text:
        token_re = _STRPTIME_PATTERN_RE
    else:
        token_re = _TOKEN_PATTERN_RE
        text = text.upper()

    parts: list[str] = []
    seen: dict[str, int] = {"year": 0, "month": 0, "day": 0}
    pos = 0
    while pos < len(text):
        match = token_re.match(text, pos)
        if not match:
            raise InvalidProfileFormat(f"unsupported date_format {pattern!r}")
        token = match.group(0)
        if token in _TOKEN_DIRECTIVES:
            directive, component = _TOKEN_DIRECTIVES[token]
            seen[component] += 1
            parts.append(directive)
        else:
            parts.append(token)
        pos = match.end()

    if any(count != 1 for count in seen.values()):
        raise InvalidProfileFormat(
            f"date_format {pattern!r} must contain exactly one year, month and day"
        )
    return "".join(parts)


# ---- Profile ----


@dataclass(frozen=True)
class CsvProfile:
    """Resolved, immutable mapping of one provider's export format."""

    name: str
    column_mapping: Mapping[str, ColumnRef]
    date_format: str = "YYYY-MM-DD"
    strptime_format: Optional[str] = "%Y-%m-%d"
    amount_minor_factor: int = 100
    delimiter: str = ","
    encoding: str = "utf-8-sig"
    day_first: bool = False
    invert_sign: bool = False
    default_currency: Optional[str] = None

    def maps(self, field_name: str) -> bool:
        return field_name in self.column_mapping

    @property
    def required_fields(self) -> tuple[str, ...]:
        """Mapped fields whose columns must exist in every file."""
        required = []
        for name in REQUIRED_FIELDS:
            if name in self.column_mapping:
                required.append(name)
            elif name == "amount":
                required.extend(["debit", "credit"])
        return tuple(required)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "column_mapping": dict(self.column_mapping),
            "date_format": self.date_format,
            "amount_minor_factor": self.amount_minor_factor,
            "delimiter": self.delimiter,
            "encoding": self.encoding,
            "day_first": self.day_first,
            "invert_sign": self.invert_sign,
            "default_currency": self.default_currency,
        }


class ProfileConfig(BaseModel):
    """Raw profile configuration as stored by the profile store."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    name: StrictStr = "default"
    column_mapping: dict[str, Optional[Union[StrictStr, StrictInt]]] = Field(
        default_factory=dict, alias="columnMapping"
    )
    date_format: StrictStr = Field(
        default_factory=lambda: settings.DEFAULT_DATE_FORMAT, alias="dateFormat"
    )
    amount_minor_factor: StrictInt = Field(
        default_factory=lambda: settings.DEFAULT_AMOUNT_MINOR_FACTOR,
        alias="amountMinorFactor",
    )
    delimiter: StrictStr = ","
    encoding: StrictStr = "utf-8-sig"
    day_first: StrictBool = Field(default=False, alias="dayFirst")
    invert_sign: StrictBool = Field(default=False, alias="invertSign")
    default_currency: Optional[StrictStr] = Field(default=None, alias="defaultCurrency")

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_mapping(cls, data: Any) -> Any:
        """Accept canonical field keys at the top level of the config."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        nested = data.pop("columnMapping", None)
        if nested is None:
            nested = data.pop("column_mapping", None)
        if nested is not None and not isinstance(nested, dict):
            data["column_mapping"] = nested
            return data

        mapping = dict(nested or {})
        for key in list(data):
            if canonical_field_name(key) is not None:
                mapping.setdefault(key, data.pop(key))
        data["column_mapping"] = mapping
        return data


def _describe_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(problems)


def _resolve_mapping(raw_mapping: Mapping[str, Optional[ColumnRef]]) -> dict[str, ColumnRef]:
    mapping: dict[str, ColumnRef] = {}
    for key, column in raw_mapping.items():
        field_name = canonical_field_name(key)
        if field_name is None:
            raise InvalidProfileFormat(f"unknown canonical field {key!r}")
        if column is None:
            continue
        if isinstance(column, str):
            column = column.strip()
            if not column:
                continue
        elif column < 0:
            raise InvalidProfileFormat(f"column index for {field_name!r} must be >= 0")
        if field_name in mapping:
            raise InvalidProfileFormat(f"field {field_name!r} is mapped more than once")
        mapping[field_name] = column
    return mapping


def resolve_profile(raw_config: Union[Mapping[str, Any], str, bytes, CsvProfile]) -> CsvProfile:
    """Validate a raw profile configuration and return a ``CsvProfile``.

    Args:
        raw_config: Mapping, JSON text or JSON bytes. An already resolved
            profile is returned unchanged.

    Raises:
        MissingRequiredField: a required canonical field has no mapping
        InvalidProfileFormat: any other configuration problem
    """
    if isinstance(raw_config, CsvProfile):
        return raw_config

    if isinstance(raw_config, (str, bytes, bytearray)):
        try:
            raw_config = json.loads(raw_config)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidProfileFormat(f"profile is not valid JSON: {exc}") from exc

    if not isinstance(raw_config, Mapping):
        raise InvalidProfileFormat("profile must be a JSON object")

    try:
        config = ProfileConfig.model_validate(dict(raw_config))
    except ValidationError as exc:
        raise InvalidProfileFormat(_describe_validation_error(exc)) from exc

    mapping = _resolve_mapping(config.column_mapping)

    default_currency = None
    if config.default_currency is not None and config.default_currency.strip():
        default_currency = config.default_currency.strip().upper()
        if not is_iso4217(default_currency):
            raise InvalidProfileFormat(
                f"default_currency {config.default_currency!r} is not an ISO-4217 code"
            )

    for name in REQUIRED_FIELDS:
        if name in mapping:
            continue
        if name == "amount" and "debit" in mapping and "credit" in mapping:
            continue
        if name == "currency" and default_currency:
            continue
        raise MissingRequiredField(name)

    if ("debit" in mapping) != ("credit" in mapping):
        raise InvalidProfileFormat("debit and credit must be mapped together")

    if config.amount_minor_factor <= 0:
        raise InvalidProfileFormat("amount_minor_factor must be a positive integer")

    if len(config.delimiter) != 1:
        raise InvalidProfileFormat("delimiter must be a single character")

    try:
        codecs.lookup(config.encoding)
    except LookupError as exc:
        raise InvalidProfileFormat(f"unknown encoding {config.encoding!r}") from exc

    return CsvProfile(
        name=config.name,
        column_mapping=MappingProxyType(mapping),
        date_format=config.date_format,
        strptime_format=compile_date_format(config.date_format),
        amount_minor_factor=config.amount_minor_factor,
        delimiter=config.delimiter,
        encoding=config.encoding,
        day_first=config.day_first,
        invert_sign=config.invert_sign,
        default_currency=default_currency,
    )
