"""Canonical value types produced by the ingestion pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class StatementFormat(str, Enum):
    """Supported statement file formats."""

    CSV = "csv"
    OFX = "ofx"


class TieBreak(str, Enum):
    """Which record wins when duplicates are otherwise indistinguishable."""

    LATEST = "latest"
    EARLIEST = "earliest"


@dataclass(frozen=True)
class NormalizedBankTransaction:
    """One bank transaction in the canonical schema."""

    transaction_id: str
    account_id: str
    amount_minor: int  # positive = credit/inflow, negative = debit/outflow
    currency: str
    posted_date: date
    transaction_date: date
    description: str
    checksum: str
    source_reference: Optional[str] = None
    is_void: bool = False
    id_synthesized: bool = False

    # Provenance only, never part of identity
    source: Optional[str] = field(default=None, compare=False)
    line_number: Optional[int] = field(default=None, compare=False)

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dictionary."""
        return {
            "transaction_id": self.transaction_id,
            "account_id": self.account_id,
            "amount_minor": self.amount_minor,
            "currency": self.currency,
            "posted_date": self.posted_date.isoformat(),
            "transaction_date": self.transaction_date.isoformat(),
            "description": self.description,
            "source_reference": self.source_reference,
            "checksum": self.checksum,
            "is_void": self.is_void,
            "id_synthesized": self.id_synthesized,
            "source": self.source,
            "line_number": self.line_number,
        }


@dataclass(frozen=True)
class DuplicateGroup:
    """Transactions sharing one checksum, folded into a canonical record."""

    checksum: str
    canonical: NormalizedBankTransaction
    occurrences: int = 1
    discarded_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "checksum": self.checksum,
            "canonical_id": self.canonical.transaction_id,
            "occurrences": self.occurrences,
            "discarded_ids": list(self.discarded_ids),
        }


@dataclass(frozen=True)
class DedupeMetrics:
    kept: int = 0
    dropped: int = 0
    already_seen: int = 0

    def to_dict(self) -> dict:
        return {
            "kept": self.kept,
            "dropped": self.dropped,
            "already_seen": self.already_seen,
        }


@dataclass(frozen=True)
class DedupeOutcome:
    """Deduplicated transactions in first-seen order plus collapse metrics."""

    transactions: tuple[NormalizedBankTransaction, ...]
    metrics: DedupeMetrics
    groups: tuple[DuplicateGroup, ...] = ()

    def to_dict(self) -> dict:
        return {
            "transactions": [tx.to_dict() for tx in self.transactions],
            "metrics": self.metrics.to_dict(),
            "groups": [group.to_dict() for group in self.groups],
        }

    def to_json(self, indent: int | None = None) -> str:
        """Serialize deterministically; identical outcomes give identical text."""
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent, ensure_ascii=False)
