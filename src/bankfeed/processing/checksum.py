"""Checksum derivation used as the deduplication identity key."""

from __future__ import annotations

from datetime import date
from hashlib import sha256


def normalize_description(description: str | None) -> str:
    """Case-fold and collapse whitespace so cosmetic export changes hash alike."""
    return " ".join((description or "").split()).casefold()


def compute_checksum(
    *,
    account_id: str,
    posted_date: date,
    amount_minor: int,
    currency: str,
    description: str | None,
) -> str:
    """SHA-256 hex digest over the canonical identity tuple.

    Strategy: SHA256(ACCOUNT | ISO_DATE | AMOUNT_MINOR | CURRENCY | NORMALIZED_DESCRIPTION)
    """
    payload = "|".join(
        [
            account_id,
            posted_date.isoformat(),
            str(amount_minor),
            currency,
            normalize_description(description),
        ]
    )
    return sha256(payload.encode("utf-8")).hexdigest()
