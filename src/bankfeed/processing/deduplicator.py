"""Collapse repeated observations of the same transaction into one record.

Transactions are grouped by account and checksum, so a checksum shared by
two accounts never merges them. Groups keep the order in which their
checksum was first observed, so identical input always yields identical
output ordering.

Canonical selection within a group:

1. Keep members whose void flag matches the group majority. On a tie the
   most recently observed member's flag wins.
2. Prefer members with a non-empty description.
3. Take the earliest member carrying a provider-supplied transaction id.
   When every remaining member has a synthesized id, ``tie_break`` decides
   between the latest and the earliest observation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from bankfeed.core.config import settings
from bankfeed.core.models import (
    DedupeOutcome,
    DuplicateGroup,
    NormalizedBankTransaction,
    TieBreak,
)
from bankfeed.processing.reporter import report


logger = logging.getLogger(__name__)


def select_canonical(
    members: Sequence[NormalizedBankTransaction],
    tie_break: TieBreak = TieBreak.LATEST,
) -> int:
    """Return the index into ``members`` (observation order) of the canonical record."""
    indexed = list(enumerate(members))

    voided = sum(1 for tx in members if tx.is_void)
    not_voided = len(members) - voided
    if voided == not_voided:
        majority_void = members[-1].is_void
    else:
        majority_void = voided > not_voided
    candidates = [(idx, tx) for idx, tx in indexed if tx.is_void == majority_void]

    described = [(idx, tx) for idx, tx in candidates if tx.description.strip()]
    if described:
        candidates = described

    supplied = [(idx, tx) for idx, tx in candidates if not tx.id_synthesized]
    if supplied:
        return supplied[0][0]

    if tie_break == TieBreak.EARLIEST:
        return candidates[0][0]
    return candidates[-1][0]


def _discarded_ids(
    members: Sequence[NormalizedBankTransaction], canonical_index: int
) -> tuple[str, ...]:
    canonical_id = members[canonical_index].transaction_id
    seen: dict[str, None] = {}
    for idx, tx in enumerate(members):
        if idx == canonical_index or tx.transaction_id == canonical_id:
            continue
        seen.setdefault(tx.transaction_id, None)
    return tuple(seen)


def group_duplicates(
    transactions: Iterable[NormalizedBankTransaction],
    *,
    tie_break: Optional[TieBreak] = None,
) -> list[DuplicateGroup]:
    """Cluster transactions by account and checksum and pick each canonical record."""
    tie_break = tie_break or settings.SYNTHESIZED_ID_TIE_BREAK

    buckets: dict[tuple[str, str], list[NormalizedBankTransaction]] = {}
    for tx in transactions:
        buckets.setdefault((tx.account_id, tx.checksum), []).append(tx)

    groups: list[DuplicateGroup] = []
    for (_, checksum), members in buckets.items():
        canonical_index = select_canonical(members, tie_break)
        groups.append(
            DuplicateGroup(
                checksum=checksum,
                canonical=members[canonical_index],
                occurrences=len(members),
                discarded_ids=_discarded_ids(members, canonical_index),
            )
        )
        if len(members) > 1:
            logger.debug(
                "Collapsed %d records for checksum %s into %s",
                len(members),
                checksum[:12],
                members[canonical_index].transaction_id,
            )
    return groups


def dedupe(
    transactions: Iterable[NormalizedBankTransaction],
    *,
    tie_break: Optional[TieBreak] = None,
    known_checksums: Optional[Iterable[str]] = None,
) -> DedupeOutcome:
    """Deduplicate a stream of normalized transactions.

    Args:
        transactions: Normalized transactions in observation order
        tie_break: Winner among duplicates that only carry synthesized ids;
            defaults to ``settings.SYNTHESIZED_ID_TIE_BREAK``
        known_checksums: Checksums already accepted by earlier invocations.
            Matching groups are left out and counted as ``already_seen``.

    Returns:
        DedupeOutcome with one transaction per remaining checksum
    """
    groups = group_duplicates(transactions, tie_break=tie_break)

    already_seen = 0
    if known_checksums is not None:
        known = set(known_checksums)
        fresh = []
        for group in groups:
            if group.checksum in known:
                already_seen += group.occurrences
            else:
                fresh.append(group)
        groups = fresh

    outcome = report(groups, already_seen=already_seen)
    logger.info(
        "Dedupe kept %d, dropped %d, already seen %d",
        outcome.metrics.kept,
        outcome.metrics.dropped,
        outcome.metrics.already_seen,
    )
    return outcome
