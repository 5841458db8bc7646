"""Packaging of duplicate groups into the pipeline's terminal outcome."""

from __future__ import annotations

from collections.abc import Iterable

from bankfeed.core.models import DedupeMetrics, DedupeOutcome, DuplicateGroup


def report(groups: Iterable[DuplicateGroup], *, already_seen: int = 0) -> DedupeOutcome:
    """Aggregate groups into a ``DedupeOutcome``; group order is preserved."""
    group_list = tuple(groups)
    kept = len(group_list)
    total = sum(group.occurrences for group in group_list)
    return DedupeOutcome(
        transactions=tuple(group.canonical for group in group_list),
        metrics=DedupeMetrics(kept=kept, dropped=total - kept, already_seen=already_seen),
        groups=group_list,
    )


def duplicate_set_labels(outcome: DedupeOutcome) -> list[str]:
    """Sorted unique labels for groups that collapsed more than one record.

    Prefers the provider's source reference, then the checksum, then the
    canonical transaction id.
    """
    labels = set()
    for group in outcome.groups:
        if group.occurrences <= 1:
            continue
        canonical = group.canonical
        labels.add(canonical.source_reference or group.checksum or canonical.transaction_id)
    return sorted(labels)
