"""Tests for outcome reporting."""

from datetime import date

from bankfeed.core.models import DuplicateGroup, NormalizedBankTransaction
from bankfeed.processing.reporter import duplicate_set_labels, report


def _tx(transaction_id, checksum, source_reference=None):
    return NormalizedBankTransaction(
        transaction_id=transaction_id,
        account_id="ACC-1",
        amount_minor=100,
        currency="USD",
        posted_date=date(2024, 1, 2),
        transaction_date=date(2024, 1, 2),
        description="x",
        checksum=checksum,
        source_reference=source_reference,
    )


def _group(transaction_id, checksum, occurrences, source_reference=None):
    return DuplicateGroup(
        checksum=checksum,
        canonical=_tx(transaction_id, checksum, source_reference),
        occurrences=occurrences,
    )


def test_report_metrics():
    outcome = report([_group("A", "c1", 3), _group("B", "c2", 1)], already_seen=4)
    assert [tx.transaction_id for tx in outcome.transactions] == ["A", "B"]
    assert outcome.metrics.kept == 2
    assert outcome.metrics.dropped == 2
    assert outcome.metrics.already_seen == 4


def test_report_to_dict():
    data = report([_group("A", "c1", 2)]).to_dict()
    assert data["metrics"] == {"kept": 1, "dropped": 1, "already_seen": 0}
    assert data["groups"][0]["canonical_id"] == "A"
    assert data["transactions"][0]["posted_date"] == "2024-01-02"


def test_duplicate_set_labels():
    outcome = report(
        [
            _group("A", "c9", 2, source_reference="REF-2"),
            _group("B", "c1", 1, source_reference="REF-1"),
            _group("C", "c3", 3),
            _group("D", "c4", 2, source_reference="REF-2"),
        ]
    )
    assert duplicate_set_labels(outcome) == ["REF-2", "c3"]
