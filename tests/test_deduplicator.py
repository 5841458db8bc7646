"""Tests for duplicate grouping and canonical selection."""

from datetime import date

from bankfeed.core.models import NormalizedBankTransaction, TieBreak
from bankfeed.processing.deduplicator import dedupe, group_duplicates, select_canonical


def _tx(transaction_id, checksum="c1", **overrides):
    fields = {
        "transaction_id": transaction_id,
        "account_id": "ACC-1",
        "amount_minor": -500,
        "currency": "USD",
        "posted_date": date(2024, 1, 2),
        "transaction_date": date(2024, 1, 2),
        "description": "Bakery",
        "checksum": checksum,
    }
    fields.update(overrides)
    return NormalizedBankTransaction(**fields)


def test_unique_transactions_are_all_kept_in_order():
    txs = [_tx("A", "c1"), _tx("B", "c2"), _tx("C", "c3")]
    outcome = dedupe(txs)
    assert [tx.transaction_id for tx in outcome.transactions] == ["A", "B", "C"]
    assert outcome.metrics.kept == 3
    assert outcome.metrics.dropped == 0


def test_groups_keep_first_seen_order():
    txs = [_tx("A", "c2"), _tx("B", "c1"), _tx("C", "c2"), _tx("D", "c3"), _tx("E", "c1")]
    outcome = dedupe(txs)
    assert [group.checksum for group in outcome.groups] == ["c2", "c1", "c3"]
    assert [tx.transaction_id for tx in outcome.transactions] == ["A", "B", "D"]
    assert outcome.metrics.kept + outcome.metrics.dropped == len(txs)


def test_at_most_one_record_per_checksum():
    txs = [_tx(str(i), f"c{i % 4}") for i in range(20)]
    outcome = dedupe(txs)
    checksums = [tx.checksum for tx in outcome.transactions]
    assert len(checksums) == len(set(checksums)) == 4
    assert outcome.metrics.dropped == 16


def test_void_majority_wins_over_later_correction():
    txs = [
        _tx("A", is_void=False),
        _tx("B", is_void=False),
        _tx("C", is_void=False),
        _tx("D", is_void=True),
    ]
    outcome = dedupe(txs)
    assert len(outcome.transactions) == 1
    assert outcome.transactions[0].is_void is False
    assert outcome.transactions[0].transaction_id == "A"
    assert outcome.groups[0].discarded_ids == ("B", "C", "D")


def test_void_tie_prefers_most_recent_flag():
    assert select_canonical([_tx("A", is_void=False), _tx("B", is_void=True)]) == 1
    assert select_canonical([_tx("A", is_void=True), _tx("B", is_void=False)]) == 1


def test_richer_description_preferred():
    members = [_tx("A", description=""), _tx("B", description="Bakery"), _tx("C")]
    assert select_canonical(members) == 1


def test_supplied_id_preferred_over_synthesized():
    members = [
        _tx("syn-1", id_synthesized=True),
        _tx("F1"),
        _tx("F2"),
    ]
    assert select_canonical(members) == 1


def test_synthesized_only_group_uses_tie_break():
    members = [_tx("syn-1", id_synthesized=True), _tx("syn-2", id_synthesized=True)]
    assert select_canonical(members, TieBreak.LATEST) == 1
    assert select_canonical(members, TieBreak.EARLIEST) == 0

    outcome = dedupe(members, tie_break=TieBreak.EARLIEST)
    assert outcome.transactions[0].transaction_id == "syn-1"


def test_discarded_ids_are_unique_and_exclude_canonical():
    groups = group_duplicates([_tx("A"), _tx("A"), _tx("B"), _tx("B"), _tx("C")])
    assert len(groups) == 1
    assert groups[0].canonical.transaction_id == "A"
    assert groups[0].occurrences == 5
    assert groups[0].discarded_ids == ("B", "C")


def test_known_checksums_are_reported_as_already_seen():
    txs = [_tx("A", "c1"), _tx("B", "c2"), _tx("C", "c2")]
    outcome = dedupe(txs, known_checksums=["c2"])
    assert [tx.transaction_id for tx in outcome.transactions] == ["A"]
    assert outcome.metrics.kept == 1
    assert outcome.metrics.dropped == 0
    assert outcome.metrics.already_seen == 2


def test_shared_checksum_across_accounts_never_merges():
    txs = [_tx("A", "c1", account_id="ACC-1"), _tx("B", "c1", account_id="ACC-2")]
    outcome = dedupe(txs)
    assert outcome.metrics.kept == 2
    assert outcome.metrics.dropped == 0
    assert [tx.account_id for tx in outcome.transactions] == ["ACC-1", "ACC-2"]


def test_empty_input():
    outcome = dedupe([])
    assert outcome.transactions == ()
    assert outcome.metrics.kept == 0
    assert outcome.metrics.dropped == 0


def test_outcome_json_is_idempotent():
    txs = [_tx("A", "c2"), _tx("B", "c1"), _tx("C", "c2", is_void=True)]
    assert dedupe(txs).to_json() == dedupe(list(txs)).to_json()
