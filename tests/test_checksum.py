"""Tests for checksum derivation."""

from datetime import date
from hashlib import sha256

from bankfeed.processing.checksum import compute_checksum, normalize_description


def _checksum(**overrides):
    fields = {
        "account_id": "ACC-1",
        "posted_date": date(2024, 1, 2),
        "amount_minor": -1234,
        "currency": "USD",
        "description": "Coffee Shop",
    }
    fields.update(overrides)
    return compute_checksum(**fields)


def test_checksum_is_sha256_of_identity_tuple():
    expected = sha256("ACC-1|2024-01-02|-1234|USD|coffee shop".encode("utf-8")).hexdigest()
    assert _checksum() == expected


def test_checksum_ignores_description_whitespace_and_case():
    assert _checksum(description="  COFFEE   shop\t") == _checksum()


def test_checksum_changes_with_identity_fields():
    base = _checksum()
    assert _checksum(account_id="ACC-2") != base
    assert _checksum(posted_date=date(2024, 1, 3)) != base
    assert _checksum(amount_minor=1234) != base
    assert _checksum(currency="EUR") != base
    assert _checksum(description="Coffee Shop 2") != base


def test_normalize_description():
    assert normalize_description(None) == ""
    assert normalize_description(" Straße\n  Café ") == "strasse café"
