"""Tests for provider profile resolution."""

import json

import pytest

from bankfeed.core.errors import InvalidProfileFormat, MissingRequiredField
from bankfeed.ingestion.profiles import CsvProfile, compile_date_format, resolve_profile


def _config(**overrides):
    config = {
        "name": "testbank",
        "column_mapping": {
            "transaction_id": "Id",
            "account_id": "Account",
            "posted_date": "Date",
            "amount": "Amount",
            "currency": "Currency",
            "description": "Description",
        },
    }
    config.update(overrides)
    return config


def test_resolve_profile_with_nested_mapping():
    profile = resolve_profile(_config())
    assert isinstance(profile, CsvProfile)
    assert profile.name == "testbank"
    assert profile.column_mapping["amount"] == "Amount"
    assert profile.strptime_format == "%Y-%m-%d"
    assert profile.amount_minor_factor == 100
    assert profile.required_fields == (
        "account_id",
        "posted_date",
        "amount",
        "currency",
        "description",
    )


def test_resolve_profile_accepts_flat_layout_with_nulls():
    config = {
        "name": "flat",
        "account_id": "Acct",
        "posted_date": "Posted",
        "amount": "Amt",
        "currency": "Cur",
        "description": "Memo",
        "transaction_id": None,
        "source_checksum": None,
        "voided": "Void",
    }
    profile = resolve_profile(config)
    assert profile.column_mapping["void"] == "Void"
    assert "checksum" not in profile.column_mapping
    assert "transaction_id" not in profile.column_mapping


def test_resolve_profile_accepts_camel_case_keys_and_json_text():
    raw = json.dumps(
        {
            "name": "camel",
            "columnMapping": {
                "accountId": 0,
                "postedDate": 1,
                "amount": 2,
                "currency": 3,
                "description": 4,
            },
            "dateFormat": "DD/MM/YYYY",
            "amountMinorFactor": 1000,
        }
    )
    profile = resolve_profile(raw)
    assert profile.column_mapping["account_id"] == 0
    assert profile.strptime_format == "%d/%m/%Y"
    assert profile.amount_minor_factor == 1000


def test_resolved_profile_is_returned_unchanged():
    profile = resolve_profile(_config())
    assert resolve_profile(profile) is profile


def test_missing_required_field():
    config = _config()
    del config["column_mapping"]["currency"]
    with pytest.raises(MissingRequiredField) as exc_info:
        resolve_profile(config)
    assert exc_info.value.field == "currency"
    assert exc_info.value.code == "missing_required_field"


def test_default_currency_replaces_currency_column():
    config = _config(default_currency="eur")
    del config["column_mapping"]["currency"]
    profile = resolve_profile(config)
    assert profile.default_currency == "EUR"
    assert "currency" not in profile.required_fields


def test_invalid_default_currency_rejected():
    with pytest.raises(InvalidProfileFormat):
        resolve_profile(_config(default_currency="ZZZ"))


def test_debit_credit_columns_replace_amount():
    config = _config()
    mapping = config["column_mapping"]
    del mapping["amount"]
    mapping["debit"] = "Withdrawal"
    mapping["credit"] = "Deposit"
    profile = resolve_profile(config)
    assert not profile.maps("amount")
    assert "debit" in profile.required_fields
    assert "credit" in profile.required_fields


def test_debit_without_credit_is_missing_amount():
    config = _config()
    del config["column_mapping"]["amount"]
    config["column_mapping"]["debit"] = "Withdrawal"
    with pytest.raises(MissingRequiredField) as exc_info:
        resolve_profile(config)
    assert exc_info.value.field == "amount"


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount_minor_factor": 0},
        {"amount_minor_factor": "100"},
        {"delimiter": ";;"},
        {"encoding": "no-such-codec"},
        {"date_format": "YYYY-MM"},
        {"unexpected_option": True},
        {"column_mapping": {"account_id": ["A"], "posted_date": "D"}},
    ],
)
def test_invalid_profile_options(overrides):
    with pytest.raises(InvalidProfileFormat):
        resolve_profile(_config(**overrides))


def test_unknown_canonical_field_rejected():
    config = _config()
    config["column_mapping"]["balance"] = "Balance"
    with pytest.raises(InvalidProfileFormat):
        resolve_profile(config)


def test_negative_column_index_rejected():
    config = _config()
    config["column_mapping"]["amount"] = -1
    with pytest.raises(InvalidProfileFormat):
        resolve_profile(config)


def test_invalid_json_text_rejected():
    with pytest.raises(InvalidProfileFormat):
        resolve_profile("{not json")


def test_non_object_json_rejected():
    with pytest.raises(InvalidProfileFormat):
        resolve_profile("[1, 2, 3]")


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("YYYY-MM-DD", "%Y-%m-%d"),
        ("dd/mm/yyyy", "%d/%m/%Y"),
        ("MM/DD/YY", "%m/%d/%y"),
        ("DD MMM YYYY", "%d %b %Y"),
        ("YYYYMMDD", "%Y%m%d"),
        ("%d.%m.%Y", "%d.%m.%Y"),
        ("auto", None),
    ],
)
def test_compile_date_format(pattern, expected):
    assert compile_date_format(pattern) == expected


@pytest.mark.parametrize("pattern", ["", "YYYY-DD", "YYYY-MM-DD-DD", "Q1 YYYY", "%H:%M"])
def test_compile_date_format_rejects_unsupported(pattern):
    with pytest.raises(InvalidProfileFormat):
        compile_date_format(pattern)
