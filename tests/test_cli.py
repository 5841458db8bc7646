"""Tests for the bankfeed command-line interface."""

import json
from pathlib import Path

from click.testing import CliRunner

from bankfeed.cli import main


PROFILE = {
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

CSV_TEXT = (
    "Id,Account,Date,Amount,Currency,Description\n"
    "T1,ACC-1,2024-01-02,12.34,USD,Coffee\n"
    "T2,ACC-1,2024-01-03,-5.00,ZZZ,Bakery\n"
    "T1,ACC-1,2024-01-02,12.34,USD,Coffee\n"
)


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_ingest_writes_outcome(tmp_path: Path):
    statement = _write(tmp_path, "stmt.csv", CSV_TEXT)
    profile = _write(tmp_path, "profile.json", json.dumps(PROFILE))
    output = tmp_path / "outcome.json"

    result = CliRunner().invoke(
        main,
        ["ingest", str(statement), "--profile", str(profile), "--output", str(output)],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(output.read_text(encoding="utf-8"))
    assert payload["metrics"] == {"kept": 1, "dropped": 1, "already_seen": 0}
    assert payload["transactions"][0]["amount_minor"] == 1234
    assert payload["diagnostics"][0]["code"] == "invalid_currency"
    assert payload["duplicate_sets"] == [payload["transactions"][0]["checksum"]]


def test_ingest_with_known_checksums(tmp_path: Path):
    statement = _write(tmp_path, "stmt.csv", CSV_TEXT)
    profile = _write(tmp_path, "profile.json", json.dumps(PROFILE))
    first = tmp_path / "first.json"
    runner = CliRunner()
    runner.invoke(main, ["ingest", str(statement), "--profile", str(profile), "-o", str(first)])

    checksums = [tx["checksum"] for tx in json.loads(first.read_text(encoding="utf-8"))["transactions"]]
    known = _write(tmp_path, "seen.txt", "# previous upload\n" + "\n".join(checksums) + "\n")
    second = tmp_path / "second.json"
    result = runner.invoke(
        main,
        [
            "ingest",
            str(statement),
            "--profile",
            str(profile),
            "--known-checksums",
            str(known),
            "-o",
            str(second),
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(second.read_text(encoding="utf-8"))
    assert payload["transactions"] == []
    assert payload["metrics"]["already_seen"] == 2


def test_ingest_exits_nonzero_when_every_file_fails(tmp_path: Path):
    statement = _write(tmp_path, "stmt.csv", CSV_TEXT)
    result = CliRunner().invoke(main, ["ingest", str(statement), "-o", str(tmp_path / "out.json")])
    assert result.exit_code == 1


def test_check_profile_valid(tmp_path: Path):
    profile = _write(tmp_path, "profile.json", json.dumps(PROFILE))
    result = CliRunner().invoke(main, ["check-profile", str(profile), "--json"])
    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["valid"] is True
    assert payload["profile"]["column_mapping"]["amount"] == "Amount"


def test_check_profile_invalid(tmp_path: Path):
    profile = _write(tmp_path, "profile.json", json.dumps({"name": "x", "account_id": "A"}))
    result = CliRunner().invoke(main, ["check-profile", str(profile), "--json"])
    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["valid"] is False
    assert payload["error"]["code"] == "missing_required_field"


def test_detect(tmp_path: Path):
    ofx = _write(tmp_path, "export.dat", "OFXHEADER:100\n<OFX></OFX>\n")
    result = CliRunner().invoke(main, ["detect", str(ofx)])
    assert result.exit_code == 0
    assert result.output.strip() == "ofx"


def test_list_parsers_json():
    result = CliRunner().invoke(main, ["list-parsers", "--json"])
    assert result.exit_code == 0
    names = [p["name"] for p in json.loads(result.output)]
    assert names == ["ofx", "csv"]
