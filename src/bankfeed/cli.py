"""Command-line interface for bankfeed.

The main command ingests one or more statement exports and prints the
deduplicated outcome as JSON.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from bankfeed.core.config import settings
from bankfeed.core.errors import BankfeedError, ProfileError
from bankfeed.core.models import TieBreak
from bankfeed.ingestion import detect_format, resolve_profile
from bankfeed.ingestion.registry import ParserRegistry
from bankfeed.processing.pipeline import StatementSource
from bankfeed.processing.reporter import duplicate_set_labels
from bankfeed.services.ingest_service import DEFAULT_PROVIDER, ingest_batch


def _load_json(path: Path) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        click.echo(f"{path} is not valid JSON: {exc}", err=True)
        sys.exit(1)


def _read_checksums(path: Path) -> set[str]:
    """One checksum per line; blank lines and ``#`` comments are ignored."""
    checksums = set()
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            checksums.add(line)
    return checksums


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Bank statement normalization and deduplication tools."""
    level = logging.DEBUG if verbose or settings.DEBUG else settings.LOG_LEVEL.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@main.command("ingest")
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--profile", "profile_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="JSON column mapping profile for CSV files")
@click.option("--strict/--lenient", default=None, help="Fail a whole file on its first parse error")
@click.option("--workers", type=int, default=None, help="Worker threads (default: BANKFEED_MAX_WORKERS)")
@click.option("--known-checksums", "known_path", type=click.Path(exists=True, dir_okay=False, path_type=Path), help="File of checksums already ingested, one per line")
@click.option(
    "--tie-break",
    type=click.Choice([t.value for t in TieBreak]),
    default=None,
    help="Winner among duplicates whose ids were all synthesized",
)
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False, path_type=Path), help="Write the JSON outcome to a file")
def ingest_command(
    files: tuple[Path, ...],
    profile_path: Optional[Path],
    strict: Optional[bool],
    workers: Optional[int],
    known_path: Optional[Path],
    tie_break: Optional[str],
    output_path: Optional[Path],
) -> None:
    """Ingest statement files and emit the deduplicated outcome.

    Examples:
        bankfeed ingest march.csv april.csv --profile chase.json
        bankfeed ingest export.ofx --known-checksums seen.txt -o outcome.json
    """
    profiles = {}
    if profile_path is not None:
        profiles[DEFAULT_PROVIDER] = _load_json(profile_path)

    sources = [StatementSource(name=str(path), data=path.read_bytes()) for path in files]
    result = ingest_batch(
        sources,
        profiles=profiles,
        strict=strict,
        max_workers=workers,
        known_checksums=_read_checksums(known_path) if known_path else None,
        tie_break=TieBreak(tie_break) if tie_break else None,
    )

    payload = result.to_dict()
    payload["duplicate_sets"] = duplicate_set_labels(result.outcome)
    text = json.dumps(payload, sort_keys=True, indent=2, ensure_ascii=False)
    if output_path is not None:
        output_path.write_text(text + "\n", encoding="utf-8")
    else:
        click.echo(text)

    metrics = result.outcome.metrics
    click.echo(
        f"Ingest complete.\n"
        f"  Files:        {len(result.files)}\n"
        f"  Kept:         {metrics.kept}\n"
        f"  Dropped:      {metrics.dropped}\n"
        f"  Already seen: {metrics.already_seen}\n"
        f"  Diagnostics:  {len(result.diagnostics)}",
        err=True,
    )

    for diag in result.diagnostics:
        location = f":{diag.line_number}" if diag.line_number is not None else ""
        click.echo(f"- {diag.source}{location} [{diag.code}] {diag.message}", err=True)

    if result.all_failed:
        sys.exit(1)


@main.command("check-profile")
@click.argument("profile_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "json_output", is_flag=True, help="Output as JSON for agents")
def check_profile_command(profile_path: Path, json_output: bool) -> None:
    """Validate a CSV column mapping profile."""
    try:
        profile = resolve_profile(_load_json(profile_path))
    except ProfileError as exc:
        if json_output:
            click.echo(json.dumps({"valid": False, "error": exc.to_dict()}, indent=2))
        else:
            click.echo(f"Invalid profile: {exc}", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps({"valid": True, "profile": profile.to_dict()}, indent=2))
    else:
        click.echo(f"Profile OK: {profile.name}")
        for field_name, column in profile.column_mapping.items():
            click.echo(f"  {field_name:18} <- {column!r}")


@main.command("detect")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def detect_command(file_path: Path) -> None:
    """Print the detected statement format of a file."""
    try:
        fmt = detect_format(file_path.read_bytes(), file_path.name)
    except BankfeedError as exc:
        click.echo(f"Could not detect format: {exc}", err=True)
        sys.exit(1)
    click.echo(fmt.value)


@main.command("list-parsers")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON for agents")
def list_parsers_command(json_output: bool) -> None:
    """List available parsers."""
    parsers = ParserRegistry.list_parsers()
    if json_output:
        click.echo(json.dumps(parsers, indent=2))
    else:
        for p in parsers:
            click.echo(f"- {p['name']}: {p['description']}")
            click.echo(f"  Formats: {', '.join(p['supported_formats'])}")
            click.echo(f"  Requires profile: {'yes' if p['requires_profile'] else 'no'}")
            click.echo("")


if __name__ == "__main__":
    main()
