"""High-level service for ingesting a batch of statement files."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Optional, Union

from bankfeed.core.config import settings
from bankfeed.core.errors import ProfileError
from bankfeed.core.models import DedupeOutcome, TieBreak
from bankfeed.ingestion.profiles import CsvProfile, resolve_profile
from bankfeed.processing.deduplicator import dedupe
from bankfeed.processing.pipeline import (
    Diagnostic,
    StatementResult,
    StatementSource,
    ingest_statement,
)


logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "default"

ProfileInput = Union[CsvProfile, Mapping[str, Any], str, bytes]


@dataclass(frozen=True)
class IngestResult:
    """Deduplicated outcome of a batch plus every diagnostic raised on the way."""

    outcome: DedupeOutcome
    diagnostics: tuple[Diagnostic, ...]
    files: tuple[StatementResult, ...]

    @property
    def success(self) -> bool:
        return len(self.diagnostics) == 0

    @property
    def all_failed(self) -> bool:
        return bool(self.files) and all(result.failed for result in self.files)

    def to_dict(self) -> dict:
        return {
            **self.outcome.to_dict(),
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "files": [result.to_dict() for result in self.files],
        }

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, indent=indent, ensure_ascii=False)


def _resolve_profiles(
    profiles: Mapping[str, ProfileInput],
) -> tuple[dict[str, CsvProfile], dict[str, ProfileError]]:
    """Resolve each provider's profile once; failures are kept per provider."""
    resolved: dict[str, CsvProfile] = {}
    errors: dict[str, ProfileError] = {}
    for provider_id, raw in profiles.items():
        try:
            resolved[provider_id] = resolve_profile(raw)
        except ProfileError as exc:
            logger.warning("Profile for provider %s rejected: %s", provider_id, exc)
            errors[provider_id] = exc
    return resolved, errors


def _profile_failure(source: StatementSource, error: ProfileError) -> StatementResult:
    return StatementResult(
        source=source.name,
        format=source.format,
        diagnostics=(Diagnostic.from_error(error, source.name),),
        failed=True,
    )


def ingest_batch(
    sources: Iterable[StatementSource],
    *,
    profiles: Optional[Mapping[str, ProfileInput]] = None,
    strict: Optional[bool] = None,
    max_workers: Optional[int] = None,
    known_checksums: Optional[Iterable[str]] = None,
    tie_break: Optional[TieBreak] = None,
) -> IngestResult:
    """Ingest statements and deduplicate across all of them.

    Files are parsed and normalized concurrently. Results are merged in
    submission order, then row order, before the single dedupe pass, so
    first-seen tie-breaks do not depend on thread scheduling.

    Args:
        sources: Statements in submission order
        profiles: Raw or resolved profiles keyed by provider id. Sources
            without a provider id use the ``"default"`` entry.
        strict: Fail a whole file on its first parse error
        max_workers: Worker threads; defaults to ``settings.MAX_WORKERS``
        known_checksums: Checksums accepted by earlier ingestions
        tie_break: Winner among duplicates with only synthesized ids
    """
    source_list = list(sources)
    resolved, profile_errors = _resolve_profiles(profiles or {})

    def _ingest_one(source: StatementSource) -> StatementResult:
        provider_id = source.provider_id or DEFAULT_PROVIDER
        if provider_id in profile_errors:
            return _profile_failure(source, profile_errors[provider_id])
        return ingest_statement(source, resolved.get(provider_id), strict=strict)

    workers = max_workers or settings.MAX_WORKERS
    if workers <= 1 or len(source_list) <= 1:
        results = [_ingest_one(source) for source in source_list]
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(source_list))) as pool:
            futures = [pool.submit(_ingest_one, source) for source in source_list]
            results = [fut.result() for fut in futures]

    merged = [tx for result in results for tx in result.transactions]
    outcome = dedupe(merged, tie_break=tie_break, known_checksums=known_checksums)
    diagnostics = tuple(d for result in results for d in result.diagnostics)

    logger.info(
        "Ingested %d files: %d transactions kept, %d diagnostics",
        len(results),
        outcome.metrics.kept,
        len(diagnostics),
    )
    return IngestResult(outcome=outcome, diagnostics=diagnostics, files=tuple(results))
