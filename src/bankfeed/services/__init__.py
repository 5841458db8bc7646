"""Services orchestrating ingestion across multiple statements."""

from .ingest_service import IngestResult, ingest_batch

__all__ = ["IngestResult", "ingest_batch"]
