"""Query telemetry helpers."""

from .jsonl import append_jsonl, read_jsonl
from .query_logger import QueryTelemetryLogger

__all__ = ["append_jsonl", "read_jsonl", "QueryTelemetryLogger"]
