"""Diagnostics for rhmap: probe tracing, invariant checks, trace validation."""

from .invariants import verify_map
from .probe import TRACE_SCHEMA, format_trace_lines, trace_erase, trace_insert, trace_locate
from .schema import validate_trace, validate_trace_file

__all__ = [
    "TRACE_SCHEMA",
    "format_trace_lines",
    "trace_erase",
    "trace_insert",
    "trace_locate",
    "validate_trace",
    "validate_trace_file",
    "verify_map",
]
