"""Validate exported probe traces against the bundled ``probe_trace.v1`` schema."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List

from rhmap.contracts.error import BadInputError
from rhmap.contracts.schemas import PROBE_TRACE_SCHEMA, schema_errors


def validate_trace(trace: Any) -> List[str]:
    return schema_errors(PROBE_TRACE_SCHEMA, trace)


def validate_trace_file(path: Path) -> List[str]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise BadInputError(f"Trace file is not valid JSON: {exc}") from exc
    return validate_trace(payload)


__all__ = ["validate_trace", "validate_trace_file"]
