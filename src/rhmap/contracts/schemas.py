"""Bundled JSON schemas (``probe_trace.v1``, ``map_snapshot.v1``) and their validators."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, List

from jsonschema import Draft202012Validator

PROBE_TRACE_SCHEMA = "probe_trace_schema.json"
MAP_SNAPSHOT_SCHEMA = "map_snapshot_schema.json"


@lru_cache(maxsize=None)
def schema_validator(resource: str) -> Draft202012Validator:
    with (resources.files("rhmap.contracts") / resource).open(encoding="utf-8") as stream:
        return Draft202012Validator(json.load(stream))


def schema_errors(resource: str, document: Any) -> List[str]:
    """Return one message per violation, ordered by location; empty when valid."""

    errors = sorted(schema_validator(resource).iter_errors(document), key=lambda err: err.json_path)
    return [f"{err.message} @ {list(err.path)}" for err in errors]


__all__ = ["MAP_SNAPSHOT_SCHEMA", "PROBE_TRACE_SCHEMA", "schema_errors", "schema_validator"]
