"""CLI command registration and handlers for rhmap."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from rhmap.analysis import (
    format_trace_lines,
    trace_erase,
    trace_insert,
    trace_locate,
    validate_trace_file,
)
from rhmap.contracts.error import BadInputError, Exit, InvariantError
from rhmap.core.maps import OrderedRobinHoodMap, sample_stats
from rhmap.io.snapshot import describe_snapshot


@dataclass(frozen=True)
class CLIContext:
    """Runtime hooks supplied by the top-level CLI entrypoint."""

    emit_success: Callable[..., None]
    open_map: Callable[[Optional[str]], OrderedRobinHoodMap]
    persist_map: Callable[[OrderedRobinHoodMap, Optional[str]], None]
    verify_snapshot: Callable[..., int]
    watchdog_alerts: Callable[[Dict[str, Any]], List[Dict[str, Any]]]
    logger: logging.Logger
    json_enabled: Callable[[], bool]
    guard: Callable[[Callable[[argparse.Namespace], int]], Callable[[argparse.Namespace], int]]


def register_subcommands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
    ctx: CLIContext,
) -> Dict[str, Callable[[argparse.Namespace], int]]:
    """Define CLI subcommands and return their handlers."""

    handlers: Dict[str, Callable[[argparse.Namespace], int]] = {}

    def _register(
        name: str,
        help_text: Optional[str],
        configure: Callable[[argparse.ArgumentParser], Callable[[argparse.Namespace], int]],
    ) -> None:
        parser = subparsers.add_parser(name, help=help_text)
        handler = configure(parser)
        handlers[name] = ctx.guard(handler)

    _register("put", "Insert KEY=VALUE unless KEY exists.", lambda parser: _configure_put(parser, ctx))
    _register("set", "Assign VALUE to KEY (inserting if absent).", lambda parser: _configure_set(parser, ctx))
    _register("get", "Print the value for KEY (exit 6 when absent).", lambda parser: _configure_get(parser, ctx))
    _register("del", "Erase KEY if present.", lambda parser: _configure_del(parser, ctx))
    _register("items", "List entries in insertion order.", lambda parser: _configure_items(parser, ctx))
    _register(
        "stats",
        "Report size, capacity, load factor and probe distances.",
        lambda parser: _configure_stats(parser, ctx),
    )
    _register(
        "probe-visualize",
        "Trace probe paths for find/insert/erase (text/JSON).",
        lambda parser: _configure_probe_visualize(parser, ctx),
    )
    _register(
        "verify-snapshot",
        "Verify the entry/index invariants of a snapshot.",
        lambda parser: _configure_verify_snapshot(parser, ctx),
    )
    _register(
        "inspect-snapshot",
        "Show what a snapshot file holds.",
        lambda parser: _configure_inspect_snapshot(parser, ctx),
    )
    _register(
        "validate-trace",
        "Validate an exported probe trace against probe_trace.v1.",
        lambda parser: _configure_validate_trace(parser, ctx),
    )

    return handlers


def _configure_put(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("key")
    parser.add_argument("value")

    def handler(args: argparse.Namespace) -> int:
        m = ctx.open_map(args.snapshot)
        inserted = args.key not in m
        m.insert(args.key, args.value)
        if inserted:
            ctx.persist_map(m, args.snapshot)
        data = {"key": args.key, "value": m.at(args.key), "inserted": inserted}
        ctx.emit_success("put", text="OK" if inserted else "EXISTS", data=data)
        return int(Exit.OK)

    return handler


def _configure_set(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("key")
    parser.add_argument("value")

    def handler(args: argparse.Namespace) -> int:
        m = ctx.open_map(args.snapshot)
        m[args.key] = args.value
        ctx.persist_map(m, args.snapshot)
        ctx.emit_success("set", text="OK", data={"key": args.key, "value": args.value})
        return int(Exit.OK)

    return handler


def _configure_get(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("key")

    def handler(args: argparse.Namespace) -> int:
        m = ctx.open_map(args.snapshot)
        value = m.at(args.key)
        ctx.emit_success("get", text=str(value), data={"key": args.key, "found": True, "value": value})
        return int(Exit.OK)

    return handler


def _configure_del(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("key")

    def handler(args: argparse.Namespace) -> int:
        m = ctx.open_map(args.snapshot)
        deleted = args.key in m
        m.erase(args.key)
        if deleted:
            ctx.persist_map(m, args.snapshot)
        ctx.emit_success("del", text="1" if deleted else "0", data={"key": args.key, "deleted": deleted})
        return int(Exit.OK)

    return handler


def _configure_items(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    def handler(args: argparse.Namespace) -> int:
        m = ctx.open_map(args.snapshot)
        pairs = list(m.items())
        text = "\n".join(f"{key},{value}" for key, value in pairs)
        data = {"count": len(pairs), "items": [{"key": key, "value": value} for key, value in pairs]}
        ctx.emit_success("items", text=text, data=data)
        return int(Exit.OK)

    return handler


def _configure_stats(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    def handler(args: argparse.Namespace) -> int:
        m = ctx.open_map(args.snapshot)
        stats = sample_stats(m)
        alerts = ctx.watchdog_alerts(stats)
        histogram = ", ".join(f"{distance}:{count}" for distance, count in stats["probe_histogram"])
        lines = [
            f"Size: {stats['size']}",
            f"Capacity: {stats['capacity']}",
            f"Load factor: {stats['load_factor']:.3f}",
            f"Avg probe distance: {stats['avg_probe_distance']:.3f}",
            f"Max probe distance: {stats['max_probe_distance']}",
            f"Probe histogram: {histogram or '(empty)'}",
        ]
        for alert in alerts:
            lines.append(f"ALERT {alert['metric']}={alert['value']} (threshold {alert['threshold']})")
        ctx.emit_success("stats", text="\n".join(lines), data={**stats, "alerts": alerts})
        return int(Exit.OK)

    return handler


def _configure_probe_visualize(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument(
        "--operation",
        choices=["find", "insert", "erase"],
        required=True,
        help="Operation to trace",
    )
    parser.add_argument("--key", required=True, help="Key to probe")
    parser.add_argument("--value", help="Value for insert operations")
    parser.add_argument(
        "--seed",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Seed the map with entries before tracing (repeatable)",
    )
    parser.add_argument(
        "--export-json",
        help="Write the trace payload to a JSON file (indent=2)",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply the operation after tracing and persist it to --snapshot",
    )

    def handler(args: argparse.Namespace) -> int:
        if args.operation == "insert" and args.value is None:
            raise BadInputError("insert operation requires --value")

        m = ctx.open_map(args.snapshot)
        _seed_map(m, args.seed)

        if args.operation == "find":
            trace = trace_locate(m, args.key)
        elif args.operation == "insert":
            trace = trace_insert(m, args.key, args.value)
            if args.apply:
                m.insert(args.key, args.value)
        else:
            trace = trace_erase(m, args.key)
            if args.apply:
                m.erase(args.key)
        if args.apply and args.operation != "find":
            ctx.persist_map(m, args.snapshot)

        export_path: Optional[Path] = None
        if args.export_json:
            export_path = Path(args.export_json).expanduser().resolve()
            export_path.parent.mkdir(parents=True, exist_ok=True)
            export_path.write_text(json.dumps(trace, indent=2), encoding="utf-8")

        snapshot_text = str(Path(args.snapshot).expanduser().resolve()) if args.snapshot else None
        text_output = "\n".join(
            format_trace_lines(trace, snapshot=snapshot_text, seeds=args.seed, export_path=export_path)
        )
        payload: Dict[str, Any] = {"trace": trace}
        if snapshot_text is not None:
            payload["snapshot"] = snapshot_text
        if args.seed:
            payload["seed_entries"] = list(args.seed)
        if export_path is not None:
            payload["export_json"] = str(export_path)
        ctx.emit_success("probe-visualize", text=text_output, data=payload)
        return int(Exit.OK)

    return handler


def _seed_map(m: OrderedRobinHoodMap, seeds: List[str]) -> None:
    for entry in seeds:
        if "=" not in entry:
            raise BadInputError(f"Seed entry '{entry}' must be KEY=VALUE")
        key, value = entry.split("=", 1)
        m.insert(key, value)


def _configure_verify_snapshot(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("path", help="Snapshot file to verify")
    parser.add_argument("--verbose", action="store_true", help="Print a summary line")

    def handler(args: argparse.Namespace) -> int:
        return ctx.verify_snapshot(args.path, verbose=args.verbose)

    return handler


def _configure_inspect_snapshot(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("path", help="Snapshot file to inspect")

    def handler(args: argparse.Namespace) -> int:
        path = Path(args.path).expanduser().resolve()
        try:
            info = describe_snapshot(path)
        except ValueError as exc:
            raise InvariantError(f"Not an rhmap snapshot: {exc}") from exc
        data = {
            "path": str(path),
            "kind": info.kind,
            "version": info.version,
            "size": info.size,
            "capacity": info.capacity,
            "compressed": info.compressed,
            "file_bytes": info.file_bytes,
        }
        lines = [f"{name}: {value}" for name, value in data.items()]
        ctx.emit_success("inspect-snapshot", text="\n".join(lines), data=data)
        return int(Exit.OK)

    return handler


def _configure_validate_trace(
    parser: argparse.ArgumentParser, ctx: CLIContext
) -> Callable[[argparse.Namespace], int]:
    parser.add_argument("path", help="Trace JSON produced by probe-visualize --export-json")

    def handler(args: argparse.Namespace) -> int:
        errors = validate_trace_file(Path(args.path).expanduser())
        if errors:
            for message in errors:
                print(f"  - {message}", file=sys.stderr)
            ctx.logger.error("Trace %s failed validation (%d error(s))", args.path, len(errors))
            return int(Exit.INVARIANT)
        ctx.emit_success("validate-trace", text="Trace valid", data={"path": args.path, "valid": True})
        return int(Exit.OK)

    return handler


__all__ = ["CLIContext", "register_subcommands"]
