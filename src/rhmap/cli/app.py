"""Entry point of the ``rhmap`` command.

Every command works on one map. With ``--snapshot PATH`` the map is read from
that file before the command runs and written back after a mutation; without it
the map starts empty and is dropped on exit. Logging goes to stderr (text or
JSON lines) and optionally to a rotating file, so stdout carries only command
output.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from rhmap.analysis import verify_map
from rhmap.cli.commands import CLIContext, register_subcommands
from rhmap.config import CONFIG_ENV_VAR, AppConfig, MapPolicy, load_app_config
from rhmap.contracts.error import InvariantError, PolicyError, guard_cli
from rhmap.core.maps import OrderedRobinHoodMap

logger = logging.getLogger("rhmap")
logger.setLevel(logging.INFO)
logger.propagate = False

TEXT_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S"
LOG_ROTATE_BYTES = 5_000_000
LOG_ROTATE_KEEP = 5


class JsonFormatter(logging.Formatter):
    """One JSON object per record: time, level, logger and message."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "time": self.formatTime(record, LOG_DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(
    use_json: bool = False,
    log_file: str | None = None,
    *,
    max_bytes: int = LOG_ROTATE_BYTES,
    backup_count: int = LOG_ROTATE_KEEP,
) -> None:
    """Install a fresh stderr handler, plus a rotating file handler when ``log_file`` is set."""

    formatter = JsonFormatter() if use_json else logging.Formatter(TEXT_LOG_FORMAT, LOG_DATEFMT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count))

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)


configure_logging()

APP_CONFIG: AppConfig = AppConfig()
OUTPUT_JSON: bool = False


def set_app_config(cfg: AppConfig) -> None:
    global APP_CONFIG
    APP_CONFIG = cfg


def emit_success(
    command: str, *, text: str | None = None, data: dict[str, Any] | None = None
) -> None:
    """Print a command's result: ``text`` as is, or a JSON object under ``--json``."""

    if not OUTPUT_JSON:
        if text is not None:
            print(text)
        return
    payload: dict[str, Any] = {"ok": True, "command": command, **(data or {})}
    if text is not None:
        payload.setdefault("result", text)
    print(json.dumps(payload, ensure_ascii=False))


def _snapshot_path(snapshot: str) -> Path:
    return Path(snapshot).expanduser().resolve()


def open_map(snapshot: str | None) -> OrderedRobinHoodMap:
    """The map stored at ``snapshot``, or an empty one sized by the configured policy."""

    if snapshot:
        path = _snapshot_path(snapshot)
        if path.exists():
            try:
                return OrderedRobinHoodMap.load(str(path))
            except (ValueError, TypeError) as exc:
                raise InvariantError(f"Failed to load snapshot {path}: {exc}") from exc
    return OrderedRobinHoodMap(policy=MapPolicy.from_dict(APP_CONFIG.map.to_dict()))


def persist_map(m: OrderedRobinHoodMap, snapshot: str | None) -> None:
    if not snapshot:
        logger.debug("No --snapshot given; changes are discarded")
        return
    path = _snapshot_path(snapshot)
    m.save(str(path), compress=path.suffix == ".gz")


_WATCHDOG_CHECKS = (
    ("load_factor", "load_factor_warn"),
    ("max_probe_distance", "max_probe_warn"),
)


def watchdog_alerts(stats: dict[str, Any]) -> list[dict[str, Any]]:
    """Stats that reached their configured watchdog threshold, each logged as a warning."""

    policy = APP_CONFIG.watchdog
    if not policy.enabled:
        return []
    alerts: list[dict[str, Any]] = []
    for metric, limit_name in _WATCHDOG_CHECKS:
        threshold = getattr(policy, limit_name)
        if threshold is None or stats[metric] < threshold:
            continue
        alert = {"metric": metric, "value": stats[metric], "threshold": threshold}
        logger.warning("Watchdog: %(metric)s=%(value)s reached threshold %(threshold)s", alert)
        alerts.append(alert)
    return alerts


def verify_snapshot(path: str, verbose: bool = False) -> int:
    """Rebuild the map stored at ``path`` and check its index invariants."""

    try:
        m = OrderedRobinHoodMap.load(str(_snapshot_path(path)))
    except (OSError, ValueError, TypeError) as exc:
        print(f"ERROR: failed to load snapshot: {exc}")
        return 1
    ok, messages = verify_map(m, verbose)
    print("OK: snapshot verified" if ok else "FAIL: snapshot invariants violated")
    for message in messages:
        print(message)
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rhmap",
        description="Insertion-ordered Robin Hood hash map backed by a snapshot file.",
    )
    parser.add_argument(
        "--snapshot",
        default=None,
        help="Snapshot holding the map; written after mutations, gzip-compressed for .gz paths",
    )
    parser.add_argument("--json", action="store_true", help="Print command results as JSON")
    parser.add_argument(
        "--config",
        default=None,
        help=f"TOML config file (defaults to ${CONFIG_ENV_VAR} when set)",
    )
    logging_group = parser.add_argument_group("logging")
    logging_group.add_argument("--log-json", action="store_true", help="Write log records as JSON lines")
    logging_group.add_argument("--log-file", default=None, help="Also log to this file, with rotation")
    logging_group.add_argument(
        "--log-max-bytes",
        type=int,
        default=LOG_ROTATE_BYTES,
        help="Rotate the log file at this size (default: %(default)s)",
    )
    logging_group.add_argument(
        "--log-backup-count",
        type=int,
        default=LOG_ROTATE_KEEP,
        help="Rotated log files to keep (default: %(default)s)",
    )
    return parser


def _context() -> CLIContext:
    return CLIContext(
        emit_success=emit_success,
        open_map=open_map,
        persist_map=persist_map,
        verify_snapshot=verify_snapshot,
        watchdog_alerts=watchdog_alerts,
        logger=logger,
        json_enabled=lambda: OUTPUT_JSON,
        guard=guard_cli,
    )


def main(argv: list[str]) -> int:
    parser = build_parser()
    handlers = register_subcommands(parser.add_subparsers(dest="cmd", required=True), _context())
    args = parser.parse_args(argv)

    global OUTPUT_JSON
    OUTPUT_JSON = bool(args.json)
    configure_logging(
        args.log_json,
        args.log_file,
        max_bytes=args.log_max_bytes,
        backup_count=args.log_backup_count,
    )

    cfg_path = args.config or os.getenv(CONFIG_ENV_VAR)
    set_app_config(guard_cli(load_app_config)(cfg_path))
    if cfg_path:
        logger.info("Loaded config from %s", cfg_path)

    if args.cmd not in handlers:
        raise PolicyError(f"Unknown command {args.cmd}")
    return handlers[args.cmd](args)


def console_main() -> None:
    """Entry point for console_scripts."""

    try:
        code = main(sys.argv[1:])
    except SystemExit:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception("Fatal error: %s", exc)
        raise SystemExit(2) from exc
    raise SystemExit(code)


if __name__ == "__main__":
    console_main()
