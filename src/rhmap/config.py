"""Typed configuration loader for rhmap."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from .contracts.error import BadInputError

CONFIG_ENV_VAR = "RHMAP_CONFIG"

_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}
_DISABLED_WORDS = {"none", "null", "disabled", "off"}


@dataclass
class MapPolicy:
    """Sizing and growth parameters of the probe index."""

    initial_capacity: int = 20
    growth_factor: int = 5
    growth_offset: int = 20
    max_load_factor: float = 0.5
    large_map_warn_threshold: int = 1_000_000

    def validate(self) -> None:
        if self.initial_capacity < 1:
            raise BadInputError("map.initial_capacity must be >= 1")
        if self.growth_factor < 1:
            raise BadInputError("map.growth_factor must be >= 1")
        if self.growth_offset < 1:
            raise BadInputError("map.growth_offset must be >= 1")
        if not 0.0 < self.max_load_factor < 1.0:
            raise BadInputError(
                "map.max_load_factor must be in (0, 1)",
                hint="a full probe index cannot accept further placements",
            )
        if self.large_map_warn_threshold < 0:
            raise BadInputError("map.large_map_warn_threshold must be >= 0")

    def grown_capacity(self, size: int) -> int:
        return self.growth_factor * size + self.growth_offset

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> MapPolicy:
        known = {name for name in cls.__dataclass_fields__}
        unknown = sorted(set(data) - known)
        if unknown:
            raise BadInputError(f"Unknown [map] keys: {', '.join(unknown)}")
        kwargs: dict[str, Any] = {}
        for name, raw in data.items():
            caster: Callable[[Any], Any] = float if name == "max_load_factor" else int
            if isinstance(raw, bool):
                raise BadInputError(f"map.{name} must be a number")
            try:
                kwargs[name] = caster(raw)
            except (TypeError, ValueError) as exc:
                raise BadInputError(f"map.{name} must be a number") from exc
        return cls(**kwargs)


@dataclass
class WatchdogPolicy:
    enabled: bool = True
    load_factor_warn: float | None = 0.45
    max_probe_warn: int | None = 16

    def validate(self) -> None:
        if self.load_factor_warn is not None and not 0.0 <= self.load_factor_warn <= 1.0:
            raise BadInputError("watchdog.load_factor_warn must be within [0, 1]")
        if self.max_probe_warn is not None and self.max_probe_warn < 0:
            raise BadInputError("watchdog.max_probe_warn must be >= 0 when set")


def _parse_bool(raw: Any, label: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in _TRUE_WORDS:
            return True
        if normalized in _FALSE_WORDS:
            return False
    raise BadInputError(f"{label} must be boolean")


@dataclass
class AppConfig:
    map: MapPolicy = field(default_factory=MapPolicy)
    watchdog: WatchdogPolicy = field(default_factory=WatchdogPolicy)

    @classmethod
    def load(cls, path: Path | None) -> AppConfig:
        if path is None:
            cfg = cls()
        else:
            try:
                data = tomllib.loads(path.read_text(encoding="utf-8"))
            except FileNotFoundError as exc:
                raise BadInputError(f"Config file not found: {path}") from exc
            except tomllib.TOMLDecodeError as exc:
                raise BadInputError(f"Invalid TOML: {exc}") from exc
            cfg = cls.from_dict(data)
        cfg.apply_env_overrides(os.environ)
        cfg.validate()
        return cfg

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        map_data = data.get("map", {})
        if not isinstance(map_data, dict):
            raise BadInputError("[map] section must be a table")
        policy = MapPolicy.from_dict(map_data)

        watchdog_data = data.get("watchdog", {})
        if not isinstance(watchdog_data, dict):
            raise BadInputError("[watchdog] section must be a table")
        watchdog_kwargs: dict[str, Any] = {}
        if "enabled" in watchdog_data:
            watchdog_kwargs["enabled"] = _parse_bool(watchdog_data["enabled"], "watchdog.enabled")

        def coerce_optional(key: str, caster: Callable[[Any], Any]) -> None:
            if key not in watchdog_data:
                return
            value = watchdog_data[key]
            if value is None or (isinstance(value, str) and value.strip().lower() in _DISABLED_WORDS):
                watchdog_kwargs[key] = None
                return
            try:
                watchdog_kwargs[key] = caster(value)
            except (TypeError, ValueError) as exc:
                raise BadInputError(f"watchdog.{key} must be a number or 'none'") from exc

        coerce_optional("load_factor_warn", float)
        coerce_optional("max_probe_warn", int)

        return cls(map=policy, watchdog=WatchdogPolicy(**watchdog_kwargs))

    def apply_env_overrides(self, env: Mapping[str, str]) -> None:
        map_mapping: dict[str, tuple[str, Callable[[str], Any]]] = {
            "RHMAP_INITIAL_CAPACITY": ("initial_capacity", int),
            "RHMAP_GROWTH_FACTOR": ("growth_factor", int),
            "RHMAP_GROWTH_OFFSET": ("growth_offset", int),
            "RHMAP_MAX_LOAD_FACTOR": ("max_load_factor", float),
            "RHMAP_LARGE_WARN_THRESHOLD": ("large_map_warn_threshold", int),
        }
        for key, (attr, caster) in map_mapping.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.map, attr, value)

        raw_enabled = env.get("WATCHDOG_ENABLED")
        if raw_enabled is not None:
            try:
                self.watchdog.enabled = _parse_bool(raw_enabled, "WATCHDOG_ENABLED")
            except BadInputError as exc:
                raise BadInputError(f"Invalid env override WATCHDOG_ENABLED={raw_enabled!r}") from exc

        watchdog_overrides: dict[str, tuple[str, Callable[[str], Any]]] = {
            "WATCHDOG_LOAD_FACTOR_WARN": ("load_factor_warn", float),
            "WATCHDOG_MAX_PROBE_WARN": ("max_probe_warn", int),
        }
        for key, (attr, caster) in watchdog_overrides.items():
            raw_value = env.get(key)
            if raw_value is None:
                continue
            if raw_value.strip().lower() in _DISABLED_WORDS:
                setattr(self.watchdog, attr, None)
                continue
            try:
                value = caster(raw_value)
            except ValueError as exc:
                raise BadInputError(f"Invalid env override {key}={raw_value!r}") from exc
            setattr(self.watchdog, attr, value)

    def validate(self) -> None:
        self.map.validate()
        self.watchdog.validate()


def load_app_config(path: str | None) -> AppConfig:
    config_path = Path(path) if path else None
    return AppConfig.load(config_path)
