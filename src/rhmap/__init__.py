"""Insertion-ordered hash map over a Robin Hood probe index."""

from . import analysis, contracts, core, io
from .config import AppConfig, MapPolicy, WatchdogPolicy, load_app_config
from .contracts.error import KeyNotFoundError
from .core.maps import EntryView, OrderedRobinHoodMap

__all__ = [
    "AppConfig",
    "EntryView",
    "KeyNotFoundError",
    "MapPolicy",
    "OrderedRobinHoodMap",
    "WatchdogPolicy",
    "analysis",
    "contracts",
    "core",
    "io",
    "load_app_config",
]
