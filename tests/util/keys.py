from __future__ import annotations

from dataclasses import dataclass


def identity_hash(key: int) -> int:
    """Hash that makes home slots easy to reason about: ``home = key % capacity``."""

    return key


@dataclass(frozen=True)
class CollidingKey:
    """Key whose hash intentionally collides with peers for stress testing."""

    value: int

    def __hash__(self) -> int:  # pragma: no cover - trivial wrapper
        return 0

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"CK({self.value})"
