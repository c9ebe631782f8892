from __future__ import annotations

import json

import pytest

from rhmap.contracts.error import (
    BadInputError,
    Exit,
    InvariantError,
    IOErrorEnvelope,
    KeyNotFoundError,
    PolicyError,
    guard_cli,
)


def _run_guarded(exc: BaseException, capsys: pytest.CaptureFixture[str]) -> tuple[int, dict]:
    @guard_cli
    def handler() -> int:
        raise exc

    with pytest.raises(SystemExit) as excinfo:
        handler()
    stderr = capsys.readouterr().err.strip().splitlines()
    return int(excinfo.value.code), json.loads(stderr[-1])


@pytest.mark.parametrize(
    ("exc", "code", "label"),
    [
        (KeyNotFoundError("k"), Exit.NOT_FOUND, "KeyNotFound"),
        (BadInputError("bad"), Exit.BAD_INPUT, "BadInput"),
        (InvariantError("broken"), Exit.INVARIANT, "Invariant"),
        (PolicyError("nope"), Exit.POLICY, "Policy"),
        (IOErrorEnvelope("disk"), Exit.IO, "IO"),
        (FileNotFoundError("missing.snap"), Exit.IO, "FileNotFound"),
    ],
)
def test_guard_cli_maps_exceptions(
    exc: BaseException, code: Exit, label: str, capsys: pytest.CaptureFixture[str]
) -> None:
    rc, envelope = _run_guarded(exc, capsys)
    assert rc == int(code)
    assert envelope["error"] == label


def test_guard_cli_includes_hint(capsys: pytest.CaptureFixture[str]) -> None:
    rc, envelope = _run_guarded(BadInputError("bad", hint="try --help"), capsys)
    assert rc == int(Exit.BAD_INPUT)
    assert envelope == {"error": "BadInput", "detail": "bad", "hint": "try --help"}


def test_guard_cli_passes_through_return_value() -> None:
    assert guard_cli(lambda: 0)() == 0


def test_key_not_found_is_a_key_error() -> None:
    err = KeyNotFoundError(("a", 1))
    assert isinstance(err, KeyError)
    assert err.key == ("a", 1)
    assert str(err) == "Key not found: ('a', 1)"
