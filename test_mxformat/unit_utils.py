"""Helpers shared by the `mxformat` unit tests."""

from __future__ import annotations

import difflib
from typing import Any
from unittest.mock import Mock, call, create_autospec, patch

from pytest import FixtureRequest, LogCaptureFixture  # noqa: PT013

from mxformat.documents.elements import ParseResult

__all__ = (
    "FixtureRequest",
    "LogCaptureFixture",
    "Mock",
    "assert_round_trips_through_JSON",
    "call",
    "function_mock",
    "instance_mock",
    "method_mock",
)


def assert_round_trips_through_JSON(result: ParseResult) -> None:
    """Fail unless `result` serializes to the same JSON after a trip through `from_json()`."""
    json_before = result.to_json(indent=2)
    json_after = ParseResult.from_json(json_before).to_json(indent=2)

    assert json_after == json_before, _diff("parse result JSON changed", json_after, json_before)


def _diff(heading: str, actual: str, expected: str) -> str:
    """`heading` followed by a line diff, "+" marking lines only in `actual`."""
    lines = difflib.Differ().compare(
        actual.splitlines(keepends=True), expected.splitlines(keepends=True)
    )
    return f"{heading} ('+': only in actual, '-': missing from actual)\n" + "".join(lines)


# ------------------------------------------------------------------------------------------------
# MOCKING FIXTURES
# ------------------------------------------------------------------------------------------------
# Each helper is called from a fixture or test with pytest's `request` and undoes its patch when
# that test finishes.
# ------------------------------------------------------------------------------------------------


def function_mock(
    request: FixtureRequest, q_function_name: str, autospec: bool = True, **kwargs: Any
) -> Mock:
    """Patch the function at dotted path `q_function_name` for the duration of the test."""
    _patch = patch(q_function_name, autospec=autospec, **kwargs)
    request.addfinalizer(_patch.stop)
    return _patch.start()


def instance_mock(
    request: FixtureRequest,
    cls: type,
    name: str | None = None,
    spec_set: bool = True,
    **kwargs: Any,
):
    """An autospecced stand-in for an instance of `cls`.

    Setting an attribute `cls` does not define fails. The mock is named after the requesting
    fixture unless `name` is given.
    """
    return create_autospec(
        cls,
        _name=request.fixturename if name is None else name,
        spec_set=spec_set,
        instance=True,
        **kwargs,
    )


def method_mock(
    request: FixtureRequest,
    cls: type,
    method_name: str,
    autospec: bool = True,
    **kwargs: Any,
):
    """Patch `cls.method_name` for the duration of the test; calls receive `self` first."""
    _patch = patch.object(cls, method_name, autospec=autospec, **kwargs)
    request.addfinalizer(_patch.stop)
    return _patch.start()
