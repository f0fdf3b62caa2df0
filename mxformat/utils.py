from __future__ import annotations

import functools
import re
from typing import Any, Callable, Generic, Optional, TypeVar, cast

_T = TypeVar("_T")

# -- characters HTML treats as inter-element whitespace; NBSP is not among them --
HTML_WHITESPACE_CHARS = " \t\n\f\r"

_INT_RE = re.compile(r"[+-]?\d+")
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


def is_blank(text: str) -> bool:
    """True when `text` is empty or contains only HTML whitespace characters."""
    return all(c in HTML_WHITESPACE_CHARS for c in text)


def int_or_none(value: Optional[str]) -> Optional[int]:
    """Parse `value` as a signed 32-bit decimal integer, or None when it is not one.

    Surrounding whitespace, digit-group underscores and other forms `int()` would otherwise
    accept are rejected; attribute and payload values are expected to be bare integers.
    """
    if not value or not _INT_RE.fullmatch(value):
        return None
    number = int(value)
    if number < _INT32_MIN or number > _INT32_MAX:
        return None
    return number


class lazyproperty(Generic[_T]):
    """Decorator like @property, but evaluated only on first access.

    The decorated method is evaluated once per instance; the value is cached in the instance
    `__dict__` under the method name and returned on every later access. Assignment raises
    AttributeError, so the cached value behaves as an immutable attribute.

    Typical use is constructing a collaborator object (or an expensive derived value) on first
    use rather than in the constructor.
    """

    def __init__(self, fget: Callable[..., _T]) -> None:
        # --- maintain a reference to the wrapped getter method
        self._fget = fget
        # --- and store the name of that decorated method
        self._name = fget.__name__
        # --- adopt fget's __name__, __doc__, and other attributes
        functools.update_wrapper(self, fget)  # pyright: ignore

    def __get__(self, obj: Any, type: Any = None) -> _T:
        # --- when accessed on class, e.g. Obj.fget, just return this descriptor
        if obj is None:
            return self  # type: ignore

        # --- on first access the __dict__ item is absent; evaluate fget() and store the value
        value = obj.__dict__.get(self._name)
        if value is None:
            value = self._fget(obj)
            obj.__dict__[self._name] = value
        return cast(_T, value)

    def __set__(self, obj: Any, value: Any) -> None:
        """Raises unconditionally, to preserve read-only behavior."""
        raise AttributeError("can't set attribute")
