"""Driver argument values and the skip sentinel error."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


class SkipError(Exception):
    """Raised by a driver call to say the fast path is not supported."""

    def __init__(self, message: str = "driver: skip fast-path; continue as if unimplemented") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class NamedValue:
    """A statement argument with an optional name and a 1-based ordinal."""

    name: str = ""
    ordinal: int = 0
    value: Any = None


def values_to_named_values(values: Iterable[Any] | None) -> list[NamedValue] | None:
    """Turn positional values into named values numbered from 1."""
    if values is None:
        return None
    return [NamedValue(ordinal=position, value=value) for position, value in enumerate(values, start=1)]


def named_values_to_values(named_values: Iterable[NamedValue] | None) -> list[Any] | None:
    """Strip names and ordinals, keeping only the values."""
    if named_values is None:
        return None
    return [named.value for named in named_values]