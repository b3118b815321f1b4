from __future__ import annotations

from enum import Enum
from typing import Iterable


class TriState(str, Enum):
    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> "TriState":
        if isinstance(value, TriState):
            return value
        if value is None:
            return cls.UNKNOWN
        if isinstance(value, bool):
            return cls.YES if value else cls.NO
        key = str(value).strip().lower()
        if key in _YES_TOKENS:
            return cls.YES
        if key in _NO_TOKENS:
            return cls.NO
        return cls.UNKNOWN

    @classmethod
    def from_bool(cls, value: bool | None) -> "TriState":
        if value is None:
            return cls.UNKNOWN
        return cls.YES if value else cls.NO

    @property
    def is_known(self) -> bool:
        return self is not TriState.UNKNOWN

    def to_bool(self) -> bool | None:
        if self is TriState.YES:
            return True
        if self is TriState.NO:
            return False
        return None

    def negate(self) -> "TriState":
        if self is TriState.YES:
            return TriState.NO
        if self is TriState.NO:
            return TriState.YES
        return TriState.UNKNOWN


_YES_TOKENS = {"yes", "y", "ja", "j", "true", "1"}
_NO_TOKENS = {"no", "n", "nee", "false", "0"}


def family_aggregate(values: Iterable[TriState]) -> TriState:
    """YES if any member is YES, NO only if every member is NO, UNKNOWN otherwise.

    An empty family is UNKNOWN.
    """
    seen = False
    all_no = True
    for value in values:
        seen = True
        if value is TriState.YES:
            return TriState.YES
        if value is not TriState.NO:
            all_no = False
    if seen and all_no:
        return TriState.NO
    return TriState.UNKNOWN


def either_yes(first: TriState, second: TriState) -> TriState:
    """OR with a definite NO: YES if either is YES, NO if both are NO."""
    if first is TriState.YES or second is TriState.YES:
        return TriState.YES
    if first is TriState.NO and second is TriState.NO:
        return TriState.NO
    return TriState.UNKNOWN


def both_yes(first: TriState, second: TriState) -> TriState:
    """AND that never stays open: YES only if both are YES, NO otherwise."""
    if first is TriState.YES and second is TriState.YES:
        return TriState.YES
    return TriState.NO


def copy_value(value: TriState) -> TriState:
    return TriState.parse(value)


def is_blank(value: object) -> bool:
    return value is None or not str(value).strip()
