from __future__ import annotations

from app.utils.tristate import TriState, both_yes, copy_value, either_yes, family_aggregate, is_blank

Y, N, U = TriState.YES, TriState.NO, TriState.UNKNOWN


def test_parse_accepts_english_and_dutch_spellings() -> None:
    assert TriState.parse("Yes") is Y
    assert TriState.parse(" ja ") is Y
    assert TriState.parse("1") is Y
    assert TriState.parse(True) is Y
    assert TriState.parse("nee") is N
    assert TriState.parse("false") is N
    assert TriState.parse(False) is N


def test_parse_anything_else_is_unknown() -> None:
    assert TriState.parse(None) is U
    assert TriState.parse("") is U
    assert TriState.parse("maybe") is U
    assert TriState.parse("unknown") is U


def test_family_aggregate() -> None:
    assert family_aggregate([N, N, N]) is N
    assert family_aggregate([N, Y, N]) is Y
    assert family_aggregate([N, U, N]) is U
    assert family_aggregate([U, Y]) is Y
    assert family_aggregate([]) is U


def test_either_yes_needs_two_definite_no() -> None:
    assert either_yes(Y, U) is Y
    assert either_yes(U, Y) is Y
    assert either_yes(N, N) is N
    assert either_yes(N, U) is U
    assert either_yes(U, U) is U


def test_both_yes_is_closed() -> None:
    assert both_yes(Y, Y) is Y
    assert both_yes(Y, U) is N
    assert both_yes(U, U) is N
    assert both_yes(N, Y) is N


def test_copy_value_and_helpers() -> None:
    for value in (Y, N, U):
        assert copy_value(value) is value
    assert Y.negate() is N
    assert U.negate() is U
    assert N.to_bool() is False
    assert U.to_bool() is None
    assert is_blank("  ")
    assert not is_blank("no")
