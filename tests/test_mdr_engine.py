from __future__ import annotations

import pytest

from app.services.dpia_engine import compute_dpia
from app.services.mdr_engine import MdrClass, compute_mdr, editable_codes
from app.utils.tristate import TriState


def _answers_by_code(result) -> dict[str, TriState]:
    return {q.code: q.answer for q in result.questions}


def test_no_answers_is_unknown() -> None:
    result = compute_mdr({}, compute_dpia({}))
    assert result.classification is MdrClass.UNKNOWN
    assert not result.is_complete
    assert not result.has_input


def test_no_medical_purpose_is_not_a_device_and_forces_none() -> None:
    dpia = compute_dpia({"Q2": "no"})
    result = compute_mdr({"C": "yes", "E": "fatal_or_irreversible"}, dpia)
    answers = _answers_by_code(result)
    assert result.classification is MdrClass.NOT_MEDICAL_DEVICE
    assert answers["B"] is TriState.YES
    assert answers["C"] is TriState.NO
    assert answers["D"] is TriState.NO
    assert result.questions[-1].choice == "none"


def test_medical_purpose_without_interpretation_is_class_one() -> None:
    dpia = compute_dpia({"Q2": "yes", "Q3": "no"})
    result = compute_mdr({"E": "serious"}, dpia)
    assert result.classification is MdrClass.CLASS_I
    assert result.is_complete
    assert result.questions[-1].choice == "none"


def test_missing_severity_is_incomplete() -> None:
    dpia = compute_dpia({"Q2": "yes", "Q3": "yes"})
    result = compute_mdr({}, dpia)
    assert result.classification is MdrClass.UNKNOWN
    assert not result.is_complete
    assert result.has_input


@pytest.mark.parametrize(
    ("severity", "expected"),
    [
        ("fatal_or_irreversible", MdrClass.CLASS_III),
        ("serious", MdrClass.CLASS_IIB),
        ("ernstig", MdrClass.CLASS_IIB),
        ("non_serious", MdrClass.CLASS_IIA),
        ("none", MdrClass.CLASS_I),
    ],
)
def test_severity_decides_class(severity: str, expected: MdrClass) -> None:
    dpia = compute_dpia({"Q2": "yes", "Q3": "yes"})
    result = compute_mdr({"E": severity}, dpia)
    assert result.classification is expected
    assert result.is_complete


def test_unrecognised_severity_falls_back_to_class_one() -> None:
    dpia = compute_dpia({"Q2": "yes", "Q3": "yes"})
    result = compute_mdr({"E": "catastrophic"}, dpia)
    assert result.classification is MdrClass.CLASS_I
    assert "not recognised" in result.explanation


def test_prefill_wins_over_manual_answer() -> None:
    dpia = compute_dpia({"Q2": "yes"})
    result = compute_mdr({"A": "no", "C": "yes", "E": "serious"}, dpia)
    answers = _answers_by_code(result)
    assert answers["A"] is TriState.YES
    assert answers["C"] is TriState.YES
    assert result.classification is MdrClass.CLASS_IIB


def test_manual_answers_fill_empty_prefill() -> None:
    result = compute_mdr({"A": "yes", "C": "no"}, compute_dpia({}))
    assert result.classification is MdrClass.CLASS_I


def test_editable_codes_follow_prefill() -> None:
    assert editable_codes(compute_dpia({})) == {"A", "C", "E"}
    assert editable_codes(compute_dpia({"Q2": "yes"})) == {"C", "E"}
    assert editable_codes(compute_dpia({"Q2": "yes", "Q3": "no"})) == {"E"}
