from __future__ import annotations

from fractions import Fraction

import pytest

from app.services.connections_engine import ConnectionInput
from app.services.dpia_engine import DPIA_QUESTIONS
from app.services.evaluation import evaluate_assessment
from app.services.overall_risk import label_for, normalize_general_value, risk_class_for


@pytest.mark.parametrize(
    ("total", "expected"),
    [
        (Fraction(0), 0),
        (Fraction(1), 0),
        (Fraction(19, 10), 0),
        (Fraction(2), 1),
        (Fraction(5), 1),
        (Fraction(7), 2),
        (Fraction(10), 2),
        (Fraction(12), 3),
        (Fraction(27, 8), 1),
    ],
)
def test_risk_class_threshold_is_exact(total: Fraction, expected: int) -> None:
    assert risk_class_for(total) == expected


def test_labels() -> None:
    assert [label_for(c) for c in range(5)] == ["none", "low", "medium", "high", "very high"]
    assert label_for(7) == "very high"


def test_no_input_anywhere_leaves_overall_unset() -> None:
    overall = evaluate_assessment({}).overall
    assert overall.score is None
    assert overall.risk_class is None
    assert overall.label is None
    assert overall.to_dict()["risk_score"] is None


def test_general_info_alone_does_not_start_the_overall_risk() -> None:
    overall = evaluate_assessment({"overall": {"supplier": "Acme Health"}}).overall
    assert overall.score is None
    assert dict(overall.general_info)["supplier"] == "Acme Health"


def test_weighted_sum_over_modules() -> None:
    dpia = {q.code: "no" for q in DPIA_QUESTIONS}
    dpia["Q1"] = "yes"
    overall = evaluate_assessment({"dpia": dpia}).overall
    # DPIA required (3) + security Q1 derived from DPIA Q1 (4 / 8).
    assert overall.score == Fraction(7, 2)
    assert overall.risk_class == 1
    assert overall.label == "low"


def test_single_medium_connection_hits_boundary() -> None:
    connection = ConnectionInput(id="1", name="Datawarehouse", data_sensitivity="pseudonymous")
    overall = evaluate_assessment({}, [connection]).overall
    assert overall.score == Fraction(2)
    assert overall.risk_class == 1
    assert overall.label == "low"


def test_normalize_general_values() -> None:
    assert normalize_general_value("contract_date", "2024-05-01T10:00") == "2024-05-01"
    assert normalize_general_value("renewal_date", "31-12-2024") is None
    assert normalize_general_value("contract_status", "Lopend") == "running"
    assert normalize_general_value("contract_status", "nieuw") == "new"
    assert normalize_general_value("contract_status", "paused") is None
    assert normalize_general_value("supplier", "  Acme  ") == "Acme"
    assert normalize_general_value("supplier", "   ") is None
