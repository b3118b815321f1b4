from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from typing import Any, Mapping

from app.services.dpia_engine import OUTSIDE_EEA_CODE, PERSONAL_DATA_CODE, DpiaResult
from app.services.questions import QuestionNode, QuestionTemplate, answer_for, answer_of, node_from_template
from app.utils.tristate import TriState

MODULE_KEY = "security_profile"

RISK_CLASS_WEIGHTS = {
    "low": 1,
    "medium": 2,
    "high": 4,
    "very high": 6,
}


def _question(code: str, prompt: str, risk_class: str, dpia_source: str = "") -> QuestionTemplate:
    return QuestionTemplate(
        code,
        prompt,
        weight=RISK_CLASS_WEIGHTS[risk_class],
        mandatory=True,
        is_derived=bool(dpia_source),
        source=f"dpia:{dpia_source}" if dpia_source else "",
    )


SECURITY_QUESTIONS: tuple[QuestionTemplate, ...] = (
    _question("Q1", "Does the supplier process personal data on behalf of the organisation?", "high", PERSONAL_DATA_CODE),
    _question("Q2", "Does the supplier have (remote) access to production systems or patient data?", "very high"),
    _question("Q3", "Is the solution hosted and operated by the supplier (SaaS or cloud)?", "high"),
    _question("Q4", "Does the supplier rely on subprocessors or third-party hosting?", "high"),
    _question("Q5", "Are data stored or processed outside the European Economic Area?", "high", OUTSIDE_EEA_CODE),
    _question("Q6", "Is the solution critical for continuity of care?", "medium"),
    _question("Q7", "Does the supplier lack a recognised security certification (ISO 27001 / NEN 7510)?", "low"),
    _question("Q8", "Does the solution allow shared accounts or access without multi-factor authentication?", "medium"),
)

CONTINUITY_CODE = "Q6"
EDITABLE_CODES = frozenset(q.code for q in SECURITY_QUESTIONS if not q.is_derived)


@dataclass(slots=True, frozen=True)
class SecurityProfileResult:
    questions: tuple[QuestionNode, ...]
    risk_score: float
    is_complete: bool
    explanation: str
    # Exact mean, kept for the overall risk sum.
    exact_score: Fraction = Fraction(0)

    @property
    def has_input(self) -> bool:
        return any(q.answer.is_known for q in self.questions)

    @property
    def status(self) -> str:
        if self.is_complete:
            return "Security profile assessed"
        if self.has_input:
            return "Incomplete"
        return "Unknown"

    def answer(self, code: str) -> TriState:
        return answer_of(self.questions, code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": MODULE_KEY,
            "questions": [q.to_dict() for q in self.questions],
            "risk_score": self.risk_score,
            "verdict": self.status,
            "status": self.status,
            "explanation": self.explanation,
            "is_complete": self.is_complete,
        }


def compute_security_profile(
    answers: Mapping[str, str | None],
    dpia: DpiaResult,
    templates: tuple[QuestionTemplate, ...] = SECURITY_QUESTIONS,
) -> SecurityProfileResult:
    nodes = tuple(
        node_from_template(
            t,
            dpia.answer(t.source.split(":", 1)[1]) if t.is_derived else answer_for(answers, t.code),
        )
        for t in templates
    )
    if not nodes:
        return SecurityProfileResult((), 0.0, False, "No security profile questions are configured.")

    exact = Fraction(sum(n.weight for n in nodes if n.answer is TriState.YES), len(nodes))
    unanswered = [n.code for n in nodes if not n.answer.is_known]
    is_complete = not unanswered
    if is_complete:
        explanation = f"All {len(nodes)} questions answered; mean supplier risk score {float(exact):.3f}."
    else:
        pending_dpia = [n.code for n in nodes if n.is_derived and not n.answer.is_known]
        explanation = f"{len(unanswered)} question(s) unanswered ({', '.join(unanswered)})."
        if pending_dpia:
            explanation += f" {', '.join(pending_dpia)} follow from the DPIA quickscan."
    return SecurityProfileResult(nodes, float(exact), is_complete, explanation, exact)
