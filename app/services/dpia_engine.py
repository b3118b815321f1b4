from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from app.services.questions import QuestionNode, QuestionTemplate, answer_for, answer_of, node_from_template
from app.utils.tristate import TriState

MODULE_KEY = "dpia"

PERSONAL_DATA_CODE = "Q1"
MEDICAL_PURPOSE_CODE = "Q2"
CLINICAL_DECISION_CODE = "Q3"
HEALTH_DATA_CODE = "Q4"
NEW_TECHNOLOGY_CODE = "Q6"
OUTSIDE_EEA_CODE = "Q7"
ESSENTIAL_CARE_CODE = "Q11"
INTERFACES_CODE = "Q12"

# Weights follow the quickscan risk indication: low=1, medium=2, high=3.
DPIA_QUESTIONS: tuple[QuestionTemplate, ...] = (
    QuestionTemplate("Q1", "Are personal data processed by the solution?", weight=3, mandatory=True),
    QuestionTemplate(
        "Q2",
        "Is the solution intended for a medical purpose (diagnosis, prevention, monitoring or treatment)?",
        weight=3,
        mandatory=True,
    ),
    QuestionTemplate(
        "Q3",
        "Does the solution interpret clinical data or take decisions that directly affect patient care?",
        weight=3,
        mandatory=True,
    ),
    QuestionTemplate(
        "Q4",
        "Are special categories of personal data (such as health data) processed on a large scale?",
        weight=3,
        mandatory=True,
    ),
    QuestionTemplate("Q5", "Are persons systematically monitored or observed?", weight=2, mandatory=True),
    QuestionTemplate(
        "Q6",
        "Does the solution use new technology such as artificial intelligence or machine learning?",
        weight=2,
        mandatory=True,
    ),
    QuestionTemplate(
        "Q7",
        "Are personal data stored or processed outside the European Economic Area?",
        weight=2,
        mandatory=True,
    ),
    QuestionTemplate(
        "Q8",
        "Are data of vulnerable persons processed (patients, children, clients in care)?",
        weight=2,
        mandatory=True,
    ),
    QuestionTemplate("Q9", "Are datasets from different sources matched or combined?", weight=2, mandatory=True),
    QuestionTemplate("Q10", "Are persons profiled or evaluated (scoring, prediction)?", weight=2, mandatory=True),
    QuestionTemplate(
        "Q11",
        "Does the solution decide on access to essential care (triage, urgency assessment)?",
        weight=3,
        mandatory=True,
    ),
    QuestionTemplate(
        "Q12",
        "Does the solution exchange data with other systems through interfaces?",
        weight=1,
        mandatory=True,
    ),
    QuestionTemplate(
        "Q13",
        "Are personal data retained longer than strictly necessary for the purpose?",
        weight=1,
        mandatory=True,
    ),
    QuestionTemplate(
        "Q14",
        "Is a national identification number (BSN) processed?",
        weight=1,
        mandatory=True,
    ),
)

DPIA_CODES = frozenset(q.code for q in DPIA_QUESTIONS)


@dataclass(slots=True, frozen=True)
class DpiaResult:
    questions: tuple[QuestionNode, ...]
    required: TriState
    reason: str
    answered_mandatory_count: int
    unanswered_mandatory_count: int
    risk_questions_answered_yes: int
    risk_score: float

    @property
    def is_complete(self) -> bool:
        return self.unanswered_mandatory_count == 0 and bool(self.questions)

    @property
    def has_input(self) -> bool:
        return any(q.answer.is_known for q in self.questions)

    @property
    def status(self) -> str:
        if self.required is TriState.YES:
            return "DPIA required"
        if self.required is TriState.NO:
            return "DPIA not required"
        return "Unknown"

    def answer(self, code: str) -> TriState:
        return answer_of(self.questions, code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": MODULE_KEY,
            "questions": [q.to_dict() for q in self.questions],
            "dpia_required": self.required.to_bool(),
            "verdict": self.status,
            "explanation": self.reason,
            "is_complete": self.is_complete,
            "answered_mandatory_count": self.answered_mandatory_count,
            "unanswered_mandatory_count": self.unanswered_mandatory_count,
            "risk_questions_answered_yes": self.risk_questions_answered_yes,
            "risk_score": self.risk_score,
        }


def compute_dpia(
    answers: Mapping[str, str | None],
    templates: tuple[QuestionTemplate, ...] = DPIA_QUESTIONS,
) -> DpiaResult:
    nodes = tuple(node_from_template(t, answer_for(answers, t.code)) for t in templates)
    if not nodes:
        return DpiaResult(
            questions=(),
            required=TriState.UNKNOWN,
            reason="No DPIA quickscan questions are configured; the DPIA requirement cannot be determined.",
            answered_mandatory_count=0,
            unanswered_mandatory_count=0,
            risk_questions_answered_yes=0,
            risk_score=0.0,
        )

    mandatory = [n for n in nodes if n.mandatory]
    answered = sum(1 for n in mandatory if n.answer.is_known)
    unanswered = len(mandatory) - answered
    risk_yes = sum(1 for n in nodes if n.weight >= 2 and n.answer is TriState.YES)
    risk_score = sum(n.weight for n in nodes if n.answer is TriState.YES) / len(nodes)

    if unanswered:
        required = TriState.UNKNOWN
        reason = f"{unanswered} mandatory quickscan question(s) still unanswered; the DPIA requirement is not yet known."
    elif answer_of(nodes, PERSONAL_DATA_CODE) is TriState.NO:
        required = TriState.NO
        reason = "No personal data are processed. A DPIA is not required; registering the processing is sufficient."
    elif any(n.answer is TriState.YES for n in nodes):
        required = TriState.YES
        flagged = ", ".join(n.code for n in nodes if n.answer is TriState.YES)
        reason = f"At least one quickscan criterion applies ({flagged}). A DPIA is required."
    else:
        required = TriState.NO
        reason = "All quickscan criteria were answered 'No'. A DPIA is not required."

    return DpiaResult(
        questions=nodes,
        required=required,
        reason=reason,
        answered_mandatory_count=answered,
        unanswered_mandatory_count=unanswered,
        risk_questions_answered_yes=risk_yes,
        risk_score=risk_score,
    )


def editable_codes() -> frozenset[str]:
    return DPIA_CODES
