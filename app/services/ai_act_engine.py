from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from app.services.dpia_engine import CLINICAL_DECISION_CODE, ESSENTIAL_CARE_CODE, NEW_TECHNOLOGY_CODE, DpiaResult
from app.services.mdr_engine import MdrClass, MdrResult
from app.services.questions import QuestionNode, QuestionTemplate, answer_for, node_from_template
from app.utils.tristate import TriState, is_blank

MODULE_KEY = "ai_act"


class AiActLevel(str, Enum):
    UNKNOWN = "Unknown"
    OUTSIDE_SCOPE = "No AI system (outside AI Act)"
    LOW = "Low/minimal risk"
    LIMITED = "Limited risk"
    HIGH = "High risk"
    # Reserved for prohibited practices; the decision tree never yields it.
    PROHIBITED = "Prohibited"


LEVEL_SCORES: dict[AiActLevel, int] = {
    AiActLevel.UNKNOWN: 0,
    AiActLevel.OUTSIDE_SCOPE: 0,
    AiActLevel.LOW: 1,
    AiActLevel.LIMITED: 2,
    AiActLevel.HIGH: 3,
    AiActLevel.PROHIBITED: 4,
}

IS_AI_SYSTEM = QuestionTemplate("A", "Is the solution an AI system?", source=f"dpia:{NEW_TECHNOLOGY_CODE}")
HIGH_RISK_DEVICE = QuestionTemplate(
    "B",
    "Is the solution (part of) a medical device above MDR Class I?",
    is_derived=True,
    source="mdr:classification",
)
ESSENTIAL_CARE = QuestionTemplate(
    "C",
    "Does the AI decide on access to essential care (triage, urgency)?",
    source=f"dpia:{ESSENTIAL_CARE_CODE}",
)
DIRECT_CLINICAL_DECISION = QuestionTemplate(
    "D",
    "Does the AI take direct clinical decisions?",
    source=f"dpia:{CLINICAL_DECISION_CODE}",
)
INTERACTIVE = QuestionTemplate("E", "Does the AI interact directly with users (chatbot, voice, image or code generation)?")
GENERATES_CONTENT = QuestionTemplate("F", "Does the AI generate content for users?")

AI_ACT_QUESTIONS = (IS_AI_SYSTEM, HIGH_RISK_DEVICE, ESSENTIAL_CARE, DIRECT_CLINICAL_DECISION, INTERACTIVE, GENERATES_CONTENT)
EDITABLE_CODES = frozenset(q.code for q in AI_ACT_QUESTIONS if not q.is_derived)


@dataclass(slots=True, frozen=True)
class AiActResult:
    questions: tuple[QuestionNode, ...]
    level: AiActLevel
    is_complete: bool
    explanation: str

    @property
    def score(self) -> int:
        return LEVEL_SCORES[self.level]

    @property
    def has_input(self) -> bool:
        return any(q.answer.is_known for q in self.questions)

    @property
    def status(self) -> str:
        return "AI Act classified" if self.level is not AiActLevel.UNKNOWN else "Unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": MODULE_KEY,
            "questions": [q.to_dict() for q in self.questions],
            "risk_level": self.level.value,
            "verdict": self.level.value,
            "risk_score": self.score,
            "status": self.status,
            "explanation": self.explanation,
            "is_complete": self.is_complete,
        }


def high_risk_device_from_mdr(mdr_class: MdrClass) -> TriState:
    if mdr_class in (MdrClass.CLASS_IIA, MdrClass.CLASS_IIB, MdrClass.CLASS_III):
        return TriState.YES
    if mdr_class in (MdrClass.NOT_MEDICAL_DEVICE, MdrClass.CLASS_I):
        return TriState.NO
    return TriState.UNKNOWN


def _manual_or_prefill(answers: Mapping[str, str | None], code: str, prefill: TriState) -> TriState:
    # The user's own answer wins once given; until then the DPIA answer is shown.
    if not is_blank(answers.get(code)):
        manual = answer_for(answers, code)
        if manual.is_known:
            return manual
    return prefill


def compute_ai_act(answers: Mapping[str, str | None], dpia: DpiaResult, mdr: MdrResult) -> AiActResult:
    a = _manual_or_prefill(answers, IS_AI_SYSTEM.code, dpia.answer(NEW_TECHNOLOGY_CODE))
    b = high_risk_device_from_mdr(mdr.classification)
    c = _manual_or_prefill(answers, ESSENTIAL_CARE.code, dpia.answer(ESSENTIAL_CARE_CODE))
    d = _manual_or_prefill(answers, DIRECT_CLINICAL_DECISION.code, dpia.answer(CLINICAL_DECISION_CODE))
    e = answer_for(answers, INTERACTIVE.code)
    f = answer_for(answers, GENERATES_CONTENT.code)

    values = (a, b, c, d, e, f)
    nodes = tuple(node_from_template(t, v) for t, v in zip(AI_ACT_QUESTIONS, values))
    all_known = all(v.is_known for v in values)

    if not any(v.is_known for v in values):
        return AiActResult(nodes, AiActLevel.UNKNOWN, False, "No AI Act answers have been provided yet.")
    if a is not TriState.YES:
        return AiActResult(
            nodes,
            AiActLevel.OUTSIDE_SCOPE,
            a is TriState.NO or all_known,
            "The solution is not identified as an AI system and falls outside the AI Act.",
        )
    if TriState.YES in (b, c, d):
        reasons = [
            label
            for label, value in (
                ("high-risk medical device", b),
                ("access to essential care", c),
                ("direct clinical decisions", d),
            )
            if value is TriState.YES
        ]
        return AiActResult(nodes, AiActLevel.HIGH, all_known, f"High risk: {', '.join(reasons)}.")
    if TriState.YES in (e, f):
        return AiActResult(
            nodes,
            AiActLevel.LIMITED,
            all_known,
            "Limited risk: the AI interacts with users or generates content (transparency obligations).",
        )
    return AiActResult(nodes, AiActLevel.LOW, all_known, "No high-risk or transparency criteria apply: low/minimal risk.")
