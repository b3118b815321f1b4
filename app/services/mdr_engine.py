from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from app.services.dpia_engine import CLINICAL_DECISION_CODE, MEDICAL_PURPOSE_CODE, DpiaResult
from app.services.questions import (
    QuestionNode,
    QuestionTemplate,
    answer_for,
    answer_of,
    choice_for,
    node_from_template,
)
from app.utils.tristate import TriState

MODULE_KEY = "mdr"


class MdrClass(str, Enum):
    UNKNOWN = "Unknown"
    NOT_MEDICAL_DEVICE = "Not a medical device"
    CLASS_I = "Class I"
    CLASS_IIA = "Class IIa"
    CLASS_IIB = "Class IIb"
    CLASS_III = "Class III"


class Severity(str, Enum):
    FATAL_OR_IRREVERSIBLE = "fatal_or_irreversible"
    SERIOUS = "serious"
    NON_SERIOUS = "non_serious"
    NONE = "none"


_SEVERITY_ALIASES = {
    "fatal_or_irreversible": Severity.FATAL_OR_IRREVERSIBLE,
    "fatal/irreversible": Severity.FATAL_OR_IRREVERSIBLE,
    "dodelijk_of_onherstelbaar": Severity.FATAL_OR_IRREVERSIBLE,
    "serious": Severity.SERIOUS,
    "ernstig": Severity.SERIOUS,
    "non_serious": Severity.NON_SERIOUS,
    "non-serious": Severity.NON_SERIOUS,
    "niet_ernstig": Severity.NON_SERIOUS,
    "none": Severity.NONE,
    "geen": Severity.NONE,
}

_SEVERITY_CLASS = {
    Severity.FATAL_OR_IRREVERSIBLE: MdrClass.CLASS_III,
    Severity.SERIOUS: MdrClass.CLASS_IIB,
    Severity.NON_SERIOUS: MdrClass.CLASS_IIA,
}

MEDICAL_PURPOSE = QuestionTemplate(
    "A",
    "Is the solution intended for a medical purpose?",
    source=f"dpia:{MEDICAL_PURPOSE_CODE}",
)
ADMINISTRATIVE_ONLY = QuestionTemplate(
    "B",
    "Is the solution used for administrative purposes only?",
    is_derived=True,
    source="mdr:A",
)
CLINICAL_INTERPRETATION = QuestionTemplate(
    "C",
    "Does the solution interpret clinical data?",
    source=f"dpia:{CLINICAL_DECISION_CODE}",
)
SUPPORTS_DECISION = QuestionTemplate(
    "D",
    "Does the solution support clinical decisions?",
    is_derived=True,
    source="mdr:C",
)
HARM_SEVERITY = QuestionTemplate(
    "E",
    "What is the most severe harm a malfunction could cause (fatal_or_irreversible, serious, non_serious, none)?",
)

MDR_QUESTIONS = (MEDICAL_PURPOSE, ADMINISTRATIVE_ONLY, CLINICAL_INTERPRETATION, SUPPORTS_DECISION, HARM_SEVERITY)


def parse_severity(value: str | None) -> Severity | None:
    if value is None:
        return None
    return _SEVERITY_ALIASES.get(value.strip().lower())


@dataclass(slots=True, frozen=True)
class MdrResult:
    questions: tuple[QuestionNode, ...]
    classification: MdrClass
    is_complete: bool
    explanation: str

    @property
    def has_input(self) -> bool:
        return any(q.answer.is_known or q.choice for q in self.questions)

    @property
    def status(self) -> str:
        return "MDR classified" if self.is_complete else "Unknown"

    def answer(self, code: str) -> TriState:
        return answer_of(self.questions, code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": MODULE_KEY,
            "questions": [q.to_dict() for q in self.questions],
            "classification": self.classification.value,
            "verdict": self.classification.value,
            "status": self.status,
            "explanation": self.explanation,
            "is_complete": self.is_complete,
        }


def _prefilled(prefill: TriState, manual: TriState) -> TriState:
    # Upstream answer wins; the manual value only fills a gap.
    return prefill if prefill.is_known else manual


def editable_codes(dpia: DpiaResult) -> frozenset[str]:
    codes = {HARM_SEVERITY.code}
    if not dpia.answer(MEDICAL_PURPOSE_CODE).is_known:
        codes.add(MEDICAL_PURPOSE.code)
    if not dpia.answer(CLINICAL_DECISION_CODE).is_known:
        codes.add(CLINICAL_INTERPRETATION.code)
    return frozenset(codes)


def compute_mdr(answers: Mapping[str, str | None], dpia: DpiaResult) -> MdrResult:
    a = _prefilled(dpia.answer(MEDICAL_PURPOSE_CODE), answer_for(answers, MEDICAL_PURPOSE.code))
    c = _prefilled(dpia.answer(CLINICAL_DECISION_CODE), answer_for(answers, CLINICAL_INTERPRETATION.code))
    e = choice_for(answers, HARM_SEVERITY.code)

    if a is TriState.NO:
        c = TriState.NO
    b = a.negate()
    d = c

    def build(severity: str | None) -> tuple[QuestionNode, ...]:
        return (
            node_from_template(MEDICAL_PURPOSE, a),
            node_from_template(ADMINISTRATIVE_ONLY, b),
            node_from_template(CLINICAL_INTERPRETATION, c),
            node_from_template(SUPPORTS_DECISION, d),
            node_from_template(HARM_SEVERITY, TriState.UNKNOWN, choice=severity),
        )

    if not a.is_known and not b.is_known and not c.is_known and not d.is_known and e is None:
        return MdrResult(build(e), MdrClass.UNKNOWN, False, "No MDR answers have been provided yet.")

    if a is TriState.NO:
        return MdrResult(
            build(Severity.NONE.value),
            MdrClass.NOT_MEDICAL_DEVICE,
            True,
            "The solution has no medical purpose and is not a medical device.",
        )

    if a is TriState.YES and c is TriState.NO and d is TriState.NO:
        return MdrResult(
            build(Severity.NONE.value),
            MdrClass.CLASS_I,
            True,
            "Medical purpose without clinical interpretation or decision support: Class I.",
        )

    if not (a.is_known and b.is_known and c.is_known and d.is_known) or e is None:
        return MdrResult(
            build(e),
            MdrClass.UNKNOWN,
            False,
            "Not all MDR questions are answered. Complete A to E to classify the solution.",
        )

    nodes = build(e)
    if b is TriState.YES:
        return MdrResult(nodes, MdrClass.NOT_MEDICAL_DEVICE, True, "Administrative use only: not a medical device.")
    if c is not TriState.YES:
        return MdrResult(nodes, MdrClass.CLASS_I, True, "No clinical interpretation: Class I.")
    if d is not TriState.YES:
        return MdrResult(nodes, MdrClass.CLASS_I, True, "No clinical decision support: Class I.")

    severity = parse_severity(e)
    mdr_class = _SEVERITY_CLASS.get(severity) if severity else None
    if severity is Severity.NONE:
        return MdrResult(nodes, MdrClass.CLASS_I, True, "No harm expected from a malfunction: Class I.")
    if mdr_class is None:
        return MdrResult(nodes, MdrClass.CLASS_I, True, f"Harm severity '{e}' not recognised; defaulting to Class I.")
    return MdrResult(nodes, mdr_class, True, f"Harm severity '{severity.value}' gives {mdr_class.value}.")
