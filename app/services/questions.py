from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from app.utils.tristate import TriState, is_blank


@dataclass(slots=True, frozen=True)
class QuestionTemplate:
    code: str
    prompt: str
    weight: int = 0
    mandatory: bool = False
    is_derived: bool = False
    # Upstream provenance for derived questions, e.g. "dpia:Q1".
    source: str = ""


@dataclass(slots=True, frozen=True)
class QuestionNode:
    code: str
    prompt: str
    answer: TriState = TriState.UNKNOWN
    is_derived: bool = False
    weight: int = 0
    mandatory: bool = False
    choice: str | None = None
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "prompt": self.prompt,
            "answer": self.answer.value,
            "is_derived": self.is_derived,
            "weight": self.weight,
            "mandatory": self.mandatory,
            "source": self.source,
        }
        if self.choice is not None:
            payload["choice"] = self.choice
        return payload


def node_from_template(template: QuestionTemplate, answer: TriState, *, choice: str | None = None) -> QuestionNode:
    return QuestionNode(
        code=template.code,
        prompt=template.prompt,
        answer=answer,
        is_derived=template.is_derived,
        weight=template.weight,
        mandatory=template.mandatory,
        choice=choice,
        source=template.source,
    )


def answer_for(answers: Mapping[str, str | None], code: str) -> TriState:
    return TriState.parse(answers.get(code))


def choice_for(answers: Mapping[str, str | None], code: str) -> str | None:
    raw = answers.get(code)
    if is_blank(raw):
        return None
    return str(raw).strip()


def answer_of(nodes: tuple[QuestionNode, ...], code: str) -> TriState:
    for node in nodes:
        if node.code == code:
            return node.answer
    return TriState.UNKNOWN
