from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable

from app.services.dpia_engine import INTERFACES_CODE, DpiaResult
from app.services.questions import QuestionNode, QuestionTemplate, node_from_template
from app.utils.tristate import TriState

MODULE_KEY = "connections"


class ConnectionTier(str, Enum):
    UNKNOWN = "Unknown"
    NONE = "None"
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


TIER_SCORES: dict[ConnectionTier, int] = {
    ConnectionTier.UNKNOWN: 0,
    ConnectionTier.NONE: 0,
    ConnectionTier.LOW: 1,
    ConnectionTier.MEDIUM: 2,
    ConnectionTier.HIGH: 3,
}

_SENSITIVITY_TIERS: dict[str, ConnectionTier] = {
    "none": ConnectionTier.NONE,
    "geen": ConnectionTier.NONE,
    "low": ConnectionTier.LOW,
    "laag": ConnectionTier.LOW,
    "aggregated/anonymized/pseudonymous": ConnectionTier.MEDIUM,
    "aggregated": ConnectionTier.MEDIUM,
    "anonymized": ConnectionTier.MEDIUM,
    "anonymised": ConnectionTier.MEDIUM,
    "pseudonymous": ConnectionTier.MEDIUM,
    "pseudonymised": ConnectionTier.MEDIUM,
    "geaggregeerd/geanonimiseerd/pseudoniem": ConnectionTier.MEDIUM,
    "identifiable medical/personal": ConnectionTier.HIGH,
    "identifiable": ConnectionTier.HIGH,
    "identificeerbaar medisch of persoon": ConnectionTier.HIGH,
}

INTERFACES_GATEKEEPER = QuestionTemplate(
    "interfaces",
    "Does the solution exchange data with other systems through interfaces?",
    is_derived=True,
    source=f"dpia:{INTERFACES_CODE}",
)


@dataclass(slots=True, frozen=True)
class ConnectionInput:
    id: str
    name: str
    type: str = ""
    direction: str = ""
    data_sensitivity: str = ""


@dataclass(slots=True, frozen=True)
class AssessedConnection:
    id: str
    name: str
    type: str
    direction: str
    data_sensitivity: str
    tier: ConnectionTier

    @property
    def score(self) -> int:
        return TIER_SCORES[self.tier]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "direction": self.direction,
            "data_sensitivity": self.data_sensitivity,
            "risk_level": self.tier.value,
            "risk_score": self.score,
        }


@dataclass(slots=True, frozen=True)
class ConnectionsResult:
    questions: tuple[QuestionNode, ...]
    connections: tuple[AssessedConnection, ...]
    overall: ConnectionTier
    status: str
    explanation: str

    @property
    def score(self) -> int:
        return TIER_SCORES[self.overall]

    @property
    def gatekeeper(self) -> TriState:
        return self.questions[0].answer if self.questions else TriState.UNKNOWN

    @property
    def is_complete(self) -> bool:
        return self.overall is not ConnectionTier.UNKNOWN

    @property
    def has_input(self) -> bool:
        return bool(self.connections) or self.gatekeeper.is_known

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": MODULE_KEY,
            "questions": [q.to_dict() for q in self.questions],
            "connections": [c.to_dict() for c in self.connections],
            "overall_risk_level": self.overall.value,
            "verdict": self.overall.value,
            "risk_score": self.score,
            "status": self.status,
            "explanation": self.explanation,
            "is_complete": self.is_complete,
        }


def tier_for_sensitivity(value: str | None) -> ConnectionTier:
    key = " ".join((value or "").strip().lower().split())
    return _SENSITIVITY_TIERS.get(key, ConnectionTier.UNKNOWN)


def compute_connections(connections: Iterable[ConnectionInput], dpia: DpiaResult) -> ConnectionsResult:
    gatekeeper = dpia.answer(INTERFACES_CODE)
    questions = (node_from_template(INTERFACES_GATEKEEPER, gatekeeper),)
    assessed = tuple(
        AssessedConnection(
            id=c.id,
            name=c.name,
            type=c.type,
            direction=c.direction,
            data_sensitivity=c.data_sensitivity,
            tier=tier_for_sensitivity(c.data_sensitivity),
        )
        for c in sorted(connections, key=lambda item: (item.name.lower(), item.id))
    )

    if not assessed:
        if gatekeeper is TriState.NO:
            return ConnectionsResult(
                questions,
                (),
                ConnectionTier.NONE,
                "No connections according to DPIA",
                "The DPIA quickscan states there are no interfaces with other systems.",
            )
        if gatekeeper is TriState.YES:
            return ConnectionsResult(
                questions,
                (),
                ConnectionTier.UNKNOWN,
                "No connections registered",
                "The DPIA quickscan reports interfaces, but no connections have been registered yet.",
            )
        return ConnectionsResult(
            questions,
            (),
            ConnectionTier.UNKNOWN,
            "Unknown",
            "No connections registered and the DPIA interface question is unanswered.",
        )

    recognised = [c for c in assessed if c.tier is not ConnectionTier.UNKNOWN]
    if recognised:
        overall = max(recognised, key=lambda c: c.score).tier
    else:
        overall = ConnectionTier.UNKNOWN

    counts = {tier: sum(1 for c in assessed if c.tier is tier) for tier in ConnectionTier}
    summary = ", ".join(f"{tier.value}: {count}" for tier, count in counts.items() if count)
    explanation = f"{len(assessed)} connection(s) assessed ({summary}); overall level {overall.value}."
    if gatekeeper is TriState.NO:
        explanation += " Note: the DPIA quickscan states there are no interfaces, yet connections are registered."
    return ConnectionsResult(questions, assessed, overall, "Connections assessed", explanation)
