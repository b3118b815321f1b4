from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from fractions import Fraction
from typing import Any, Mapping

from app.services.ai_act_engine import AiActResult
from app.services.connections_engine import ConnectionsResult
from app.services.dpia_engine import DpiaResult
from app.services.mdr_engine import MdrClass, MdrResult
from app.services.security_profile_engine import SecurityProfileResult
from app.utils.tristate import TriState, is_blank

logger = logging.getLogger(__name__)

MODULE_KEY = "overall"

DPIA_REQUIRED_SCORE = 3
CLASS_WIDTH = 5
ROUND_UP_THRESHOLD = Fraction(2, 5)

MDR_SCORES: dict[MdrClass, int] = {
    MdrClass.UNKNOWN: 0,
    MdrClass.NOT_MEDICAL_DEVICE: 0,
    MdrClass.CLASS_I: 1,
    MdrClass.CLASS_IIA: 2,
    MdrClass.CLASS_IIB: 3,
    MdrClass.CLASS_III: 4,
}

RISK_LABELS = {0: "none", 1: "low", 2: "medium", 3: "high"}
VERY_HIGH_LABEL = "very high"

TEXT_CODES = ("supplier", "solution", "assessment_version")
DATE_CODES = ("contract_date", "renewal_date", "due_diligence_date")
CONTRACT_STATUS_CODE = "contract_status"
GENERAL_INFO_CODES = frozenset(TEXT_CODES + DATE_CODES + (CONTRACT_STATUS_CODE,))

_CONTRACT_STATUSES = {
    "running": "running",
    "lopend": "running",
    "new": "new",
    "nieuw": "new",
}


@dataclass(slots=True, frozen=True)
class Contribution:
    module: str
    verdict: str
    score: Fraction
    has_input: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": self.module,
            "verdict": self.verdict,
            "score": float(self.score),
            "has_input": self.has_input,
        }


def risk_class_for(total: Fraction) -> int:
    whole = math.floor(total / CLASS_WIDTH)
    remainder = total - whole * CLASS_WIDTH
    risk_class = whole + 1 if remainder / CLASS_WIDTH >= ROUND_UP_THRESHOLD else whole
    return max(risk_class, 0)


def label_for(risk_class: int) -> str:
    return RISK_LABELS.get(risk_class, VERY_HIGH_LABEL)


def normalize_general_value(code: str, value: str | None) -> str | None:
    """Canonical stored form of a general-information field, or None when blank or invalid."""
    if is_blank(value):
        return None
    text = str(value).strip()
    if code in DATE_CODES:
        try:
            return date.fromisoformat(text[:10]).isoformat()
        except ValueError:
            logger.debug("Ignoring invalid date %r for %s", text, code)
            return None
    if code == CONTRACT_STATUS_CODE:
        return _CONTRACT_STATUSES.get(text.lower())
    return text


@dataclass(slots=True, frozen=True)
class OverallRiskResult:
    contributions: tuple[Contribution, ...]
    score: Fraction | None
    risk_class: int | None
    label: str | None
    general_info: tuple[tuple[str, str | None], ...]
    explanation: str

    @property
    def has_input(self) -> bool:
        return self.score is not None

    @property
    def is_complete(self) -> bool:
        return self.score is not None and all(c.has_input for c in self.contributions)

    @property
    def status(self) -> str:
        return self.label if self.label is not None else "Unknown"

    def to_dict(self) -> dict[str, Any]:
        return {
            "module": MODULE_KEY,
            "general_info": dict(self.general_info),
            "contributions": [c.to_dict() for c in self.contributions],
            "risk_score": float(self.score) if self.score is not None else None,
            "risk_class": self.risk_class,
            "risk_label": self.label,
            "verdict": self.status,
            "explanation": self.explanation,
            "is_complete": self.is_complete,
        }


def compute_overall(
    answers: Mapping[str, str | None],
    dpia: DpiaResult,
    connections: ConnectionsResult,
    mdr: MdrResult,
    ai_act: AiActResult,
    security: SecurityProfileResult,
) -> OverallRiskResult:
    contributions = (
        Contribution(
            "dpia",
            dpia.status,
            Fraction(DPIA_REQUIRED_SCORE if dpia.required is TriState.YES else 0),
            dpia.has_input,
        ),
        Contribution("connections", connections.overall.value, Fraction(connections.score), connections.has_input),
        Contribution("mdr", mdr.classification.value, Fraction(MDR_SCORES[mdr.classification]), mdr.has_input),
        Contribution("ai_act", ai_act.level.value, Fraction(ai_act.score), ai_act.has_input),
        Contribution("security_profile", security.status, security.exact_score, security.has_input),
    )
    general_info = tuple(
        (code, normalize_general_value(code, answers.get(code)))
        for code in sorted(GENERAL_INFO_CODES)
    )

    if not any(c.has_input for c in contributions):
        return OverallRiskResult(
            contributions,
            None,
            None,
            None,
            general_info,
            "No module has any answers yet; the overall risk is not determined.",
        )

    total = sum((c.score for c in contributions), Fraction(0))
    risk_class = risk_class_for(total)
    label = label_for(risk_class)
    parts = ", ".join(f"{c.module} {float(c.score):g}" for c in contributions if c.score)
    explanation = f"Total score {float(total):g} ({parts or 'no risk contributions'}) gives class {risk_class}: {label}."
    pending = [c.module for c in contributions if not c.has_input]
    if pending:
        explanation += f" Not yet started: {', '.join(pending)}."
    return OverallRiskResult(contributions, total, risk_class, label, general_info, explanation)
