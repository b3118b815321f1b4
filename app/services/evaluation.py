"""
Pure evaluation of one assessment: every engine run in dependency order.

DPIA feeds MDR, the security profile and connections; MDR feeds the AI Act;
all of them feed the pre-assessment graph and the overall risk. Nothing here
touches storage, so the same function serves the service layer and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from app.errors import UnknownModuleError
from app.services import ai_act_engine, mdr_engine, pre_assessment_graph, security_profile_engine
from app.services.ai_act_engine import AiActResult, compute_ai_act
from app.services.connections_engine import ConnectionInput, ConnectionsResult, compute_connections
from app.services.dpia_engine import DPIA_CODES, DpiaResult, compute_dpia
from app.services.mdr_engine import MdrResult, compute_mdr
from app.services.overall_risk import GENERAL_INFO_CODES, OverallRiskResult, compute_overall
from app.services.pre_assessment_graph import GraphInputs, PreAssessmentResult, compute_pre_assessment
from app.services.security_profile_engine import SecurityProfileResult, compute_security_profile

MODULE_KEYS = ("dpia", "mdr", "security_profile", "connections", "ai_act", "pre_assessment", "overall")
ANSWERED_MODULE_KEYS = tuple(key for key in MODULE_KEYS if key != "connections")


def require_module(module_key: str) -> str:
    key = (module_key or "").strip().lower()
    if key not in MODULE_KEYS:
        raise UnknownModuleError(module_key)
    return key


@dataclass(slots=True, frozen=True)
class AssessmentEvaluation:
    dpia: DpiaResult
    mdr: MdrResult
    security_profile: SecurityProfileResult
    connections: ConnectionsResult
    ai_act: AiActResult
    pre_assessment: PreAssessmentResult
    overall: OverallRiskResult

    def module(self, module_key: str):
        return getattr(self, require_module(module_key))

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, key).to_dict() for key in MODULE_KEYS}


def evaluate_assessment(
    answers_by_module: Mapping[str, Mapping[str, str | None]],
    connections: Iterable[ConnectionInput] = (),
) -> AssessmentEvaluation:
    def answers(key: str) -> Mapping[str, str | None]:
        return answers_by_module.get(key) or {}

    dpia = compute_dpia(answers("dpia"))
    mdr = compute_mdr(answers("mdr"), dpia)
    security = compute_security_profile(answers("security_profile"), dpia)
    conn = compute_connections(connections, dpia)
    ai_act = compute_ai_act(answers("ai_act"), dpia, mdr)
    pre = compute_pre_assessment(
        answers("pre_assessment"),
        GraphInputs(dpia=dpia, mdr=mdr, ai_act=ai_act, connections=conn, security=security),
    )
    overall = compute_overall(answers("overall"), dpia, conn, mdr, ai_act, security)
    return AssessmentEvaluation(
        dpia=dpia,
        mdr=mdr,
        security_profile=security,
        connections=conn,
        ai_act=ai_act,
        pre_assessment=pre,
        overall=overall,
    )


def editable_codes(module_key: str, evaluation: AssessmentEvaluation) -> frozenset[str]:
    """Codes a user may set for a module, given the current upstream answers."""
    key = require_module(module_key)
    if key == "dpia":
        return DPIA_CODES
    if key == "mdr":
        return mdr_engine.editable_codes(evaluation.dpia)
    if key == "security_profile":
        return security_profile_engine.EDITABLE_CODES
    if key == "ai_act":
        return ai_act_engine.EDITABLE_CODES
    if key == "pre_assessment":
        return pre_assessment_graph.MANUAL_CODES
    if key == "overall":
        return GENERAL_INFO_CODES
    # Connections are registered through add/remove, not answered.
    return frozenset()
