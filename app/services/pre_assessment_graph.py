"""
Pre-assessment checklist: a fixed graph of tri-state nodes grouped in families.

Every node is either set by the user (``Manual``) or derived by a rule. Rules
that read only other modules' results run in phase one; rules that read other
nodes of this graph run in phase two, in the fixed order of
``PHASE_TWO_PIPELINE``. Each family exposes one applicability flag, the family
aggregate over its configured members.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Union

from app.services.ai_act_engine import AiActLevel, AiActResult
from app.services.connections_engine import ConnectionsResult, ConnectionTier
from app.services.dpia_engine import HEALTH_DATA_CODE, OUTSIDE_EEA_CODE, PERSONAL_DATA_CODE, DpiaResult
from app.services.mdr_engine import MEDICAL_PURPOSE, MdrClass, MdrResult
from app.services.questions import QuestionNode, answer_for
from app.services.security_profile_engine import CONTINUITY_CODE, SecurityProfileResult
from app.utils.tristate import TriState, both_yes, copy_value, either_yes, family_aggregate

MODULE_KEY = "pre_assessment"


@dataclass(slots=True, frozen=True)
class Manual:
    pass


@dataclass(slots=True, frozen=True)
class Constant:
    value: TriState


@dataclass(slots=True, frozen=True)
class External:
    name: str


@dataclass(slots=True, frozen=True)
class CopyOf:
    source: str


@dataclass(slots=True, frozen=True)
class FamilyAggregate:
    members: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class EitherYes:
    first: str
    second: str


@dataclass(slots=True, frozen=True)
class BothYes:
    first: str
    second: str


Rule = Union[Manual, Constant, External, CopyOf, FamilyAggregate, EitherYes, BothYes]


@dataclass(slots=True, frozen=True)
class GraphInputs:
    dpia: DpiaResult
    mdr: MdrResult
    ai_act: AiActResult
    connections: ConnectionsResult
    security: SecurityProfileResult


def _ai_level_is(level: AiActLevel) -> Callable[[GraphInputs], TriState]:
    def rule(inputs: GraphInputs) -> TriState:
        if inputs.ai_act.level is AiActLevel.UNKNOWN:
            return TriState.UNKNOWN
        return TriState.from_bool(inputs.ai_act.level is level)

    return rule


def _ai_in_scope(inputs: GraphInputs) -> TriState:
    if inputs.ai_act.level is AiActLevel.UNKNOWN:
        return TriState.UNKNOWN
    return TriState.from_bool(inputs.ai_act.level is not AiActLevel.OUTSIDE_SCOPE)


def _mdr_class_is(mdr_class: MdrClass) -> Callable[[GraphInputs], TriState]:
    def rule(inputs: GraphInputs) -> TriState:
        if inputs.mdr.classification is MdrClass.UNKNOWN:
            return TriState.UNKNOWN
        return TriState.from_bool(inputs.mdr.classification is mdr_class)

    return rule


def _mdr_is_device(inputs: GraphInputs) -> TriState:
    if inputs.mdr.classification is MdrClass.UNKNOWN:
        return TriState.UNKNOWN
    return TriState.from_bool(inputs.mdr.classification is not MdrClass.NOT_MEDICAL_DEVICE)


def _connections_present(inputs: GraphInputs) -> TriState:
    if inputs.connections.connections:
        return TriState.YES
    if inputs.connections.gatekeeper is TriState.NO:
        return TriState.NO
    return TriState.UNKNOWN


def _connections_identifiable(inputs: GraphInputs) -> TriState:
    if inputs.connections.overall is ConnectionTier.UNKNOWN:
        return TriState.UNKNOWN
    return TriState.from_bool(inputs.connections.overall is ConnectionTier.HIGH)


def _security_risk(inputs: GraphInputs) -> TriState:
    if inputs.security.risk_score > 0:
        return TriState.YES
    if inputs.security.is_complete:
        return TriState.NO
    return TriState.UNKNOWN


EXTERNAL_RULES: dict[str, Callable[[GraphInputs], TriState]] = {
    "dpia:required": lambda inputs: inputs.dpia.required,
    f"dpia:{PERSONAL_DATA_CODE}": lambda inputs: inputs.dpia.answer(PERSONAL_DATA_CODE),
    f"dpia:{HEALTH_DATA_CODE}": lambda inputs: inputs.dpia.answer(HEALTH_DATA_CODE),
    f"dpia:{OUTSIDE_EEA_CODE}": lambda inputs: inputs.dpia.answer(OUTSIDE_EEA_CODE),
    "ai_act:in_scope": _ai_in_scope,
    "ai_act:low": _ai_level_is(AiActLevel.LOW),
    "ai_act:limited": _ai_level_is(AiActLevel.LIMITED),
    "ai_act:prohibited": _ai_level_is(AiActLevel.PROHIBITED),
    "ai_act:high": _ai_level_is(AiActLevel.HIGH),
    "ai_act:outside_scope": _ai_level_is(AiActLevel.OUTSIDE_SCOPE),
    "mdr:is_device": _mdr_is_device,
    "mdr:medical_purpose": lambda inputs: inputs.mdr.answer(MEDICAL_PURPOSE.code),
    "mdr:class_i": _mdr_class_is(MdrClass.CLASS_I),
    "mdr:class_iia": _mdr_class_is(MdrClass.CLASS_IIA),
    "mdr:class_iib": _mdr_class_is(MdrClass.CLASS_IIB),
    "mdr:class_iii": _mdr_class_is(MdrClass.CLASS_III),
    "mdr:not_device": _mdr_class_is(MdrClass.NOT_MEDICAL_DEVICE),
    "connections:present": _connections_present,
    "connections:identifiable": _connections_identifiable,
    "security_profile:risk": _security_risk,
    f"security_profile:{CONTINUITY_CODE}": lambda inputs: inputs.security.answer(CONTINUITY_CODE),
}


@dataclass(slots=True, frozen=True)
class GraphNodeTemplate:
    code: str
    family: str
    prompt: str
    rule: Rule

    @property
    def is_manual(self) -> bool:
        return isinstance(self.rule, Manual)

    @property
    def provenance(self) -> str:
        rule = self.rule
        if isinstance(rule, Manual):
            return "manual"
        if isinstance(rule, Constant):
            return f"constant:{rule.value.value}"
        if isinstance(rule, External):
            return rule.name
        if isinstance(rule, CopyOf):
            return f"copy:{rule.source}"
        if isinstance(rule, FamilyAggregate):
            return "aggregate:" + ",".join(rule.members)
        if isinstance(rule, BothYes):
            return f"both:{rule.first},{rule.second}"
        return f"either:{rule.first},{rule.second}"


@dataclass(slots=True, frozen=True)
class Family:
    key: str
    label: str
    members: tuple[str, ...]


def _node(code: str, family: str, prompt: str, rule: Rule) -> GraphNodeTemplate:
    return GraphNodeTemplate(code=code, family=family, prompt=prompt, rule=rule)


GRAPH_TEMPLATE: tuple[GraphNodeTemplate, ...] = (
    # General
    _node("ALG-a", "general", "Is the solution a structurally used system within the organisation?", Constant(TriState.YES)),
    _node("ALG-b", "general", "Is the solution procured from an external supplier?", Manual()),
    _node("ALG-c", "general", "Does the solution support a critical care process?", Manual()),
    _node("ALG-d", "general", "Is the solution used by more than one department or location?", Manual()),
    # GDPR
    _node("AVG-a", "gdpr", "Is a DPIA required?", External("dpia:required")),
    _node("AVG-b", "gdpr", "Are personal data processed?", External(f"dpia:{PERSONAL_DATA_CODE}")),
    _node("AVG-c", "gdpr", "Are special categories of personal data (health data) processed?", External(f"dpia:{HEALTH_DATA_CODE}")),
    _node("AVG-d", "gdpr", "Does the supplier act as a processor on behalf of the organisation?", Manual()),
    _node("AVG-e", "gdpr", "Are personal data transferred outside the EEA?", External(f"dpia:{OUTSIDE_EEA_CODE}")),
    # AI Act
    _node("AIAct-a", "ai_act", "Is the solution an AI system within the scope of the AI Act?", External("ai_act:in_scope")),
    _node("AIAct-b", "ai_act", "Is the AI system low or minimal risk?", External("ai_act:low")),
    _node("AIAct-c", "ai_act", "Is the AI system limited risk (transparency obligations)?", External("ai_act:limited")),
    _node("AIAct-d", "ai_act", "Does the AI system involve a prohibited practice?", External("ai_act:prohibited")),
    _node("AIAct-e", "ai_act", "Is the AI system high risk?", External("ai_act:high")),
    _node("AIAct-f", "ai_act", "Does the solution fall outside the AI Act?", External("ai_act:outside_scope")),
    # MDR
    _node("MDR-a", "mdr", "Is the solution a medical device?", External("mdr:is_device")),
    _node("MDR-b", "mdr", "Is the device MDR Class I?", External("mdr:class_i")),
    _node("MDR-c", "mdr", "Is the device MDR Class IIa?", External("mdr:class_iia")),
    _node("MDR-d", "mdr", "Is the device MDR Class IIb?", External("mdr:class_iib")),
    _node("MDR-e", "mdr", "Is the device MDR Class III?", External("mdr:class_iii")),
    _node("MDR-f", "mdr", "Is the solution not a medical device?", External("mdr:not_device")),
    # Connections
    _node("Koppeling-a", "connections", "Does the solution exchange data with other systems?", External("connections:present")),
    _node(
        "Koppeling-b",
        "connections",
        "Do connections carry identifiable medical or personal data?",
        External("connections:identifiable"),
    ),
    _node(
        "Koppeling-c",
        "connections",
        "Are connections realised through a supplier-managed integration platform?",
        Manual(),
    ),
    # NIS2
    _node("NIS2-a", "nis2", "Does NIS2 apply to the solution or its supplier?", FamilyAggregate(("NIS2-b", "NIS2-c", "NIS2-e"))),
    _node("NIS2-b", "nis2", "Does the organisation operate in a NIS2 sector such as healthcare?", Manual()),
    _node("NIS2-c", "nis2", "Does the supplier meet the NIS2 size threshold (medium or large enterprise)?", Manual()),
    _node(
        "NIS2-d",
        "nis2",
        "Must the supplier demonstrate its NIS2 duty of care through a contractual NEN 7510 / ISO 27001 certificate?",
        BothYes("NENISO-b", "NIS2-a"),
    ),
    _node("NIS2-e", "nis2", "Is the supplier part of the supply chain of an essential or important entity?", Manual()),
    # NEN / ISO information security
    _node("NENISO-a", "nen_iso", "Is a DPIA required, so NEN 7510 applies to the processing?", CopyOf("AVG-a")),
    _node(
        "NENISO-b",
        "nen_iso",
        "Does the contract require NEN 7510 or ISO 27001 certification of the supplier?",
        Manual(),
    ),
    _node(
        "NENISO-c",
        "nen_iso",
        "Is an information security management system required of the supplier?",
        EitherYes("NIS2-a", "NENISO-a"),
    ),
    _node("NENISO-d", "nen_iso", "Does NEN 7512 (trusted exchange of health data) apply?", CopyOf("Koppeling-a")),
    _node(
        "NENISO-e",
        "nen_iso",
        "Does the supplier security profile show risks requiring ISO 27001 controls?",
        External("security_profile:risk"),
    ),
    _node("NENISO-f", "nen_iso", "Does NEN 7513 (logging of access to patient data) apply?", CopyOf("NENISO-a")),
    # ISO 13485 quality management
    _node("ISO13485-a", "iso13485", "Is a quality management system per ISO 13485 expected of the manufacturer?", CopyOf("MDR-a")),
    _node("ISO13485-b", "iso13485", "Is the supplier the legal manufacturer of the solution?", Manual()),
    _node("ISO13485-c", "iso13485", "Is the solution intended for a medical purpose?", External("mdr:medical_purpose")),
    _node(
        "ISO13485-d",
        "iso13485",
        "Is the device high risk (Class IIb or III), requiring notified-body QMS audits?",
        EitherYes("MDR-d", "MDR-e"),
    ),
    _node("ISO13485-e", "iso13485", "Does the contract require post-market surveillance by the supplier?", Manual()),
    # Supply-chain security
    _node("CRA-a", "cra", "Is the solution a product with digital elements connected to other systems?", CopyOf("Koppeling-a")),
    _node("CRA-b", "cra", "Is the solution placed on the EU market as a product rather than a pure service?", Manual()),
    _node(
        "CRA-c",
        "cra",
        "Do medical-device cybersecurity requirements apply to the product?",
        CopyOf("ISO13485-a"),
    ),
    _node("CRA-d", "cra", "Is a software bill of materials (SBOM) required from the supplier?", Manual()),
    _node(
        "CRA-e",
        "cra",
        "Is the solution a critical service or connected to other systems?",
        EitherYes("ALG-c", "Koppeling-a"),
    ),
    # Continuity
    _node("CONT-a", "continuity", "Is the solution critical for continuity of care?", External(f"security_profile:{CONTINUITY_CODE}")),
    _node("CONT-b", "continuity", "Is an exit strategy or escrow arrangement required?", Manual()),
    _node("CONT-c", "continuity", "Does the solution require a contractual availability SLA?", Manual()),
    _node("CONT-d", "continuity", "Is the supplier a single point of failure for the care process?", Manual()),
)

FAMILIES: tuple[Family, ...] = (
    Family("general", "General", ("ALG-a", "ALG-b", "ALG-c", "ALG-d")),
    Family("gdpr", "GDPR", ("AVG-a", "AVG-b", "AVG-c", "AVG-d", "AVG-e")),
    # Negative mirror nodes (AIAct-f, MDR-f) are not applicability members.
    Family("ai_act", "AI Act", ("AIAct-a", "AIAct-b", "AIAct-c", "AIAct-d", "AIAct-e")),
    Family("mdr", "MDR", ("MDR-a", "MDR-b", "MDR-c", "MDR-d", "MDR-e")),
    Family("connections", "Connections", ("Koppeling-a", "Koppeling-b", "Koppeling-c")),
    Family("nis2", "NIS2", ("NIS2-a", "NIS2-b", "NIS2-c", "NIS2-d", "NIS2-e")),
    Family("nen_iso", "NEN 7510 / ISO 27001", ("NENISO-a", "NENISO-b", "NENISO-c", "NENISO-d", "NENISO-e", "NENISO-f")),
    Family("iso13485", "ISO 13485", ("ISO13485-a", "ISO13485-b", "ISO13485-c", "ISO13485-d", "ISO13485-e")),
    Family("cra", "Supply-chain security (CRA)", ("CRA-a", "CRA-b", "CRA-c", "CRA-d", "CRA-e")),
    Family("continuity", "Continuity", ("CONT-a", "CONT-b", "CONT-c", "CONT-d")),
)

PHASE_TWO_PIPELINE: tuple[str, ...] = (
    "NIS2-a",
    "NIS2-d",
    "NENISO-a",
    "NENISO-c",
    "NENISO-d",
    "NENISO-f",
    "ISO13485-a",
    "ISO13485-d",
    "CRA-a",
    "CRA-c",
    "CRA-e",
)

_TEMPLATES_BY_CODE = {t.code: t for t in GRAPH_TEMPLATE}
MANUAL_CODES = frozenset(t.code for t in GRAPH_TEMPLATE if t.is_manual)


def _is_phase_one(template: GraphNodeTemplate) -> bool:
    return isinstance(template.rule, (Constant, External))


def _sources(rule: Rule) -> tuple[str, ...]:
    if isinstance(rule, CopyOf):
        return (rule.source,)
    if isinstance(rule, FamilyAggregate):
        return rule.members
    if isinstance(rule, (EitherYes, BothYes)):
        return (rule.first, rule.second)
    return ()


def validate_pipeline() -> list[str]:
    """Return ordering problems in the phase-two pipeline (empty when sound)."""
    problems: list[str] = []
    intra = [t.code for t in GRAPH_TEMPLATE if isinstance(t.rule, (CopyOf, FamilyAggregate, EitherYes, BothYes))]
    if sorted(intra) != sorted(PHASE_TWO_PIPELINE):
        problems.append("phase-two pipeline does not list every intra-graph rule exactly once")
    ready = {t.code for t in GRAPH_TEMPLATE if t.is_manual or _is_phase_one(t)}
    for code in PHASE_TWO_PIPELINE:
        template = _TEMPLATES_BY_CODE.get(code)
        if template is None:
            problems.append(f"{code}: unknown node")
            continue
        for source in _sources(template.rule):
            if source not in ready:
                problems.append(f"{code}: reads {source} before it is computed")
        ready.add(code)
    for family in FAMILIES:
        for member in family.members:
            if member not in _TEMPLATES_BY_CODE:
                problems.append(f"{family.key}: unknown member {member}")
    for rule_name in (t.rule.name for t in GRAPH_TEMPLATE if isinstance(t.rule, External)):
        if rule_name not in EXTERNAL_RULES:
            problems.append(f"unknown external rule {rule_name}")
    return problems


def _apply_intra_rule(rule: Rule, values: Mapping[str, TriState]) -> TriState:
    if isinstance(rule, CopyOf):
        return copy_value(values[rule.source])
    if isinstance(rule, FamilyAggregate):
        return family_aggregate(values[code] for code in rule.members)
    if isinstance(rule, EitherYes):
        return either_yes(values[rule.first], values[rule.second])
    if isinstance(rule, BothYes):
        return both_yes(values[rule.first], values[rule.second])
    raise TypeError(f"not an intra-graph rule: {rule!r}")


@dataclass(slots=True, frozen=True)
class PreAssessmentResult:
    questions: tuple[QuestionNode, ...]
    family_flags: tuple[tuple[str, TriState], ...]
    ai_act_level: AiActLevel
    mdr_class: MdrClass
    further_assessment_required: TriState
    explanation: str

    @property
    def flags(self) -> dict[str, TriState]:
        return dict(self.family_flags)

    @property
    def is_complete(self) -> bool:
        return all(flag.is_known for _, flag in self.family_flags)

    @property
    def has_input(self) -> bool:
        return any(q.answer.is_known for q in self.questions if q.source == "manual")

    @property
    def status(self) -> str:
        if self.further_assessment_required is TriState.YES:
            return "Further assessment required"
        if self.further_assessment_required is TriState.NO:
            return "No further assessment required"
        return "Unknown"

    def answer(self, code: str) -> TriState:
        for node in self.questions:
            if node.code == code:
                return node.answer
        return TriState.UNKNOWN

    def to_dict(self) -> dict[str, Any]:
        by_code = {q.code: q for q in self.questions}
        flags = self.flags
        families = []
        for family in FAMILIES:
            families.append(
                {
                    "key": family.key,
                    "label": family.label,
                    "applicable": flags[family.key].value,
                    "questions": [
                        by_code[t.code].to_dict() for t in GRAPH_TEMPLATE if t.family == family.key
                    ],
                }
            )
        return {
            "module": MODULE_KEY,
            "families": families,
            "family_flags": {key: value.value for key, value in self.family_flags},
            "ai_act_risk_level": self.ai_act_level.value,
            "mdr_class": self.mdr_class.value,
            "further_assessment_required": self.further_assessment_required.to_bool(),
            "verdict": self.status,
            "explanation": self.explanation,
            "is_complete": self.is_complete,
        }


def compute_pre_assessment(answers: Mapping[str, str | None], inputs: GraphInputs) -> PreAssessmentResult:
    values: dict[str, TriState] = {}

    for template in GRAPH_TEMPLATE:
        if template.is_manual:
            values[template.code] = answer_for(answers, template.code)
        else:
            values[template.code] = TriState.UNKNOWN

    # Phase one: constants and rules over other modules' results.
    for template in GRAPH_TEMPLATE:
        rule = template.rule
        if isinstance(rule, Constant):
            values[template.code] = rule.value
        elif isinstance(rule, External):
            values[template.code] = EXTERNAL_RULES[rule.name](inputs)

    # Phase two: intra-graph rules, in pipeline order.
    for code in PHASE_TWO_PIPELINE:
        values[code] = _apply_intra_rule(_TEMPLATES_BY_CODE[code].rule, values)

    nodes = tuple(
        QuestionNode(
            code=t.code,
            prompt=t.prompt,
            answer=values[t.code],
            is_derived=not t.is_manual,
            source=t.provenance,
        )
        for t in GRAPH_TEMPLATE
    )
    flags = tuple((family.key, family_aggregate(values[m] for m in family.members)) for family in FAMILIES)
    further = family_aggregate(flag for key, flag in flags if key != "general")

    applicable = [f.label for f in FAMILIES if dict(flags)[f.key] is TriState.YES and f.key != "general"]
    unknown = [f.label for f in FAMILIES if not dict(flags)[f.key].is_known]
    if applicable:
        explanation = "Applicable frameworks: " + ", ".join(applicable) + "."
    else:
        explanation = "No frameworks identified as applicable yet."
    if unknown:
        explanation += " Still undetermined: " + ", ".join(unknown) + "."

    return PreAssessmentResult(
        questions=nodes,
        family_flags=flags,
        ai_act_level=inputs.ai_act.level,
        mdr_class=inputs.mdr.classification,
        further_assessment_required=further,
        explanation=explanation,
    )
