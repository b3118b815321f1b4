from __future__ import annotations

import logging
from datetime import datetime
from threading import Lock
from typing import Any, Iterable

from sqlalchemy.orm import Session

from app.errors import ConnectionNotFoundError
from app.models import Assessment, Connection
from app.services.answer_store import AnswerStore, AssessmentRepository
from app.services.connections_engine import ConnectionInput
from app.services.evaluation import (
    ANSWERED_MODULE_KEYS,
    AssessmentEvaluation,
    editable_codes,
    evaluate_assessment,
    require_module,
)
from app.services.overall_risk import normalize_general_value

logger = logging.getLogger(__name__)

_LOCK = Lock()
# Grows with the number of assessments touched; assessments are never deleted.
_ASSESSMENT_LOCKS: dict[int, Lock] = {}


def _assessment_lock(assessment_id: int) -> Lock:
    with _LOCK:
        lock = _ASSESSMENT_LOCKS.get(int(assessment_id))
        if lock is None:
            lock = Lock()
            _ASSESSMENT_LOCKS[int(assessment_id)] = lock
        return lock


def _connection_inputs(rows: Iterable[Connection]) -> list[ConnectionInput]:
    return [
        ConnectionInput(
            id=str(row.id),
            name=row.name,
            type=row.type or "",
            direction=row.direction or "",
            data_sensitivity=row.data_sensitivity or "",
        )
        for row in rows
    ]


def _load_evaluation(db: Session, assessment: Assessment) -> AssessmentEvaluation:
    store = AnswerStore(db)
    answers = {key: store.get_all(assessment.id, key) for key in ANSWERED_MODULE_KEYS}
    connections = _connection_inputs(AssessmentRepository(db).list_connections(assessment.id))
    logger.debug("Recomputing assessment %s", assessment.id)
    return evaluate_assessment(answers, connections)


def _cached_fields(evaluation: AssessmentEvaluation) -> dict[str, Any]:
    overall = evaluation.overall
    info = dict(overall.general_info)
    return {
        "supplier": info.get("supplier") or "",
        "solution": info.get("solution") or "",
        "contract_status": info.get("contract_status"),
        "contract_date": info.get("contract_date"),
        "renewal_date": info.get("renewal_date"),
        "due_diligence_date": info.get("due_diligence_date"),
        "assessment_version": info.get("assessment_version"),
        "dpia_required": evaluation.dpia.required.value,
        "dpia_status": evaluation.dpia.status,
        "mdr_class": evaluation.mdr.classification.value,
        "mdr_status": evaluation.mdr.status,
        "ai_act_risk_level": evaluation.ai_act.level.value,
        "ai_act_status": evaluation.ai_act.status,
        "connections_overall_risk": evaluation.connections.overall.value,
        "connections_risk_status": evaluation.connections.status,
        "security_profile_risk_score": evaluation.security_profile.risk_score,
        "security_profile_status": evaluation.security_profile.status,
        "pre_assessment_status": evaluation.pre_assessment.status,
        "overall_risk_score": float(overall.score) if overall.score is not None else None,
        "overall_risk_class": overall.risk_class,
        "overall_risk_label": overall.label,
    }


def _refresh_cached_fields(db: Session, assessment: Assessment, evaluation: AssessmentEvaluation) -> bool:
    changed = False
    for name, value in _cached_fields(evaluation).items():
        if getattr(assessment, name) != value:
            setattr(assessment, name, value)
            changed = True
    if changed:
        assessment.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(assessment)
    return changed


def _recompute(db: Session, assessment: Assessment) -> AssessmentEvaluation:
    evaluation = _load_evaluation(db, assessment)
    _refresh_cached_fields(db, assessment, evaluation)
    return evaluation


def _module_payload(assessment: Assessment, evaluation: AssessmentEvaluation, module_key: str) -> dict[str, Any]:
    payload = evaluation.module(module_key).to_dict()
    payload["assessment_id"] = assessment.id
    payload["editable_codes"] = sorted(editable_codes(module_key, evaluation))
    return payload


def get_module_result(db: Session, assessment_id: int, module_key: str) -> dict[str, Any]:
    key = require_module(module_key)
    with _assessment_lock(assessment_id):
        assessment = AssessmentRepository(db).get_by_id(assessment_id)
        evaluation = _recompute(db, assessment)
        return _module_payload(assessment, evaluation, key)


def update_module_answers(
    db: Session,
    assessment_id: int,
    module_key: str,
    entries: Iterable[tuple[str, str | None]],
) -> dict[str, Any]:
    key = require_module(module_key)
    with _assessment_lock(assessment_id):
        assessment = AssessmentRepository(db).get_by_id(assessment_id)
        allowed = editable_codes(key, _load_evaluation(db, assessment))
        store = AnswerStore(db)
        written = 0
        for code, value in entries:
            code = str(code or "").strip()
            if code not in allowed:
                logger.debug("Ignoring answer for non-editable code %s/%s on assessment %s", key, code, assessment.id)
                continue
            if key == "overall":
                value = normalize_general_value(code, value)
            if store.upsert_by_code(assessment.id, key, code, value):
                written += 1
        db.commit()
        if written:
            logger.info("Updated %s answer(s) in %s for assessment %s", written, key, assessment.id)
        evaluation = _recompute(db, assessment)
        return _module_payload(assessment, evaluation, key)


def evaluate_stored_assessment(db: Session, assessment_id: int) -> AssessmentEvaluation:
    with _assessment_lock(assessment_id):
        assessment = AssessmentRepository(db).get_by_id(assessment_id)
        return _recompute(db, assessment)


def create_assessment(
    db: Session,
    organisation: str = "",
    supplier: str = "",
    solution: str = "",
    hls_version: str = "",
) -> Assessment:
    assessment = AssessmentRepository(db).create(
        organisation=organisation,
        supplier=supplier,
        solution=solution,
        hls_version=hls_version,
    )
    # Supplier and solution live in the general-info answers as well, so recompute keeps them.
    store = AnswerStore(db)
    store.upsert_by_code(assessment.id, "overall", "supplier", supplier)
    store.upsert_by_code(assessment.id, "overall", "solution", solution)
    db.commit()
    logger.info("Created assessment %s for supplier '%s'", assessment.id, assessment.supplier)
    evaluate_stored_assessment(db, assessment.id)
    return assessment


def get_assessment(db: Session, assessment_id: int) -> Assessment:
    return AssessmentRepository(db).get_by_id(assessment_id)


def list_assessments(db: Session) -> list[Assessment]:
    return AssessmentRepository(db).list_all()


def assessment_summary(assessment: Assessment) -> dict[str, Any]:
    return {
        "id": assessment.id,
        "organisation": assessment.organisation,
        "supplier": assessment.supplier,
        "solution": assessment.solution,
        "hls_version": assessment.hls_version,
        "contract_status": assessment.contract_status,
        "contract_date": assessment.contract_date,
        "renewal_date": assessment.renewal_date,
        "due_diligence_date": assessment.due_diligence_date,
        "assessment_version": assessment.assessment_version,
        "dpia_required": assessment.dpia_required,
        "dpia_status": assessment.dpia_status,
        "mdr_class": assessment.mdr_class,
        "mdr_status": assessment.mdr_status,
        "ai_act_risk_level": assessment.ai_act_risk_level,
        "ai_act_status": assessment.ai_act_status,
        "connections_overall_risk": assessment.connections_overall_risk,
        "connections_risk_status": assessment.connections_risk_status,
        "security_profile_risk_score": assessment.security_profile_risk_score,
        "security_profile_status": assessment.security_profile_status,
        "pre_assessment_status": assessment.pre_assessment_status,
        "overall_risk_score": assessment.overall_risk_score,
        "overall_risk_class": assessment.overall_risk_class,
        "overall_risk_label": assessment.overall_risk_label,
        "created_at": assessment.created_at.isoformat() if assessment.created_at else None,
        "updated_at": assessment.updated_at.isoformat() if assessment.updated_at else None,
    }


def add_or_update_connection(
    db: Session,
    assessment_id: int,
    *,
    name: str,
    type: str = "",
    direction: str = "",
    data_sensitivity: str = "",
    connection_id: int | None = None,
) -> dict[str, Any]:
    with _assessment_lock(assessment_id):
        assessment = AssessmentRepository(db).get_by_id(assessment_id)
        if connection_id is None:
            row = Connection(assessment_id=assessment.id, name=name.strip())
            db.add(row)
        else:
            row = db.get(Connection, connection_id)
            if row is None or row.assessment_id != assessment.id:
                raise ConnectionNotFoundError(assessment.id, connection_id)
            row.name = name.strip()
        row.type = (type or "").strip()
        row.direction = (direction or "").strip()
        row.data_sensitivity = (data_sensitivity or "").strip()
        db.commit()
        logger.info("Saved connection '%s' for assessment %s", row.name, assessment.id)
        evaluation = _recompute(db, assessment)
        return _module_payload(assessment, evaluation, "connections")


def remove_connection(db: Session, assessment_id: int, connection_id: int) -> dict[str, Any]:
    with _assessment_lock(assessment_id):
        assessment = AssessmentRepository(db).get_by_id(assessment_id)
        row = db.get(Connection, connection_id)
        if row is None or row.assessment_id != assessment.id:
            raise ConnectionNotFoundError(assessment.id, connection_id)
        db.delete(row)
        db.commit()
        logger.info("Removed connection %s from assessment %s", connection_id, assessment.id)
        evaluation = _recompute(db, assessment)
        return _module_payload(assessment, evaluation, "connections")
