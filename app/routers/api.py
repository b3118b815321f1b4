from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import AssessmentNotFoundError, ConnectionNotFoundError, UnknownModuleError
from app.services.assessment_service import (
    add_or_update_connection,
    get_module_result,
    remove_connection,
    update_module_answers,
)

router = APIRouter(prefix="/api", tags=["api"])


class AnswerEntry(BaseModel):
    code: str
    value: str | bool | int | None = None


class ModuleAnswersRequest(BaseModel):
    answers: list[AnswerEntry] = Field(default_factory=list)


class ConnectionRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: str = ""
    direction: str = ""
    data_sensitivity: str = ""
    id: int | None = None


def _not_found() -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "not_found"})


def _raw_value(value: str | bool | int | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


@router.get("/assessments/{assessment_id}/modules/{module_key}")
def api_get_module(assessment_id: int, module_key: str, db: Session = Depends(get_db)):
    try:
        return get_module_result(db, assessment_id, module_key)
    except (AssessmentNotFoundError, UnknownModuleError):
        return _not_found()


@router.put("/assessments/{assessment_id}/modules/{module_key}")
def api_update_module(
    assessment_id: int,
    module_key: str,
    payload: ModuleAnswersRequest,
    db: Session = Depends(get_db),
):
    entries = [(entry.code, _raw_value(entry.value)) for entry in payload.answers]
    try:
        return update_module_answers(db, assessment_id, module_key, entries)
    except (AssessmentNotFoundError, UnknownModuleError):
        return _not_found()


@router.post("/assessments/{assessment_id}/connections")
def api_save_connection(assessment_id: int, payload: ConnectionRequest, db: Session = Depends(get_db)):
    try:
        return add_or_update_connection(
            db,
            assessment_id,
            name=payload.name,
            type=payload.type,
            direction=payload.direction,
            data_sensitivity=payload.data_sensitivity,
            connection_id=payload.id,
        )
    except (AssessmentNotFoundError, ConnectionNotFoundError):
        return _not_found()


@router.delete("/assessments/{assessment_id}/connections/{connection_id}")
def api_remove_connection(assessment_id: int, connection_id: int, db: Session = Depends(get_db)):
    try:
        return remove_connection(db, assessment_id, connection_id)
    except (AssessmentNotFoundError, ConnectionNotFoundError):
        return _not_found()
