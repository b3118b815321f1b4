from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import AssessmentNotFoundError
from app.services.assessment_service import (
    assessment_summary,
    create_assessment,
    evaluate_stored_assessment,
    get_assessment,
    list_assessments,
)

router = APIRouter(prefix="/api", tags=["assessments"])


class AssessmentCreateRequest(BaseModel):
    organisation: str = Field("", max_length=255)
    supplier: str = Field("", max_length=255)
    solution: str = Field("", max_length=255)
    hls_version: str = Field("", max_length=32)


@router.get("/assessments")
def api_list_assessments(db: Session = Depends(get_db)):
    return {"items": [assessment_summary(a) for a in list_assessments(db)]}


@router.post("/assessments", status_code=201)
def api_create_assessment(payload: AssessmentCreateRequest, db: Session = Depends(get_db)):
    assessment = create_assessment(
        db,
        organisation=payload.organisation,
        supplier=payload.supplier,
        solution=payload.solution,
        hls_version=payload.hls_version,
    )
    return assessment_summary(assessment)


@router.get("/assessments/{assessment_id}")
def api_get_assessment(assessment_id: int, db: Session = Depends(get_db)):
    try:
        evaluation = evaluate_stored_assessment(db, assessment_id)
        assessment = get_assessment(db, assessment_id)
    except AssessmentNotFoundError:
        return JSONResponse(status_code=404, content={"error": "not_found"})
    return {**assessment_summary(assessment), "modules": evaluation.to_dict()}
