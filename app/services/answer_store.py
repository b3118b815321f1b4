from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import AssessmentNotFoundError
from app.models import Assessment, AssessmentAnswer, Connection
from app.utils.tristate import is_blank

logger = logging.getLogger(__name__)


class AnswerStore:
    """Raw answers per (assessment, module, code); last write wins."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_all(self, assessment_id: int, module_key: str) -> dict[str, str | None]:
        try:
            rows = (
                self.db.execute(
                    select(AssessmentAnswer).where(
                        AssessmentAnswer.assessment_id == assessment_id,
                        AssessmentAnswer.module_key == module_key,
                    )
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError:
            logger.warning(
                "Reading %s answers for assessment %s failed; treating as no answers",
                module_key,
                assessment_id,
                exc_info=True,
            )
            return {}
        return {row.code: row.value for row in rows}

    def upsert_by_code(self, assessment_id: int, module_key: str, code: str, value: str | None) -> bool:
        """Store one answer; returns True when the stored value changed."""
        stored = None if is_blank(value) else str(value).strip()
        row = (
            self.db.execute(
                select(AssessmentAnswer).where(
                    AssessmentAnswer.assessment_id == assessment_id,
                    AssessmentAnswer.module_key == module_key,
                    AssessmentAnswer.code == code,
                )
            )
            .scalars()
            .first()
        )
        if row is None:
            if stored is None:
                return False
            self.db.add(AssessmentAnswer(assessment_id=assessment_id, module_key=module_key, code=code, value=stored))
            self.db.flush()
            return True
        if row.value == stored:
            return False
        row.value = stored
        row.updated_at = datetime.utcnow()
        self.db.flush()
        return True


class AssessmentRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_by_id(self, assessment_id: int) -> Assessment:
        assessment = self.db.get(Assessment, assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        return assessment

    def list_all(self) -> list[Assessment]:
        return list(self.db.execute(select(Assessment).order_by(Assessment.id.asc())).scalars().all())

    def create(self, **fields: str) -> Assessment:
        assessment = Assessment(**{key: value.strip() for key, value in fields.items() if value is not None})
        self.db.add(assessment)
        self.db.commit()
        self.db.refresh(assessment)
        return assessment

    def list_connections(self, assessment_id: int) -> list[Connection]:
        return list(
            self.db.execute(
                select(Connection).where(Connection.assessment_id == assessment_id).order_by(Connection.id.asc())
            )
            .scalars()
            .all()
        )
