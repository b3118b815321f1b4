from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db import Base


class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)
    organisation = Column(String(255), default="", nullable=False)
    supplier = Column(String(255), default="", nullable=False)
    solution = Column(String(255), default="", nullable=False)
    hls_version = Column(String(32), default="", nullable=False)
    contract_status = Column(String(32), nullable=True)
    contract_date = Column(String(64), nullable=True)
    renewal_date = Column(String(64), nullable=True)
    due_diligence_date = Column(String(64), nullable=True)
    assessment_version = Column(String(64), nullable=True)

    # Cached verdicts, refreshed by every recompute.
    dpia_required = Column(String(16), default="unknown", nullable=False)
    dpia_status = Column(String(64), default="Unknown", nullable=False)
    mdr_class = Column(String(64), default="Unknown", nullable=False)
    mdr_status = Column(String(64), default="Unknown", nullable=False)
    ai_act_risk_level = Column(String(64), default="Unknown", nullable=False)
    ai_act_status = Column(String(64), default="Unknown", nullable=False)
    connections_overall_risk = Column(String(32), default="Unknown", nullable=False)
    connections_risk_status = Column(String(64), default="Unknown", nullable=False)
    security_profile_risk_score = Column(Float, default=0.0, nullable=False)
    security_profile_status = Column(String(64), default="Unknown", nullable=False)
    pre_assessment_status = Column(String(64), default="Unknown", nullable=False)
    overall_risk_score = Column(Float, nullable=True)
    overall_risk_class = Column(Integer, nullable=True)
    overall_risk_label = Column(String(32), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    answers = relationship("AssessmentAnswer", back_populates="assessment", cascade="all, delete-orphan")
    connections = relationship("Connection", back_populates="assessment", cascade="all, delete-orphan")


class AssessmentAnswer(Base):
    __tablename__ = "assessment_answers"
    __table_args__ = (UniqueConstraint("assessment_id", "module_key", "code", name="uq_assessment_answer_code"),)

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id"), nullable=False, index=True)
    module_key = Column(String(32), nullable=False, index=True)
    code = Column(String(32), nullable=False)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    assessment = relationship("Assessment", back_populates="answers")


class Connection(Base):
    __tablename__ = "connections"

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(64), default="", nullable=False)
    direction = Column(String(32), default="", nullable=False)
    data_sensitivity = Column(String(64), default="", nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    assessment = relationship("Assessment", back_populates="connections")
