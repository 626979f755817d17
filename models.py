import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import relationship
from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, JSON
from database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String, unique=True, index=True)
    subject = Column(String, unique=True, index=True, nullable=False)  # identity provider `sub`
    name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    resumes = relationship("Resume", back_populates="owner", cascade="all, delete-orphan")
    analyses = relationship("Analysis", back_populates="owner", cascade="all, delete-orphan")


class Resume(Base):
    __tablename__ = "resumes"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    candidate_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    extracted_text = Column(Text, nullable=False)
    original_file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=False)
    source = Column(String, nullable=False)  # 'upload' or the provider name
    received_at = Column(DateTime(timezone=True), nullable=True)
    fetched_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    owner = relationship("User", back_populates="resumes")


class Analysis(Base):
    __tablename__ = "analyses"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    job_prompt = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True, nullable=False)

    owner = relationship("User", back_populates="analyses")
    results = relationship(
        "AnalysisResult",
        back_populates="analysis",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AnalysisResult.rank",
    )


class AnalysisResult(Base):
    __tablename__ = "analysis_results"

    id = Column(String(36), primary_key=True, default=_new_id)
    analysis_id = Column(String(36), ForeignKey("analyses.id", ondelete="CASCADE"), index=True, nullable=False)
    resume_id = Column(String(36), ForeignKey("resumes.id", ondelete="CASCADE"), index=True, nullable=False)
    score = Column(Integer, nullable=False)  # 0-100
    rank = Column(Integer, nullable=False)  # 1-based, dense
    strengths = Column(JSON, nullable=False, default=list)
    weaknesses = Column(JSON, nullable=False, default=list)
    summary = Column(Text, nullable=True)

    analysis = relationship("Analysis", back_populates="results")
    resume = relationship("Resume")
