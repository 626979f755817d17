import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

import models
import schemas


# --- User CRUD ---
def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, user: schemas.UserCreate):
    db_user = models.User(
        email=user.email,
        subject=user.subject or f"local-{uuid.uuid4()}",
        name=user.name,
    )
    db.add(db_user)
    db.flush()  # Assign ID without committing
    db.refresh(db_user)
    return db_user


# --- Resume store ---
def create_resume(db: Session, resume: schemas.ResumeCreate, user_id: int):
    db_resume = models.Resume(
        user_id=user_id,
        candidate_name=resume.candidate_name,
        email=resume.email,
        phone=resume.phone,
        extracted_text=resume.extracted_text,
        original_file_name=resume.original_file_name,
        file_type=resume.file_type,
        source=resume.source,
        received_at=resume.received_at,
    )
    db.add(db_resume)
    db.flush()
    return db_resume


def get_resumes_for_user(db: Session, user_id: int) -> List[models.Resume]:
    """All resumes of a user, newest first.

    The ranking pipeline treats this order as the input order for tie-breaks,
    so it has to be stable: the id breaks ties between equal timestamps.
    """
    return (
        db.query(models.Resume)
        .filter(models.Resume.user_id == user_id)
        .order_by(models.Resume.fetched_at.desc(), models.Resume.id)
        .all()
    )


def get_resume_count(db: Session, user_id: int) -> int:
    return (
        db.query(func.count(models.Resume.id))
        .filter(models.Resume.user_id == user_id)
        .scalar()
    )


def clear_user_data(db: Session, user_id: int) -> int:
    """Delete every analysis and resume owned by the user. Returns the number of resumes removed."""
    analysis_ids = select(models.Analysis.id).where(models.Analysis.user_id == user_id)
    db.query(models.AnalysisResult).filter(
        models.AnalysisResult.analysis_id.in_(analysis_ids)
    ).delete(synchronize_session=False)
    db.query(models.Analysis).filter(models.Analysis.user_id == user_id).delete(synchronize_session=False)
    removed = (
        db.query(models.Resume)
        .filter(models.Resume.user_id == user_id)
        .delete(synchronize_session=False)
    )
    db.flush()
    return removed


# --- Analysis store ---
def create_analysis(db: Session, user_id: int, job_prompt: str):
    db_analysis = models.Analysis(user_id=user_id, job_prompt=job_prompt)
    db.add(db_analysis)
    db.flush()
    return db_analysis


def create_analysis_results(db: Session, analysis_id: str, results: List[schemas.RankedResult]):
    """Batch insert of all result rows of one analysis. The caller owns the commit."""
    rows = [
        models.AnalysisResult(
            analysis_id=analysis_id,
            resume_id=result.resume_id,
            score=result.score,
            rank=result.rank,
            strengths=list(result.strengths),
            weaknesses=list(result.weaknesses),
            summary=result.summary,
        )
        for result in results
    ]
    db.add_all(rows)
    db.flush()
    return rows


def get_latest_analysis(db: Session, user_id: int) -> Optional[models.Analysis]:
    return (
        db.query(models.Analysis)
        .filter(models.Analysis.user_id == user_id)
        .order_by(models.Analysis.created_at.desc(), models.Analysis.id.desc())
        .first()
    )


def get_analysis_count(db: Session, user_id: int) -> int:
    return (
        db.query(func.count(models.Analysis.id))
        .filter(models.Analysis.user_id == user_id)
        .scalar()
    )


def get_analysis_results(
    db: Session, analysis_id: str
) -> List[Tuple[models.AnalysisResult, models.Resume]]:
    """Result rows of one analysis joined to their resumes, ordered by rank."""
    return (
        db.query(models.AnalysisResult, models.Resume)
        .join(models.Resume, models.AnalysisResult.resume_id == models.Resume.id)
        .filter(models.AnalysisResult.analysis_id == analysis_id)
        .order_by(models.AnalysisResult.rank)
        .all()
    )


def get_highest_score(db: Session, analysis_id: str) -> Optional[int]:
    return (
        db.query(func.max(models.AnalysisResult.score))
        .filter(models.AnalysisResult.analysis_id == analysis_id)
        .scalar()
    )
