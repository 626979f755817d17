"""Resume ranking pipeline: batch scoring, dense ranking and atomic persistence."""
import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import crud
import models
import schemas
from exceptions import (
    InvalidPromptError,
    NoResumesError,
    PersistenceError,
    ScoringUnavailable,
)
from llm_interaction import score_resume
from observability import METRICS_NAMESPACE, metric_scope
from settings import get_settings

# Set up logging
logger = structlog.get_logger(__name__)

Scorer = Callable[[str, str], Awaitable[schemas.ResumeScore]]


def partition(items: Sequence, size: int) -> List[list]:
    """Split into consecutive chunks of `size`, preserving order."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


async def _score_one(
    scorer: Scorer, resume: models.Resume, job_prompt: str, timeout: Optional[float]
) -> schemas.ScoredResume:
    try:
        result = await asyncio.wait_for(scorer(resume.extracted_text, job_prompt), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise ScoringUnavailable(
            "Timed out scoring resume", details={"resume_id": resume.id}
        ) from exc
    except ScoringUnavailable:
        raise
    except Exception as exc:
        logger.error("Unexpected scoring error", resume_id=resume.id, error=repr(exc))
        raise ScoringUnavailable(details={"resume_id": resume.id}) from exc
    return schemas.ScoredResume(resume_id=resume.id, **result.model_dump())


async def score_resumes_in_batches(
    resumes: Sequence[models.Resume],
    job_prompt: str,
    scorer: Optional[Scorer] = None,
    batch_size: Optional[int] = None,
    batch_delay: Optional[float] = None,
    timeout: Optional[float] = None,
) -> List[schemas.ScoredResume]:
    """Score every resume, at most `batch_size` calls in flight at a time.

    Results come back in input order regardless of completion order. If any
    call in a batch fails, the rest of the batch is still awaited, then the
    earliest failure (by input order) is raised and later batches never start.
    """
    settings = get_settings()
    scorer = scorer or score_resume
    batch_size = batch_size or settings.rank_batch_size
    batch_delay = settings.rank_batch_delay_seconds if batch_delay is None else batch_delay
    timeout = timeout or settings.scoring_timeout_seconds

    batches = partition(resumes, batch_size)
    scored: List[schemas.ScoredResume] = []

    for index, batch in enumerate(batches):
        logger.info("Scoring batch", batch=index + 1, batches=len(batches), size=len(batch))
        outcomes = await asyncio.gather(
            *(_score_one(scorer, resume, job_prompt, timeout) for resume in batch),
            return_exceptions=True,
        )

        failures = [
            (resume, outcome)
            for resume, outcome in zip(batch, outcomes)
            if isinstance(outcome, BaseException)
        ]
        if failures:
            failed_ids = [resume.id for resume, _ in failures]
            logger.error("Scoring failed, aborting ranking run", batch=index + 1, failed_resume_ids=failed_ids)
            first_error = failures[0][1]
            if isinstance(first_error, ScoringUnavailable):
                first_error.details = {**(first_error.details or {}), "failed_resume_ids": failed_ids}
            raise first_error

        scored.extend(outcomes)

        # Small delay between batches to respect API rate limits
        if index < len(batches) - 1 and batch_delay > 0:
            await asyncio.sleep(batch_delay)

    return scored


def assign_ranks(scored: Sequence[schemas.ScoredResume]) -> List[schemas.RankedResult]:
    """Sort by score descending and assign dense 1-based ranks.

    Equal scores keep their input order and still get distinct ranks.
    """
    ordered = sorted(enumerate(scored), key=lambda pair: (-pair[1].score, pair[0]))
    return [
        schemas.RankedResult(rank=position, **result.model_dump())
        for position, (_, result) in enumerate(ordered, start=1)
    ]


def record_analysis(
    db: Session, user_id: int, job_prompt: str, ranked: Sequence[schemas.RankedResult]
) -> str:
    """Persist one analysis and all of its result rows in a single transaction."""
    try:
        analysis = crud.create_analysis(db, user_id=user_id, job_prompt=job_prompt)
        crud.create_analysis_results(db, analysis_id=analysis.id, results=list(ranked))
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to persist analysis", user_id=user_id, error=str(exc))
        raise PersistenceError() from exc

    logger.info("Analysis recorded", analysis_id=analysis.id, results=len(ranked))
    return analysis.id


@metric_scope
async def rank_resumes(
    db: Session,
    user_id: int,
    job_prompt: str,
    scorer: Optional[Scorer] = None,
    batch_size: Optional[int] = None,
    batch_delay: Optional[float] = None,
    metrics=None,
) -> schemas.RankResponse:
    """Score all of a user's resumes against a job prompt and store the ranking."""
    metrics.set_namespace(METRICS_NAMESPACE)
    metrics.set_property("user_id", user_id)

    if not job_prompt or not job_prompt.strip():
        raise InvalidPromptError()

    try:
        resumes = crud.get_resumes_for_user(db, user_id=user_id)
    except SQLAlchemyError as exc:
        raise PersistenceError("Failed to load resumes") from exc

    if not resumes:
        raise NoResumesError()

    metrics.put_metric("rank_runs_started", 1, "Count")
    logger.info("Ranking resumes", user_id=user_id, total=len(resumes))

    try:
        scored = await score_resumes_in_batches(
            resumes,
            job_prompt,
            scorer=scorer,
            batch_size=batch_size,
            batch_delay=batch_delay,
        )
        ranked = assign_ranks(scored)
        analysis_id = record_analysis(db, user_id, job_prompt, ranked)
    except Exception:
        metrics.put_metric("rank_runs_failed", 1, "Count")
        raise

    metrics.put_metric("resumes_scored", len(ranked), "Count")
    metrics.put_metric("rank_runs_completed", 1, "Count")
    metrics.set_property("analysis_id", analysis_id)
    logger.info("Successfully ranked resumes", user_id=user_id, analysis_id=analysis_id)
    return schemas.RankResponse(analysis_id=analysis_id, total_resumes=len(ranked))


def get_latest_analysis(db: Session, user_id: int) -> Optional[schemas.AnalysisView]:
    """The user's most recent analysis with its results in rank order, or None."""
    analysis = crud.get_latest_analysis(db, user_id=user_id)
    if analysis is None:
        return None

    rows = crud.get_analysis_results(db, analysis_id=analysis.id)
    return schemas.AnalysisView(
        id=analysis.id,
        job_prompt=analysis.job_prompt,
        created_at=analysis.created_at,
        results=[
            schemas.AnalysisResultView(
                id=result.id,
                resume_id=resume.id,
                rank=result.rank,
                score=result.score,
                strengths=result.strengths or [],
                weaknesses=result.weaknesses or [],
                summary=result.summary,
                candidate_name=resume.candidate_name,
                email=resume.email,
                phone=resume.phone,
                original_file_name=resume.original_file_name,
                file_type=resume.file_type,
                extracted_text=resume.extracted_text,
            )
            for result, resume in rows
        ],
    )


def get_dashboard_stats(db: Session, user_id: int) -> schemas.DashboardStats:
    latest = crud.get_latest_analysis(db, user_id=user_id)
    return schemas.DashboardStats(
        total_resumes=crud.get_resume_count(db, user_id=user_id),
        total_analyses=crud.get_analysis_count(db, user_id=user_id),
        last_analysis_date=latest.created_at if latest else None,
        highest_score=crud.get_highest_score(db, analysis_id=latest.id) if latest else None,
    )
