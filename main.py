from typing import List, Optional

from fastapi import (
    FastAPI,
    Depends,
    HTTPException,
    UploadFile,
    File,
    Request,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session
import structlog

import models
import schemas
import crud
import ingestion
import logic
from database import create_db_and_tables, get_db
from auth import get_current_user
from exceptions import AppException
from settings import get_settings, Settings
from document_extractor import is_supported_type
from request_id_middleware import RequestIdMiddleware
from observability import init_observability


# Initialise observability before creating app
init_observability()
logger = structlog.get_logger(__name__)

# Create DB tables on startup
create_db_and_tables()

app = FastAPI(
    title="Resume Ranker",
    description="Backend API for ranking CVs against a job description",
    version="0.1.0",
)

# --- CORS Middleware ---
origins = [
    "http://localhost",
    "http://localhost:5000",
    "http://localhost:8000",
    "http://127.0.0.1",
    "http://127.0.0.1:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.add_middleware(RequestIdMiddleware)


# --- Exception Handlers --- #
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Render domain errors as {"error", "code", "details"}."""
    logger.warning("Request failed", error=exc.message, code=exc.error_code, path=request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.error_code, "details": exc.details},
    )


# --- Root / Health --- #
@app.get("/", tags=["Health"])
async def read_root():
    return {"message": "Resume Ranker API", "docs": "/docs"}


@app.get("/health", tags=["Health"])
async def health_check():
    return {"status": "up"}


# Add route for favicon.ico
@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Authenticated current user endpoint ---
@app.get("/users/me", response_model=schemas.User, tags=["Auth"])
def get_me(current_user: models.User = Depends(get_current_user)):
    """Returns the authenticated user's database record."""
    return current_user


# --- Resume Endpoints --- #
@app.get("/resumes", response_model=List[schemas.ResumeSummary], tags=["Resumes"])
def list_resumes_endpoint(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return crud.get_resumes_for_user(db, user_id=current_user.id)


@app.get("/resumes/count", response_model=schemas.ResumeCount, tags=["Resumes"])
def resume_count_endpoint(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return {"count": crud.get_resume_count(db, user_id=current_user.id)}


@app.post("/resumes/upload", response_model=schemas.IngestionSummary, tags=["Resumes"])
async def upload_resumes_endpoint(
    files: List[UploadFile] = File(...),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(files) > settings.max_upload_files:
        raise HTTPException(
            status_code=400,
            detail=f"Too many files: at most {settings.max_upload_files} per upload",
        )

    summary = schemas.IngestionSummary()
    attachments = []
    for upload in files:
        if not is_supported_type(upload.content_type):
            summary.failed += 1
            summary.errors.append(
                f"{upload.filename}: Invalid file type. Only PDF and DOCX files are allowed."
            )
            continue
        # One byte past the limit is enough for ingestion to reject the file
        attachments.append(
            schemas.Attachment(
                filename=upload.filename or "resume",
                mime_type=upload.content_type,
                content=await upload.read(settings.max_upload_bytes + 1),
            )
        )

    result = await ingestion.ingest_attachments(
        db,
        user_id=current_user.id,
        attachments=attachments,
        max_bytes=settings.max_upload_bytes,
    )
    summary.successful += result.successful
    summary.failed += result.failed
    summary.errors.extend(result.errors)
    summary.resume_ids.extend(result.resume_ids)
    return summary


@app.delete("/resumes", tags=["Resumes"])
def clear_resumes_endpoint(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Delete all resumes and analyses of the current user."""
    removed = crud.clear_user_data(db, user_id=current_user.id)
    db.commit()
    logger.info("Cleared user data", user_id=current_user.id, resumes_removed=removed)
    return {"status": "deleted", "resumes_removed": removed}


# --- Ranking Endpoints --- #
@app.post("/resumes/rank", response_model=schemas.RankResponse, tags=["Ranking"])
async def rank_resumes_endpoint(
    rank_request: schemas.RankRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await logic.rank_resumes(db, user_id=current_user.id, job_prompt=rank_request.job_prompt)


@app.get(
    "/resumes/latest-analysis",
    response_model=Optional[schemas.AnalysisView],
    tags=["Ranking"],
)
def latest_analysis_endpoint(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return logic.get_latest_analysis(db, user_id=current_user.id)


@app.get("/dashboard/stats", response_model=schemas.DashboardStats, tags=["Dashboard"])
def dashboard_stats_endpoint(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return logic.get_dashboard_stats(db, user_id=current_user.id)


# --- Main execution --- (for running with uvicorn)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
