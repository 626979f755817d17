import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Maximum number of strengths / weaknesses kept from a scoring response
MAX_SCORE_POINTS = 3


# --- Users --- #
class UserCreate(BaseModel):
    email: str
    subject: Optional[str] = None
    name: Optional[str] = None


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None


# --- Scoring --- #
def clamp_score(value) -> int:
    """Round half-up and clamp into [0, 100].

    Infinities clamp like any other out-of-range value. Raises ValueError
    for NaN and anything that is not a number.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValueError("score must be a number")
    # Arbitrarily large ints would overflow float()
    if isinstance(value, int):
        return max(0, min(100, value))
    number = float(value)
    if math.isnan(number):
        raise ValueError("score must be a number")
    if math.isinf(number):
        return 100 if number > 0 else 0
    return max(0, min(100, math.floor(number + 0.5)))


def _clean_points(value) -> List[str]:
    if not isinstance(value, list):
        return []
    points = [str(item).strip() for item in value if item is not None]
    return [p for p in points if p][:MAX_SCORE_POINTS]


class ResumeScore(BaseModel):
    """Validated output of the scoring model for one (resume, job prompt) pair."""

    score: int
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    summary: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_score(value)

    @field_validator("strengths", "weaknesses", mode="before")
    @classmethod
    def _cap(cls, value):
        return _clean_points(value)

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, value):
        return "" if value is None else str(value)


class CandidateInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("name", "email", "phone", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        if not value or value.lower() == "null":
            return None
        return value


class ScoredResume(ResumeScore):
    resume_id: str


class RankedResult(ScoredResume):
    rank: int


# --- Ranking API --- #
class RankRequest(BaseModel):
    job_prompt: str


class RankResponse(BaseModel):
    analysis_id: str
    total_resumes: int


class AnalysisResultView(BaseModel):
    id: str
    resume_id: str
    rank: int
    score: int
    strengths: List[str]
    weaknesses: List[str]
    summary: Optional[str] = None
    candidate_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    original_file_name: str
    file_type: str
    extracted_text: str


class AnalysisView(BaseModel):
    id: str
    job_prompt: str
    created_at: datetime
    results: List[AnalysisResultView]


# --- Resumes / ingestion --- #
class ResumeCreate(BaseModel):
    extracted_text: str
    original_file_name: str
    file_type: str
    source: str = "upload"
    candidate_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    received_at: Optional[datetime] = None

    @field_validator("extracted_text")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("extracted_text must not be empty")
        return value


class ResumeSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    candidate_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    original_file_name: str
    file_type: str
    source: str
    fetched_at: datetime


class ResumeCount(BaseModel):
    count: int


class Attachment(BaseModel):
    """One raw file handed over by an attachment source or an upload."""

    filename: str
    mime_type: str
    content: bytes
    received_at: Optional[datetime] = None


class ProviderCredentials(BaseModel):
    """Credentials for one mail provider, passed explicitly per fetch."""

    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    account_email: Optional[str] = None


class IngestionSummary(BaseModel):
    successful: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)
    resume_ids: List[str] = Field(default_factory=list)


class DashboardStats(BaseModel):
    total_resumes: int
    total_analyses: int
    last_analysis_date: Optional[datetime] = None
    highest_score: Optional[int] = None
