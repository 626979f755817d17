import json
from functools import lru_cache
from typing import Optional

import openai
import structlog
from openai import AsyncOpenAI
from pydantic import ValidationError

from exceptions import ScoringUnavailable
from settings import get_settings
from schemas import CandidateInfo, ResumeScore, clamp_score

logger = structlog.get_logger(__name__)

# --- Application Info for OpenRouter ---
APP_NAME = "Resume Ranker"
APP_URL = "https://github.com/resume-ranker/resume-ranker"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# --- Model Configuration ---
MODEL_CONFIG = {
    "resume_score": {"temperature": 0.0, "top_p": 1, "max_tokens": 250},
    "candidate_info": {"temperature": 0.0, "top_p": 1, "max_tokens": 150},
}
COMMON_OPTS = {"seed": 123}

RESUME_SCORE_SYSTEM_PROMPT = (
    "Score resume vs job fit 0-100. "
    'JSON: {"score":N,"strengths":["s1","s2"],"weaknesses":["w1","w2"],"summary":"brief"}'
)
CANDIDATE_INFO_SYSTEM_PROMPT = "You must respond with valid JSON. Extract candidate info from resume."

# Keyword heuristic used when no model is configured
FALLBACK_KEYWORDS = [
    "experienced",
    "skilled",
    "proficient",
    "expertise",
    "professional",
    "certification",
    "award",
    "achievement",
]
FALLBACK_SUMMARY_PREFIX = "Fallback analysis"


@lru_cache()
def get_llm_client() -> Optional[AsyncOpenAI]:
    """Build the async client, or None when no API key is configured."""
    settings = get_settings()
    if settings.openrouter_api_key:
        return AsyncOpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=settings.openrouter_api_key,
            default_headers={
                "HTTP-Referer": APP_URL,
                "X-Title": APP_NAME,
            },
        )
    if settings.openai_api_key:
        return AsyncOpenAI(api_key=settings.openai_api_key)

    logger.warning("No LLM API key configured; AI scoring falls back to keyword heuristics.")
    return None


def truncate(text: str, limit: int) -> str:
    return (text or "")[:limit]


async def call_llm(system_prompt: str, user_prompt: str, model_config: dict) -> dict:
    """Call the LLM in JSON mode and return the decoded object.

    Any transport failure or non-JSON answer raises ScoringUnavailable.
    """
    client = get_llm_client()
    if client is None:
        raise ScoringUnavailable("No language model is configured")

    messages = [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]

    try:
        response = await client.chat.completions.create(
            model=get_settings().llm_model,
            messages=messages,
            response_format={"type": "json_object"},
            **model_config,
            **COMMON_OPTS,
        )
    except openai.OpenAIError as exc:
        logger.error("LLM call failed", error=str(exc))
        raise ScoringUnavailable() from exc

    # OpenAI-compatible providers may answer without any choices
    if not response.choices:
        logger.error("LLM returned no choices")
        raise ScoringUnavailable("AI returned an unparseable response")

    content = response.choices[0].message.content or ""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        logger.error("LLM returned non-JSON output", content=content[:200])
        raise ScoringUnavailable("AI returned an unparseable response") from exc

    if not isinstance(data, dict):
        raise ScoringUnavailable("AI returned an unparseable response")
    return data


# --- Specific LLM Interaction Functions --- #


def fallback_score_resume(resume_text: str) -> ResumeScore:
    """Deterministic keyword/length heuristic used without an API key."""
    lower_resume = resume_text.lower()
    score = 50.0
    for keyword in FALLBACK_KEYWORDS:
        if keyword in lower_resume:
            score += 5
    # Longer resumes usually contain more info
    score += min(20.0, len(resume_text) / 500)

    return ResumeScore(
        score=clamp_score(score),
        strengths=["Document content detected", "Professional format identified"],
        weaknesses=["Unable to perform detailed AI analysis without an API key"],
        summary=f"{FALLBACK_SUMMARY_PREFIX} - Resume has {len(resume_text)} characters of content",
    )


async def call_llm_for_resume_scoring(resume_text: str, job_prompt: str) -> ResumeScore:
    """Score one resume against a job prompt."""
    settings = get_settings()
    user_prompt = (
        f"Job:{truncate(job_prompt, settings.scoring_prompt_max_chars)}\n"
        f"Resume:{truncate(resume_text, settings.scoring_resume_max_chars)}\n"
        "Score:"
    )

    data = await call_llm(
        system_prompt=RESUME_SCORE_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        model_config=MODEL_CONFIG["resume_score"],
    )

    try:
        return ResumeScore.model_validate(data)
    except ValidationError as exc:
        logger.error("LLM score response failed validation", errors=exc.errors())
        raise ScoringUnavailable("AI returned an unparseable response") from exc


async def score_resume(resume_text: str, job_prompt: str) -> ResumeScore:
    """Scoring oracle entry point: AI when configured, otherwise the fallback heuristic."""
    if get_llm_client() is None:
        return fallback_score_resume(resume_text)
    return await call_llm_for_resume_scoring(resume_text, job_prompt)


async def call_llm_for_candidate_info(resume_text: str) -> CandidateInfo:
    """Ask the LLM for name, email and phone. Raises ScoringUnavailable on failure."""
    settings = get_settings()
    user_prompt = (
        "Extract name, email, phone from this resume and respond with JSON in this exact format: "
        '{"name":"full name or null","email":"email@example.com or null","phone":"phone number or null"}'
        f"\n\nResume:\n{truncate(resume_text, settings.candidate_info_max_chars)}"
    )

    data = await call_llm(
        system_prompt=CANDIDATE_INFO_SYSTEM_PROMPT,
        user_prompt=user_prompt,
        model_config=MODEL_CONFIG["candidate_info"],
    )

    try:
        return CandidateInfo.model_validate(data)
    except ValidationError as exc:
        raise ScoringUnavailable("AI returned an unparseable response") from exc
