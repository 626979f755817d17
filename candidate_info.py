"""Best-effort extraction of candidate name, email and phone from resume text."""
import re

import structlog

from exceptions import ScoringUnavailable
from llm_interaction import call_llm_for_candidate_info, get_llm_client
from schemas import CandidateInfo

logger = structlog.get_logger(__name__)

UNKNOWN_CANDIDATE = "Unknown Candidate"

EMAIL_PATTERN = re.compile(r"[\w\.-]+@[\w\.-]+\.\w+")
# North-American style number, or any 10+ run of digits and separators
PHONE_PATTERN = re.compile(
    r"(\+?1?\s*[-.]?\(?(\d{3})\)?[-.]?\s?(\d{3})[-.]?(\d{4}))|(\+?[\d\s\-\(\)]{10,})"
)
THREE_DIGITS = re.compile(r"\d{3}")


def _looks_like_name(line: str) -> bool:
    return "@" not in line and not THREE_DIGITS.search(line) and len(line) < 100


def extract_candidate_info_fallback(resume_text: str) -> CandidateInfo:
    """Pattern-based extraction. Pure and deterministic."""
    name = UNKNOWN_CANDIDATE
    email = None
    phone = None

    email_match = EMAIL_PATTERN.search(resume_text)
    if email_match:
        email = email_match.group(0)

    phone_match = PHONE_PATTERN.search(resume_text)
    if phone_match:
        phone = phone_match.group(0).strip() or None

    lines = [line for line in resume_text.split("\n") if line.strip()]
    if lines:
        first_line = lines[0].strip()
        if _looks_like_name(first_line):
            name = first_line

    # Otherwise take the line following a "Name:" label
    if name == UNKNOWN_CANDIDATE:
        for index, line in enumerate(lines):
            lowered = line.lower()
            if "name:" in lowered or "name -" in lowered:
                if index + 1 < len(lines):
                    name = lines[index + 1].strip()
                    break

    return CandidateInfo(name=name, email=email, phone=phone)


async def extract_candidate_info(resume_text: str) -> CandidateInfo:
    """Never raises. Uses the LLM when configured and falls back to patterns
    when it is unavailable or does not find a name."""
    if get_llm_client() is None:
        logger.info("LLM not configured - using fallback candidate extraction")
        return extract_candidate_info_fallback(resume_text)

    try:
        info = await call_llm_for_candidate_info(resume_text)
    except ScoringUnavailable as exc:
        logger.warning("AI candidate extraction failed, using fallback", error=exc.message)
        return extract_candidate_info_fallback(resume_text)

    if not info.name:
        logger.warning("AI extraction returned no name, using fallback extraction")
        return extract_candidate_info_fallback(resume_text)

    return info
