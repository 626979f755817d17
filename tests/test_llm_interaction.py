import json
from types import SimpleNamespace

import httpx
import openai
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import candidate_info
import llm_interaction
from exceptions import ScoringUnavailable
from schemas import ResumeScore


def fake_client(content=None, side_effect=None, choices=None):
    """An AsyncOpenAI stand-in whose completion returns `content` (dicts are JSON-encoded).

    Pass `choices` to return that list verbatim instead.
    """
    if isinstance(content, (dict, list)):
        content = json.dumps(content)
    if choices is None:
        choices = [SimpleNamespace(message=SimpleNamespace(content=content))]
    response = SimpleNamespace(choices=choices)
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=response, side_effect=side_effect)
    return client


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "raw_score, expected",
    [
        (137.6, 100),
        (-4, 0),
        (72.4, 72),
        (72.5, 73),
        ("88", 88),
        (0, 0),
        (100, 100),
        (10**400, 100),
        (-(10**400), 0),
        ("1e400", 100),
    ],
)
async def test_scoring_clamps_and_rounds(raw_score, expected):
    client = fake_client({"score": raw_score, "strengths": [], "weaknesses": [], "summary": "ok"})
    with patch("llm_interaction.get_llm_client", return_value=client):
        result = await llm_interaction.call_llm_for_resume_scoring("resume", "job")

    assert result.score == expected


@pytest.mark.asyncio
async def test_scoring_caps_points_at_three():
    client = fake_client(
        {
            "score": 81,
            "strengths": ["Python", "AWS", "Leadership", "Mentoring", "SQL"],
            "weaknesses": ["No Go", "", "No Rust", "No K8s", "No Java"],
            "summary": "Strong backend profile",
        }
    )
    with patch("llm_interaction.get_llm_client", return_value=client):
        result = await llm_interaction.call_llm_for_resume_scoring("resume", "job")

    assert result.strengths == ["Python", "AWS", "Leadership"]
    assert result.weaknesses == ["No Go", "No Rust", "No K8s"]
    assert result.summary == "Strong backend profile"


@pytest.mark.asyncio
async def test_scoring_defaults_missing_fields():
    client = fake_client({"score": 64})
    with patch("llm_interaction.get_llm_client", return_value=client):
        result = await llm_interaction.call_llm_for_resume_scoring("resume", "job")

    assert result == ResumeScore(score=64, strengths=[], weaknesses=[], summary="")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "content",
    [
        {"strengths": ["Python"], "summary": "no score"},
        {"score": "high"},
        {"score": None},
        "not json at all",
        "[1, 2, 3]",
        None,
        "{\"score\": NaN}",
    ],
)
async def test_scoring_unusable_output_raises(content):
    client = fake_client(content)
    with patch("llm_interaction.get_llm_client", return_value=client):
        with pytest.raises(ScoringUnavailable):
            await llm_interaction.call_llm_for_resume_scoring("resume", "job")


@pytest.mark.asyncio
async def test_scoring_transport_failure_raises():
    error = openai.APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )
    client = fake_client(side_effect=error)
    with patch("llm_interaction.get_llm_client", return_value=client):
        with pytest.raises(ScoringUnavailable) as exc_info:
            await llm_interaction.call_llm_for_resume_scoring("resume", "job")

    assert exc_info.value.status_code == 503
    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_scoring_prompt_is_truncated():
    client = fake_client({"score": 50})
    resume_text = "r" * 2000
    job_prompt = "j" * 400

    with patch("llm_interaction.get_llm_client", return_value=client):
        await llm_interaction.call_llm_for_resume_scoring(resume_text, job_prompt)
        await llm_interaction.call_llm_for_resume_scoring(resume_text, job_prompt)

    first, second = client.chat.completions.create.call_args_list
    assert first == second
    kwargs = first.kwargs
    assert kwargs["messages"][0]["content"] == llm_interaction.RESUME_SCORE_SYSTEM_PROMPT
    assert kwargs["messages"][1]["content"] == f"Job:{'j' * 300}\nResume:{'r' * 1500}\nScore:"
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["temperature"] == 0.0
    assert kwargs["max_tokens"] == 250
    assert kwargs["seed"] == 123


@pytest.mark.asyncio
async def test_call_llm_without_client_raises():
    with patch("llm_interaction.get_llm_client", return_value=None):
        with pytest.raises(ScoringUnavailable):
            await llm_interaction.call_llm("system", "user", {})


def test_truncate():
    assert llm_interaction.truncate("abcdef", 3) == "abc"
    assert llm_interaction.truncate("ab", 3) == "ab"
    assert llm_interaction.truncate(None, 3) == ""


# --- Fallback scoring --- #

def test_fallback_score_is_deterministic_and_labelled():
    text = "Experienced professional"

    first = llm_interaction.fallback_score_resume(text)
    second = llm_interaction.fallback_score_resume(text)

    assert first == second
    assert first.score == 60
    assert first.summary.startswith(llm_interaction.FALLBACK_SUMMARY_PREFIX)
    assert len(first.strengths) <= 3


def test_fallback_score_length_bonus_is_capped():
    text = "award " * 5000  # 30000 characters

    assert llm_interaction.fallback_score_resume(text).score == 75


@pytest.mark.asyncio
async def test_score_resume_uses_fallback_without_client():
    with patch("llm_interaction.get_llm_client", return_value=None):
        result = await llm_interaction.score_resume("Skilled engineer", "Any job")

    assert result.summary.startswith("Fallback analysis")
    assert result.score == 55


@pytest.mark.asyncio
async def test_score_resume_uses_llm_when_configured():
    client = fake_client({"score": 91, "summary": "Great match"})
    with patch("llm_interaction.get_llm_client", return_value=client):
        result = await llm_interaction.score_resume("resume", "job")

    assert result.score == 91
    client.chat.completions.create.assert_awaited_once()


# --- Candidate info --- #

@pytest.mark.asyncio
async def test_candidate_info_from_llm():
    client = fake_client({"name": "Jane Doe", "email": "jane@example.com", "phone": "null"})
    with patch("llm_interaction.get_llm_client", return_value=client):
        info = await llm_interaction.call_llm_for_candidate_info("Jane Doe\njane@example.com")

    assert info.name == "Jane Doe"
    assert info.email == "jane@example.com"
    assert info.phone is None
    assert client.chat.completions.create.call_args.kwargs["max_tokens"] == 150


@pytest.mark.asyncio
async def test_candidate_info_truncates_resume_text():
    client = fake_client({"name": "X"})
    with patch("llm_interaction.get_llm_client", return_value=client):
        await llm_interaction.call_llm_for_candidate_info("a" * 5000)

    user_prompt = client.chat.completions.create.call_args.kwargs["messages"][1]["content"]
    assert user_prompt.endswith("\n\nResume:\n" + "a" * 1000)


# --- Responses without choices --- #

@pytest.mark.asyncio
async def test_score_resume_without_choices_raises_scoring_unavailable():
    client = fake_client(choices=[])
    with patch("llm_interaction.get_llm_client", return_value=client):
        with pytest.raises(ScoringUnavailable):
            await llm_interaction.score_resume("resume", "job")


@pytest.mark.asyncio
async def test_candidate_info_without_choices_falls_back():
    client = fake_client(choices=[])
    with patch("llm_interaction.get_llm_client", return_value=client), patch(
        "candidate_info.get_llm_client", return_value=client
    ):
        info = await candidate_info.extract_candidate_info("Jane Doe\njane@example.com")

    client.chat.completions.create.assert_awaited_once()
    assert info.name == "Jane Doe"
    assert info.email == "jane@example.com"
