"""Helpers to turn Responses API output into pipeline records."""

import json
import logging
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from models.solution_models import DegradedSolution, ProblemExtraction, SolutionPayload

LOGGER = logging.getLogger(__name__)

_FENCE = re.compile(r"^```(?:[\w+-]+)?\s*([\s\S]*?)\s*```$")

HASH_COMMENT_LANGUAGES = {"python", "ruby", "bash", "shell", "r", "perl", "elixir"}


def extract_text(response: Any) -> str:
    """Return the concatenated output text of a response."""
    text = getattr(response, "output_text", None)
    if isinstance(text, str) and text:
        return text
    chunks = []
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                chunks.append(getattr(content, "text", "") or "")
    return "".join(chunks)


def extract_usage(response: Any) -> Dict[str, Optional[int]]:
    """Return token usage information from the response, if present."""
    usage = getattr(response, "usage", None)
    return {
        "input_tokens": getattr(usage, "input_tokens", None) if usage else None,
        "output_tokens": getattr(usage, "output_tokens", None) if usage else None,
    }


def strip_code_fences(raw: str) -> str:
    """Remove a surrounding markdown code fence, if present."""
    candidate = (raw or "").strip()
    match = _FENCE.match(candidate)
    return match.group(1) if match else candidate


def parse_json_object(raw: str) -> Optional[Dict[str, Any]]:
    """Parse a JSON object from model text; None when it is not one."""
    candidate = strip_code_fences(raw)
    if not candidate:
        return None
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        LOGGER.warning("Failed to parse JSON response: %s", exc)
        return None
    return data if isinstance(data, dict) else None


def comment_prefix(code_language: str) -> str:
    return "#" if (code_language or "").lower() in HASH_COMMENT_LANGUAGES else "//"


def parse_extraction(raw: str) -> ProblemExtraction:
    """Read the extraction payload, falling back to the raw text as statement."""
    data = parse_json_object(raw)
    if data is not None:
        try:
            return ProblemExtraction.model_validate(data)
        except ValidationError as exc:
            LOGGER.warning("Extraction payload failed validation: %s", exc)
    return ProblemExtraction(problem_statement=(raw or "").strip())


def degraded_solution(raw: str, *, language: str, code_language: str) -> DegradedSolution:
    """Build the best-effort record used when the solution payload is invalid."""
    prefix = comment_prefix(code_language)
    return DegradedSolution(
        short_answer=None,
        code=f"{prefix} Failed to parse model response.",
        thoughts=[
            f"Model response could not be parsed as JSON (requested language: {language}).",
            raw or "",
        ],
        time_complexity="N/A",
        space_complexity="N/A",
        raw_text=raw or "",
    )


def parse_solution(raw: str, *, language: str, code_language: str) -> SolutionPayload:
    """Validate a structured solution, degrading instead of failing."""
    data = parse_json_object(raw)
    if data is not None:
        try:
            return SolutionPayload.model_validate(data)
        except ValidationError as exc:
            LOGGER.warning("Solution payload failed validation: %s", exc)
    return degraded_solution(raw, language=language, code_language=code_language)


def parse_voice_answer(raw: str, question: str, *, code_language: str) -> SolutionPayload:
    """Read a voice answer. Code and thoughts are optional for spoken questions."""
    prefix = comment_prefix(code_language)
    placeholder = f"{prefix} Voice Response\n{prefix} Question: {question}\n{prefix} See explanation above for the answer."
    data = parse_json_object(raw)
    if data is None:
        LOGGER.warning("Failed to parse voice response as JSON")
        return DegradedSolution(
            short_answer=None,
            code=f"{prefix} Voice Response\n{prefix} Question: {question}",
            thoughts=[raw or "I couldn't generate a response. Please try again."],
            time_complexity="N/A",
            space_complexity="N/A",
            raw_text=raw or "",
        )

    short_answer = data.get("short_answer")
    short_answer = short_answer if isinstance(short_answer, str) and short_answer else None
    thoughts = data.get("thoughts")
    if isinstance(thoughts, list) and thoughts:
        thoughts = [str(thought) for thought in thoughts]
    else:
        thoughts = [short_answer] if short_answer else ["Response received."]
    code = data.get("code")
    if not isinstance(code, str) or not code.strip():
        code = placeholder
    return SolutionPayload(
        short_answer=short_answer,
        code=code,
        thoughts=thoughts,
        time_complexity=str(data.get("time_complexity") or "N/A"),
        space_complexity=str(data.get("space_complexity") or "N/A"),
    )
