"""Schemas for structured model output.

The solution payload is validated strictly: every field must be present with
the right type. When validation fails the pipeline keeps going with a
`DegradedSolution`, which carries the raw model text instead.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class ProblemExtraction(BaseModel):
    """Problem statement and reference code read from the screenshots."""

    model_config = ConfigDict(extra="ignore")

    problem_statement: StrictStr
    code_snippet: Optional[StrictStr] = None


class SolutionPayload(BaseModel):
    """Structured solution returned by the solving step."""

    model_config = ConfigDict(extra="ignore")

    short_answer: Optional[StrictStr] = None
    code: StrictStr = Field(min_length=1)
    thoughts: List[StrictStr] = Field(min_length=1)
    time_complexity: StrictStr = "N/A"
    space_complexity: StrictStr = "N/A"

    @property
    def degraded(self) -> bool:
        return False

    def as_event_fields(self) -> dict:
        """Return the fields carried by a solution-success event."""
        return {
            "short_answer": self.short_answer,
            "code": self.code,
            "thoughts": list(self.thoughts),
            "time_complexity": self.time_complexity,
            "space_complexity": self.space_complexity,
        }


class DegradedSolution(SolutionPayload):
    """Best-effort record built when the model output fails validation."""

    raw_text: str = ""

    @property
    def degraded(self) -> bool:
        return True


def summarize_solution(solution: SolutionPayload, limit: int = 300) -> str:
    """Return a short text summary of a solution for the conversation log."""
    if solution.short_answer:
        return solution.short_answer
    return " ".join(solution.thoughts)[:limit]
