"""Events published by the pipeline to the presentation layer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, List, Optional


@dataclass(frozen=True)
class PipelineEvent:
	"""Base class for every event in the fixed vocabulary."""

	name: ClassVar[str] = "event"

	def to_dict(self) -> Dict[str, Any]:
		payload = asdict(self)
		payload["type"] = self.name
		return payload


@dataclass(frozen=True)
class InitialStart(PipelineEvent):
	name: ClassVar[str] = "initial-start"


@dataclass(frozen=True)
class ProblemExtracted(PipelineEvent):
	name: ClassVar[str] = "problem-extracted"

	statement: str = ""


@dataclass(frozen=True)
class SolutionSuccess(PipelineEvent):
	name: ClassVar[str] = "solution-success"

	code: str = ""
	thoughts: List[str] = field(default_factory=list)
	time_complexity: str = "N/A"
	space_complexity: str = "N/A"
	short_answer: Optional[str] = None


@dataclass(frozen=True)
class SolutionError(PipelineEvent):
	name: ClassVar[str] = "solution-error"

	message: str = ""


@dataclass(frozen=True)
class NoCaptures(PipelineEvent):
	name: ClassVar[str] = "processing-no-screenshots"


@dataclass(frozen=True)
class DebugStart(PipelineEvent):
	name: ClassVar[str] = "debug-start"


@dataclass(frozen=True)
class DebugSuccess(PipelineEvent):
	name: ClassVar[str] = "debug-success"

	text: str = ""


@dataclass(frozen=True)
class DebugError(PipelineEvent):
	name: ClassVar[str] = "debug-error"

	message: str = ""


@dataclass(frozen=True)
class ResetView(PipelineEvent):
	name: ClassVar[str] = "reset-view"


@dataclass(frozen=True)
class ModelUsed(PipelineEvent):
	name: ClassVar[str] = "model-used"

	model_id: str = ""


@dataclass(frozen=True)
class OutOfQuota(PipelineEvent):
	name: ClassVar[str] = "out-of-credits"
