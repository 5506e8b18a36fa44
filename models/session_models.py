"""Session domain models for the capture and solve pipeline."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
from uuid import uuid4


class SessionState(str, Enum):
	"""Stage of the single active problem session."""

	QUEUE = "queue"
	EXTRACTING = "extracting"
	SOLVING = "solving"
	SOLVED = "solved"
	DEBUGGING = "debugging"


class QueueKind(str, Enum):
	"""Selects one of the two capture queues."""

	PRIMARY = "primary"
	SECONDARY = "secondary"


@dataclass
class CapturedImage:
	"""A captured screenshot backed by a file on disk."""

	path: str
	mime_type: str = "image/png"
	id: str = field(default_factory=lambda: uuid4().hex)
	created_at: float = field(default_factory=lambda: time.time())


@dataclass
class ConversationTurn:
	"""One user or assistant message kept for prompt continuity."""

	role: str
	content: str
	timestamp: float = field(default_factory=lambda: time.time())


@dataclass
class ProblemContext:
	"""The problem currently being worked on."""

	statement: str
	reference_code: Optional[str] = None
	solution: Optional[str] = None
	debug_analysis: Optional[str] = None


@dataclass
class DeleteResult:
	"""Outcome of removing a capture from a queue."""

	success: bool
	error: Optional[str] = None


@dataclass
class Session:
	"""Mutable state of the active session, written only by the pipeline controller."""

	state: SessionState = SessionState.QUEUE
	has_debugged: bool = False
	problem: Optional[ProblemContext] = None
	last_used_model: Optional[str] = None
