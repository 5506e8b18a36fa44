"""Bounded in-memory conversation log used to build prompt context."""

from __future__ import annotations

from collections import deque
from typing import Deque, List

from models.session_models import ConversationTurn

DEFAULT_WINDOW = 10
DEFAULT_CHAR_LIMIT = 500
ELLIPSIS = "..."


class ConversationMemory:
	"""Keep the last `2 * window` turns and render the last `window` as context.

	Not thread-safe; the pipeline controller is the only writer.
	"""

	def __init__(self, window: int = DEFAULT_WINDOW, char_limit: int = DEFAULT_CHAR_LIMIT) -> None:
		if window < 1:
			raise ValueError("Conversation window must be at least 1.")
		if char_limit < 1:
			raise ValueError("Context character limit must be at least 1.")
		self.window = window
		self.char_limit = char_limit
		self._turns: Deque[ConversationTurn] = deque()

	@property
	def capacity(self) -> int:
		return 2 * self.window

	def append(self, role: str, content: str) -> ConversationTurn:
		"""Record a turn, dropping the oldest ones beyond capacity."""
		turn = ConversationTurn(role=role, content=content.strip())
		self._turns.append(turn)
		while len(self._turns) > self.capacity:
			self._turns.popleft()
		return turn

	def turns(self) -> List[ConversationTurn]:
		return list(self._turns)

	def clear(self) -> None:
		self._turns.clear()

	def context_string(self) -> str:
		"""Return the most recent turns as `Role: content` blocks."""
		recent = list(self._turns)[-self.window:]
		return "\n\n".join(f"{turn.role.capitalize()}: {self._truncate(turn.content)}" for turn in recent)

	def _truncate(self, content: str) -> str:
		if len(content) <= self.char_limit:
			return content
		if self.char_limit <= len(ELLIPSIS):
			return content[: self.char_limit]
		return content[: self.char_limit - len(ELLIPSIS)] + ELLIPSIS

	def __len__(self) -> int:
		return len(self._turns)
