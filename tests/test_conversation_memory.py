"""
Tests for the bounded conversation log.
"""

import pytest

from services.memory.conversation_memory import ConversationMemory


class TestConversationMemory:
    """Capacity and context rendering."""

    def test_never_exceeds_twice_the_window(self):
        memory = ConversationMemory(window=3, char_limit=100)
        for i in range(25):
            memory.append("user" if i % 2 == 0 else "assistant", f"turn {i}")
            assert len(memory) <= 6

        assert [turn.content for turn in memory.turns()] == [f"turn {i}" for i in range(19, 25)]

    def test_context_holds_most_recent_window(self):
        memory = ConversationMemory(window=2, char_limit=100)
        for content in ("first", "second", "third"):
            memory.append("user", content)

        assert memory.context_string() == "User: second\n\nUser: third"

    def test_long_content_truncated_to_limit(self):
        memory = ConversationMemory(window=2, char_limit=20)
        memory.append("assistant", "x" * 100)

        rendered = memory.context_string()
        content = rendered[len("Assistant: "):]
        assert len(content) == 20
        assert content.endswith("...")

    def test_short_content_untouched(self):
        memory = ConversationMemory(window=2, char_limit=20)
        memory.append("assistant", "exactly twenty chars")

        assert memory.context_string() == "Assistant: exactly twenty chars"

    def test_empty_log_renders_empty_string(self):
        assert ConversationMemory().context_string() == ""

    def test_clear(self):
        memory = ConversationMemory()
        memory.append("user", "hello")
        memory.clear()

        assert len(memory) == 0

    def test_rejects_invalid_window(self):
        with pytest.raises(ValueError):
            ConversationMemory(window=0)
