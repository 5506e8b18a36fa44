"""Prompt builders for extraction, solving, debugging and voice answers."""

from __future__ import annotations

from typing import Optional

SOLUTION_SCHEMA = """{{
  "short_answer": "nullable string with the concise final answer in {language}",
  "code": "Complete {code_language} solution. Comments must be in {language}.",
  "thoughts": ["Array of step-by-step explanations in {language}"],
  "time_complexity": "Time complexity in {language}",
  "space_complexity": "Space complexity in {language}"
}}"""


def extraction_prompt(image_count: int, language: str) -> str:
    """Return the instruction for reading a problem out of screenshots."""
    return (
        f"You are given up to {image_count} screenshot(s) containing a coding interview question. "
        "Extract the complete problem statement, including every requirement, example, or detail, "
        "as well as any code snippet that appears in the screenshots. "
        f"Respond strictly in {language} and follow this JSON schema:\n"
        "{\n"
        f'  "problem_statement": "Full description in {language}",\n'
        '  "code_snippet": "Any starter or reference code (may be empty)"\n'
        "}"
    )


def solution_system_prompt() -> str:
    return (
        "You are an expert coding assistant helping with interview preparation. "
        "Return ONLY valid JSON, no markdown code fences or other text."
    )


def solution_prompt(
    statement: str,
    *,
    language: str,
    code_language: str,
    reference_code: Optional[str] = None,
    conversation: str = "",
) -> str:
    """Return the user prompt asking for a structured solution."""
    schema = SOLUTION_SCHEMA.format(language=language, code_language=code_language)
    parts = [
        f"Analyze the problem statement below and respond in {language}. "
        f"Output JSON that matches this schema exactly:\n{schema}",
        'If a field is unknown, use null for short_answer and "N/A" for complexity entries.',
        f"Problem statement:\n{statement}",
    ]
    if reference_code:
        parts.append(f"Reference code from the screenshots:\n{reference_code}")
    if conversation:
        parts.append(f"Previous conversation (for continuity):\n{conversation}")
    return "\n\n".join(parts)


def debug_prompt(statement: str, solution: Optional[str], *, language: str, code_language: str) -> str:
    """Return the prompt asking for debugging guidance over new screenshots."""
    return (
        "You are assisting with debugging during a coding interview. "
        "The candidate has provided additional screenshots of their work.\n\n"
        f"Problem (in {language}):\n{statement}\n\n"
        f"Current AI solution in {code_language}:\n{solution or '// No solution available yet.'}\n\n"
        f"Using the new screenshots, provide updated guidance in {language}. "
        "Suggest fixes, highlight mistakes, and offer an improved approach."
    )


def voice_system_prompt(*, language: str, code_language: str, problem: Optional[str] = None, conversation: str = "") -> str:
    """Return the system prompt for answering a spoken question."""
    context = ""
    if problem:
        context += f"\n\nCurrent coding problem context:\n{problem}"
    if conversation:
        context += f"\n\nPrevious conversation (for continuity):\n{conversation}"
    schema = SOLUTION_SCHEMA.format(language=language, code_language=code_language)
    return (
        "You are a helpful coding interview assistant. The user is asking a question via voice "
        "about coding problems or algorithms. Provide clear, concise answers in "
        f"{language}. If they're asking about code, provide examples in {code_language}. "
        f"Be conversational but focused on helping them understand and solve coding problems.{context}\n\n"
        f"You MUST respond in JSON format with the following structure:\n{schema}\n\n"
        "Use an empty string for code when no code applies. "
        "IMPORTANT: Return ONLY valid JSON, no markdown code fences or other text."
    )
