"""Single-model calls to OpenAI's Responses API for each pipeline step.

Each method performs exactly one request against the model it is given and
returns the raw output text; model selection, retries and cancellation are
handled by the inference gateway.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from models.session_models import ProblemContext
from services.inference.errors import EmptyResponseError, MissingCredentialError
from services.openai.media_inputs import ImagePart, build_inputs
from services.openai.prompts import (
    debug_prompt,
    extraction_prompt,
    solution_prompt,
    solution_system_prompt,
    voice_system_prompt,
)
from services.openai.response_parser import extract_text, extract_usage

LOGGER = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 4096


class SolverClient:
    """Thin wrapper turning pipeline steps into Responses API requests."""

    def __init__(self, client: Optional[AsyncOpenAI], *, max_output_tokens: int = MAX_OUTPUT_TOKENS) -> None:
        self.client = client
        self.max_output_tokens = max_output_tokens

    async def extract_problem(self, model: str, images: Sequence[ImagePart], *, language: str) -> str:
        """Read the problem statement and reference code out of screenshots."""
        inputs = build_inputs(None, extraction_prompt(len(images), language), images=images)
        return await self._create(model, inputs, context="Extract")

    async def generate_solution(
        self,
        model: str,
        problem: ProblemContext,
        *,
        language: str,
        code_language: str,
        conversation: str = "",
    ) -> str:
        prompt = solution_prompt(
            problem.statement,
            language=language,
            code_language=code_language,
            reference_code=problem.reference_code,
            conversation=conversation,
        )
        inputs = build_inputs(solution_system_prompt(), prompt)
        return await self._create(model, inputs, context="GenerateSolution")

    async def debug_solution(
        self,
        model: str,
        problem: ProblemContext,
        images: Sequence[ImagePart],
        *,
        language: str,
        code_language: str,
        conversation: str = "",
    ) -> str:
        prompt = debug_prompt(problem.statement, problem.solution, language=language, code_language=code_language)
        extra = f"Previous conversation (for continuity):\n{conversation}" if conversation else None
        inputs = build_inputs(None, prompt, images=images, extra_text=extra)
        return await self._create(model, inputs, context="Debug")

    async def answer_voice(
        self,
        model: str,
        question: str,
        *,
        language: str,
        code_language: str,
        problem: Optional[ProblemContext] = None,
        conversation: str = "",
    ) -> str:
        system_prompt = voice_system_prompt(
            language=language,
            code_language=code_language,
            problem=problem.statement if problem else None,
            conversation=conversation,
        )
        inputs = build_inputs(system_prompt, f"User's voice question: {question}")
        return await self._create(model, inputs, context="VoiceResponse")

    async def _create(self, model: str, inputs: List[Dict[str, Any]], *, context: str) -> str:
        if self.client is None:
            raise MissingCredentialError("OpenAI API key is not configured.")

        start = time.time()
        response = await self.client.responses.create(
            model=model,
            input=inputs,
            max_output_tokens=self.max_output_tokens,
        )
        text = extract_text(response)
        usage = extract_usage(response)
        LOGGER.info(
            "[%s] %s responded in %.3fs (input_tokens=%s, output_tokens=%s)",
            context,
            model,
            time.time() - start,
            usage["input_tokens"],
            usage["output_tokens"],
        )
        if not text.strip():
            raise EmptyResponseError(f"{model} returned an empty response.")
        LOGGER.debug("[%s] Response preview: %s", context, text[:500])
        return text
