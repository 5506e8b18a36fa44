"""Answer a spoken question and present it as a solved problem."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from models.events import InitialStart
from models.session_models import ProblemContext, SessionState
from services.inference.errors import ErrorKind, GatewayError, user_message
from services.inference.gateway import InferenceRequest
from services.openai.dictation_service import DictationService
from services.openai.response_parser import parse_voice_answer

if TYPE_CHECKING:
	from services.pipeline.pipeline_controller import PipelineController

LOGGER = logging.getLogger(__name__)

TRANSCRIPTION_FAILED_MESSAGE = "Could not transcribe audio. Please try again."


class VoiceTurnAdapter:
	"""Transcribe audio, answer it, and drive the controller straight to solved.

	The voice turn runs under the controller's solve token, so it replaces any
	solve in flight and is itself canceled by a reset or a new capture.
	"""

	def __init__(self, controller: "PipelineController", dictation: DictationService) -> None:
		self.controller = controller
		self.dictation = dictation

	async def submit(self, audio_bytes: bytes, mime_type: str = "audio/webm") -> None:
		if not audio_bytes:
			raise ValueError("Audio payload is required for a voice question.")

		controller = self.controller
		settings = controller.settings
		token = controller.begin_solve_flow(enter=SessionState.SOLVING)
		previous = controller.session.problem
		try:
			transcribe = InferenceRequest(
				"VoiceTranscription",
				lambda model: self.dictation.transcribe(audio_bytes, model, mime_type=mime_type),
				exhausted_message=TRANSCRIPTION_FAILED_MESSAGE,
			)
			question = await controller.gateway.execute(transcribe, controller.transcription_chain(), token)
			LOGGER.info("Transcription: %s", question)

			conversation = controller.memory.context_string()
			controller.memory.append("user", f"Voice question: {question}")
			controller.bus.publish(InitialStart())
			problem = ProblemContext(statement=question)
			controller.adopt_problem(token, problem, f"**Voice Question:** {question}")

			answer = InferenceRequest(
				"VoiceResponse",
				lambda model: controller.solver.answer_voice(
					model,
					question,
					language=settings.response_language,
					code_language=settings.code_language,
					problem=previous,
					conversation=conversation,
				),
			)
			raw = await controller.gateway.execute(answer, controller.chain(), token)
			controller.session.last_used_model = controller.gateway.last_used_model

			solution = parse_voice_answer(raw, question, code_language=settings.code_language)
			await controller.complete_solve(token, problem, solution, assistant_prefix="Voice response: ")
		except GatewayError as exc:
			controller.fail_solve(token, exc.message, exc.kind)
		except Exception as exc:
			LOGGER.exception("Failed to process audio")
			controller.fail_solve(token, user_message(ErrorKind.UNKNOWN, exc), ErrorKind.UNKNOWN)
		finally:
			controller.end_solve_flow(token)
