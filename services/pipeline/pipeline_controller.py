"""Session state machine sequencing capture, extraction, solving and debugging.

The controller is the only writer of session state. Each top-level action
class (solve, debug) owns one cancellation token at a time; a flow only
touches the session while its token is still the current one, so a response
that arrives after a reset or a new capture is dropped instead of overwriting
newer context.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any, Awaitable, Dict, List, Optional, Sequence, Set

from models.events import (
	DebugError,
	DebugStart,
	DebugSuccess,
	InitialStart,
	NoCaptures,
	OutOfQuota,
	ProblemExtracted,
	ResetView,
	SolutionError,
	SolutionSuccess,
)
from models.session_models import (
	CapturedImage,
	DeleteResult,
	ProblemContext,
	QueueKind,
	Session,
	SessionState,
)
from models.solution_models import SolutionPayload, summarize_solution
from services.capture.capture_queues import CaptureQueues
from services.capture.screenshot_store import ScreenshotStore
from services.event_bus import EventBus
from services.inference.cancellation import CancellationToken
from services.inference.errors import ErrorKind, GatewayError, user_message
from services.inference.gateway import InferenceGateway, InferenceRequest
from services.inference.model_chain import chain_from
from services.memory.conversation_memory import ConversationMemory
from services.openai.dictation_service import DictationService
from services.openai.media_inputs import ImagePart
from services.openai.response_parser import parse_extraction, parse_solution
from services.openai.solver_client import SolverClient
from services.pipeline.voice_turn import VoiceTurnAdapter
from utils.settings import Settings

LOGGER = logging.getLogger(__name__)

NO_STATEMENT_MESSAGE = "Could not extract a problem statement from the screenshots."
NO_PROBLEM_MESSAGE = "No problem info available."


class PipelineError(Exception):
	"""A flow failure raised outside the inference gateway."""

	def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN) -> None:
		super().__init__(message)
		self.message = message
		self.kind = kind


class PipelineController:
	"""Drive the single active session through its states."""

	def __init__(
		self,
		*,
		settings: Settings,
		store: ScreenshotStore,
		solver: SolverClient,
		dictation: DictationService,
		gateway: InferenceGateway,
		bus: EventBus,
		memory: Optional[ConversationMemory] = None,
	) -> None:
		self.settings = settings
		self.store = store
		self.solver = solver
		self.gateway = gateway
		self.bus = bus
		self.session = Session()
		self.queues = CaptureQueues(store, settings.secondary_capacity)
		self.memory = memory or ConversationMemory(settings.conversation_window, settings.context_char_limit)
		self.voice = VoiceTurnAdapter(self, dictation)
		self._solve_token: Optional[CancellationToken] = None
		self._debug_token: Optional[CancellationToken] = None
		self._tasks: Set[asyncio.Task] = set()

	# ------------------------------------------------------------------
	# Read-only views

	@property
	def state(self) -> SessionState:
		return self.session.state

	def chain(self) -> List[str]:
		return chain_from(self.settings.preferred_model, self.settings.model_order)

	def transcription_chain(self) -> List[str]:
		return chain_from(self.settings.preferred_transcription_model, self.settings.transcription_model_order)

	def snapshot(self) -> Dict[str, Any]:
		"""Return a serializable view of the session for the presentation layer."""
		problem = self.session.problem
		return {
			"state": self.session.state.value,
			"has_debugged": self.session.has_debugged,
			"problem": asdict(problem) if problem else None,
			"primary": [image.id for image in self.queues.primary],
			"secondary": [image.id for image in self.queues.secondary],
			"conversation_turns": len(self.memory),
			"preferred_model": self.settings.preferred_model,
			"last_used_model": self.session.last_used_model,
			"in_flight": {"solve": self._solve_token is not None, "debug": self._debug_token is not None},
		}

	# ------------------------------------------------------------------
	# Presentation actions

	async def capture_primary(self, image_bytes: bytes, mime_type: str = "image/png") -> CapturedImage:
		"""Store a new problem screenshot; any earlier problem is abandoned."""
		if not image_bytes:
			raise ValueError("Image bytes are required for capture.")
		image = await self.store.save(image_bytes, mime_type, QueueKind.PRIMARY)
		# No await between canceling and replacing the queue: a flow started
		# while the file was being written must not survive on the old image.
		self._cancel_solve("new primary capture")
		self._cancel_debug("new primary capture")
		self.session.has_debugged = False
		if self.session.state is not SessionState.QUEUE:
			LOGGER.info("Resetting state to queue for new screenshot")
			self._set_state(SessionState.QUEUE)
		await self.queues.capture_primary(image)
		return image

	async def capture_secondary(self, image_bytes: bytes, mime_type: str = "image/png") -> CapturedImage:
		"""Store a follow-up screenshot for debugging the current solution."""
		if not image_bytes:
			raise ValueError("Image bytes are required for capture.")
		image = await self.store.save(image_bytes, mime_type, QueueKind.SECONDARY)
		await self.queues.add_secondary(image)
		return image

	async def delete(self, index: int, queue: Optional[QueueKind] = None) -> DeleteResult:
		"""Delete a capture; without `queue`, the queue shown in the current view is used."""
		if queue is None:
			queue = QueueKind.PRIMARY if self.session.state is SessionState.QUEUE else QueueKind.SECONDARY
		return await self.queues.delete(queue, index)

	async def preview(self, image: CapturedImage) -> str:
		return await self.store.preview(image)

	async def process(self) -> None:
		"""Solve the primary capture, or debug with the secondary captures once solved."""
		state = self.session.state
		if state is SessionState.QUEUE:
			await self._solve_flow()
		elif state is SessionState.SOLVED:
			await self._debug_flow()
		else:
			LOGGER.info("Ignoring process request while %s", state.value)

	async def submit_voice(self, audio_bytes: bytes, mime_type: str = "audio/webm") -> None:
		await self.voice.submit(audio_bytes, mime_type)

	async def reset(self) -> None:
		"""Cancel everything in flight and return to an empty queue."""
		self._cancel_solve("reset")
		self._cancel_debug("reset")
		self.session.problem = None
		self.session.has_debugged = False
		self.memory.clear()
		self._set_state(SessionState.QUEUE)
		self.bus.publish(ResetView())
		await self.queues.clear_all()

	def update_preferences(
		self,
		*,
		preferred_model: Optional[str] = None,
		response_language: Optional[str] = None,
		code_language: Optional[str] = None,
	) -> None:
		if preferred_model:
			if preferred_model not in self.settings.model_order:
				LOGGER.warning("Unknown model %s; fallback chain will start from the top", preferred_model)
			self.settings.preferred_model = preferred_model
		if response_language:
			self.settings.response_language = response_language
		if code_language:
			self.settings.code_language = code_language

	# ------------------------------------------------------------------
	# Background scheduling

	def start(self, action: Awaitable[Any]) -> "asyncio.Task[Any]":
		"""Run an action in the background so the caller is never blocked."""
		task = asyncio.ensure_future(action)
		self._tasks.add(task)
		task.add_done_callback(self._task_done)
		return task

	async def shutdown(self) -> None:
		self._cancel_solve("shutdown")
		self._cancel_debug("shutdown")
		tasks = list(self._tasks)
		for task in tasks:
			task.cancel()
		await asyncio.gather(*tasks, return_exceptions=True)

	def _task_done(self, task: "asyncio.Task[Any]") -> None:
		self._tasks.discard(task)
		if not task.cancelled() and task.exception() is not None:
			LOGGER.error("Pipeline action failed: %s", task.exception(), exc_info=task.exception())

	# ------------------------------------------------------------------
	# Solve flow

	def begin_solve_flow(self, enter: Optional[SessionState] = None) -> CancellationToken:
		"""Claim the solve slot, aborting whatever held it before."""
		self._cancel_solve("superseded")
		self._cancel_debug("superseded")
		token = CancellationToken("solve")
		self._solve_token = token
		if enter is not None:
			self._set_state(enter)
		return token

	def owns_solve(self, token: CancellationToken) -> bool:
		return token is self._solve_token and not token.canceled

	def end_solve_flow(self, token: CancellationToken) -> None:
		if self._solve_token is token:
			self._solve_token = None

	async def _solve_flow(self) -> None:
		primary = self.queues.primary
		if not primary:
			self.bus.publish(NoCaptures())
			return

		token = self.begin_solve_flow()
		self.bus.publish(InitialStart())
		self._set_state(SessionState.EXTRACTING)
		try:
			images = await self._load_images(primary)
			problem, display = await self._extract(images, token)
			self.adopt_problem(token, problem, display)
			solution = await self._solve(problem, token)
			await self.complete_solve(token, problem, solution, user_turn=f"Problem: {problem.statement}")
		except (GatewayError, PipelineError) as exc:
			self.fail_solve(token, exc.message, exc.kind)
		except Exception as exc:
			LOGGER.exception("Processing error")
			self.fail_solve(token, user_message(ErrorKind.UNKNOWN, exc), ErrorKind.UNKNOWN)
		finally:
			self.end_solve_flow(token)

	async def _extract(self, images: Sequence[ImagePart], token: CancellationToken):
		language = self.settings.response_language
		request = InferenceRequest(
			"Extract",
			lambda model: self.solver.extract_problem(model, images, language=language),
		)
		raw = await self.gateway.execute(request, self.chain(), token)
		self._record_model()

		extraction = parse_extraction(raw)
		statement = extraction.problem_statement.strip()
		reference_code = (extraction.code_snippet or "").strip() or None
		display = "\n\n".join(part for part in (statement, reference_code) if part)
		if not display:
			raise PipelineError(NO_STATEMENT_MESSAGE, ErrorKind.MALFORMED_RESPONSE)
		return ProblemContext(statement=statement or display, reference_code=reference_code), display

	async def _solve(self, problem: ProblemContext, token: CancellationToken) -> SolutionPayload:
		language = self.settings.response_language
		code_language = self.settings.code_language
		conversation = self.memory.context_string()
		request = InferenceRequest(
			"GenerateSolution",
			lambda model: self.solver.generate_solution(
				model, problem, language=language, code_language=code_language, conversation=conversation
			),
		)
		raw = await self.gateway.execute(request, self.chain(), token)
		self._record_model()
		solution = parse_solution(raw, language=language, code_language=code_language)
		if solution.degraded:
			LOGGER.warning("Solution response did not match the schema; using degraded record")
		return solution

	def adopt_problem(self, token: CancellationToken, problem: ProblemContext, display: str) -> None:
		"""Install a freshly extracted problem and move on to solving."""
		if not self.owns_solve(token):
			raise GatewayError(ErrorKind.CANCELED, user_message(ErrorKind.CANCELED))
		self.session.problem = problem
		self.bus.publish(ProblemExtracted(statement=display))
		self._set_state(SessionState.SOLVING)

	async def complete_solve(
		self,
		token: CancellationToken,
		problem: ProblemContext,
		solution: SolutionPayload,
		*,
		user_turn: Optional[str] = None,
		assistant_prefix: str = "",
	) -> None:
		if not self.owns_solve(token):
			raise GatewayError(ErrorKind.CANCELED, user_message(ErrorKind.CANCELED))
		problem.solution = solution.code
		self.session.problem = problem
		if user_turn:
			self.memory.append("user", user_turn)
		self.memory.append("assistant", f"{assistant_prefix}{summarize_solution(solution)}")
		self._set_state(SessionState.SOLVED)
		self.bus.publish(SolutionSuccess(**solution.as_event_fields()))
		await self.queues.clear_secondary()

	def fail_solve(self, token: CancellationToken, message: str, kind: ErrorKind = ErrorKind.UNKNOWN) -> None:
		"""Report a terminal solve failure; the state only moves if the flow still owns it."""
		LOGGER.info("Solve flow failed (%s): %s", kind.value, message)
		if kind is ErrorKind.RATE_LIMITED:
			self.bus.publish(OutOfQuota())
		if token is self._solve_token:
			self._set_state(SessionState.QUEUE)
		self.bus.publish(SolutionError(message=message))

	# ------------------------------------------------------------------
	# Debug flow

	async def _debug_flow(self) -> None:
		secondary = self.queues.secondary
		if not secondary:
			self.bus.publish(NoCaptures())
			return
		problem = self.session.problem
		if problem is None:
			self.bus.publish(DebugError(message=NO_PROBLEM_MESSAGE))
			return

		self._cancel_debug("superseded")
		token = CancellationToken("debug")
		self._debug_token = token
		self.bus.publish(DebugStart())
		self._set_state(SessionState.DEBUGGING)
		try:
			images = await self._load_images(self.queues.primary + secondary)
			text = await self._debug(problem, images, token)
			if token is not self._debug_token or token.canceled:
				raise GatewayError(ErrorKind.CANCELED, user_message(ErrorKind.CANCELED))
			self.session.has_debugged = True
			problem.debug_analysis = text
			self.memory.append("assistant", f"Debug analysis: {text}")
			self._set_state(SessionState.SOLVED)
			self.bus.publish(DebugSuccess(text=text))
		except (GatewayError, PipelineError) as exc:
			self._fail_debug(token, exc.message, exc.kind)
		except Exception as exc:
			LOGGER.exception("Debug error")
			self._fail_debug(token, user_message(ErrorKind.UNKNOWN, exc), ErrorKind.UNKNOWN)
		finally:
			if self._debug_token is token:
				self._debug_token = None

	async def _debug(self, problem: ProblemContext, images: Sequence[ImagePart], token: CancellationToken) -> str:
		language = self.settings.response_language
		code_language = self.settings.code_language
		conversation = self.memory.context_string()
		request = InferenceRequest(
			"Debug",
			lambda model: self.solver.debug_solution(
				model, problem, images, language=language, code_language=code_language, conversation=conversation
			),
		)
		text = await self.gateway.execute(request, self.chain(), token)
		self._record_model()
		return text.strip()

	def _fail_debug(self, token: CancellationToken, message: str, kind: ErrorKind) -> None:
		LOGGER.info("Debug flow failed (%s): %s", kind.value, message)
		if kind is ErrorKind.RATE_LIMITED:
			self.bus.publish(OutOfQuota())
		if token is self._debug_token:
			self._set_state(SessionState.SOLVED)
		self.bus.publish(DebugError(message=message))

	# ------------------------------------------------------------------
	# Helpers

	async def _load_images(self, images: Sequence[CapturedImage]) -> List[ImagePart]:
		try:
			return [(await self.store.read(image), image.mime_type) for image in images]
		except OSError as exc:
			raise PipelineError(f"Could not read screenshot: {exc}") from exc

	def _record_model(self) -> None:
		self.session.last_used_model = self.gateway.last_used_model

	def _set_state(self, state: SessionState) -> None:
		if state is not self.session.state:
			LOGGER.info("Session state %s -> %s", self.session.state.value, state.value)
		self.session.state = state

	def _cancel_solve(self, reason: str) -> None:
		if self._solve_token is not None:
			LOGGER.info("Canceling solve flow: %s", reason)
			self._solve_token.cancel(reason)
			self._solve_token = None

	def _cancel_debug(self, reason: str) -> None:
		if self._debug_token is not None:
			LOGGER.info("Canceling debug flow: %s", reason)
			self._debug_token.cancel(reason)
			self._debug_token = None
