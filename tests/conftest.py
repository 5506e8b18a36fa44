"""
Pytest fixtures and fakes for the capture and solve pipeline tests.
"""

import asyncio
import io
import json
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

from models.session_models import CapturedImage, QueueKind, SessionState
from services.event_bus import EventBus
from services.inference.errors import EmptyResponseError
from services.inference.gateway import InferenceGateway
from services.pipeline.pipeline_controller import PipelineController
from utils.settings import Settings

EXTRACTION_JSON = json.dumps({"problem_statement": "Return the indices of two numbers adding up to target.", "code_snippet": None})
SOLUTION_JSON = json.dumps(
    {
        "short_answer": "Use a hash map of seen values.",
        "code": "def two_sum(nums, target):\n    seen = {}\n    for i, n in enumerate(nums):\n        if target - n in seen:\n            return [seen[target - n], i]\n        seen[n] = i",
        "thoughts": ["Store each value's index", "Look up the complement"],
        "time_complexity": "O(n)",
        "space_complexity": "O(n)",
    }
)


def png_bytes(size=(40, 30), color="white") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


async def block_forever(model: str) -> str:
    await asyncio.Event().wait()
    return ""


class ScriptedCall:
    """Async stand-in for a provider call that replays outcomes per model.

    Each model id maps to a list of outcomes consumed in order; once a list is
    down to its last outcome, that outcome repeats. An outcome is a return
    value, an exception instance to raise, or an async callable taking the
    model id. Models without a script use `default`.
    """

    def __init__(self, outcomes: Optional[Dict[str, List[Any]]] = None, default: Any = "ok") -> None:
        self.outcomes = {model: list(items) for model, items in (outcomes or {}).items()}
        self.default = default
        self.calls: List[str] = []

    async def __call__(self, model: str, *args, **kwargs) -> Any:
        self.calls.append(model)
        script = self.outcomes.get(model)
        if script:
            outcome = script.pop(0) if len(script) > 1 else script[0]
        else:
            outcome = self.default
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return await outcome(model)
        return outcome


class RecordingSleep:
    """Injected gateway sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeStore:
    """In-memory capture collaborator."""

    def __init__(self) -> None:
        self.files: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self.fail_delete: set = set()
        # when set, save() waits on it so writes can be interleaved with other actions
        self.save_gate: Optional[asyncio.Event] = None
        self.saves_waiting = 0

    async def save(self, image_bytes: bytes, mime_type: str = "image/png", kind: QueueKind = QueueKind.PRIMARY) -> CapturedImage:
        if self.save_gate is not None:
            self.saves_waiting += 1
            await self.save_gate.wait()
        image = CapturedImage(path=f"memory://{kind.value}/{len(self.files)}.png", mime_type=mime_type)
        self.files[image.path] = image_bytes
        return image

    async def read(self, image: CapturedImage) -> bytes:
        if image.path not in self.files:
            raise FileNotFoundError(image.path)
        return self.files[image.path]

    async def preview(self, image: CapturedImage) -> str:
        return f"data:image/png;base64,preview-{image.id}"

    async def delete(self, image: CapturedImage) -> None:
        if image.path in self.fail_delete:
            raise OSError(f"permission denied: {image.path}")
        self.files.pop(image.path, None)
        self.deleted.append(image.path)


class FakeSolver:
    """Provider client whose per-step answers are scripted."""

    def __init__(self) -> None:
        self.extract = ScriptedCall(default=EXTRACTION_JSON)
        self.solve = ScriptedCall(default=SOLUTION_JSON)
        self.debug = ScriptedCall(default="The loop misses the last element; iterate to len(nums).")
        self.voice = ScriptedCall(default=json.dumps({"short_answer": "A heap is a priority tree.", "thoughts": ["Parents order children"]}))
        self.voice_problems: List[Any] = []

    async def extract_problem(self, model, images, *, language):
        return await self.extract(model)

    async def generate_solution(self, model, problem, *, language, code_language, conversation=""):
        return await self.solve(model)

    async def debug_solution(self, model, problem, images, *, language, code_language, conversation=""):
        return await self.debug(model)

    async def answer_voice(self, model, question, *, language, code_language, problem=None, conversation=""):
        self.voice_problems.append(problem)
        return await self.voice(model)


class FakeDictation:
    def __init__(self) -> None:
        self.transcribe_call = ScriptedCall(default="What is a heap?")

    async def transcribe(self, audio_bytes, model, *, mime_type="audio/webm"):
        return await self.transcribe_call(model)


def empty_transcription() -> EmptyResponseError:
    return EmptyResponseError("Transcription returned no text.")


async def wait_for_state(controller: PipelineController, state: SessionState, attempts: int = 200) -> None:
    for _ in range(attempts):
        if controller.state is state:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"controller never reached {state.value}; still {controller.state.value}")


def event_names(events) -> List[str]:
    return [event.name for event in events]


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def gateway(bus, sleep) -> InferenceGateway:
    return InferenceGateway(bus, base_delay=2.0, max_delay=30.0, timeout=5.0, sleep=sleep)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def solver() -> FakeSolver:
    return FakeSolver()


@pytest.fixture
def dictation() -> FakeDictation:
    return FakeDictation()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(capture_dir=tmp_path)


@pytest.fixture
def controller(settings, store, solver, dictation, gateway, bus) -> PipelineController:
    return PipelineController(
        settings=settings,
        store=store,
        solver=solver,
        dictation=dictation,
        gateway=gateway,
        bus=bus,
    )
