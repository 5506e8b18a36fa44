import inspect
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from openai import AsyncOpenAI

from routes.capture_route import router as capture_router
from routes.events_ws import router as events_router
from routes.session_route import router as session_router
from services.capture.screenshot_store import ScreenshotStore
from services.event_bus import EventBus
from services.inference.gateway import InferenceGateway
from services.openai.dictation_service import DictationService
from services.openai.solver_client import SolverClient
from services.pipeline.pipeline_controller import PipelineController
from utils.settings import Settings

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


def build_pipeline(settings: Settings, client, bus: EventBus) -> PipelineController:
    """Wire the pipeline controller and its collaborators from settings."""
    gateway = InferenceGateway(
        bus,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
        timeout=settings.api_timeout,
    )
    return PipelineController(
        settings=settings,
        store=ScreenshotStore(settings.capture_dir),
        solver=SolverClient(client),
        dictation=DictationService(client),
        gateway=gateway,
        bus=bus,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - settings from the environment
      - the OpenAI async client (only when OPENAI_API_KEY is set)
      - the event bus and pipeline controller
    and attach them to `app.state`.
    """
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    openai_client = None
    if settings.openai_api_key:
        try:
            openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
        except Exception as exc:
            raise RuntimeError("Failed to initialize OpenAI Async client") from exc
    else:
        LOGGER.warning("OPENAI_API_KEY is not set; processing requests will fail until it is configured")

    bus = EventBus()
    app.state.settings = settings
    app.state.openai_client = openai_client
    app.state.event_bus = bus
    app.state.pipeline = build_pipeline(settings, openai_client, bus)

    try:
        yield
    finally:
        await app.state.pipeline.shutdown()
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    result = aclose()
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:
                    LOGGER.warning("Error closing OpenAI client: %s", exc)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check reporting pipeline state and OpenAI client presence.
        """
        pipeline = getattr(request.app.state, "pipeline", None)
        has_openai = getattr(request.app.state, "openai_client", None) is not None
        return {
            "ok": True,
            "openai_available": has_openai,
            "state": pipeline.state.value if pipeline is not None else None,
        }

    app.include_router(capture_router)
    app.include_router(session_router)
    app.include_router(events_router)

    return app


app = create_app()
