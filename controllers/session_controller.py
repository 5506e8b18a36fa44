"""Session actions for the capture and solve pipeline."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, UploadFile

from services.pipeline.pipeline_controller import PipelineController
from utils.media_validation import read_audio_bytes


def _pipeline(request: Request) -> PipelineController:
	pipeline = getattr(request.app.state, "pipeline", None)
	if pipeline is None:
		raise HTTPException(status_code=500, detail="Pipeline unavailable")
	return pipeline


async def start_processing(request: Request) -> Dict[str, Any]:
	"""Schedule the next pipeline step; progress is reported over the event stream."""
	pipeline = _pipeline(request)
	pipeline.start(pipeline.process())
	return {"accepted": True, "state": pipeline.state.value}


async def reset_session(request: Request) -> Dict[str, Any]:
	"""Cancel in-flight work and clear queues, problem and conversation."""
	pipeline = _pipeline(request)
	await pipeline.reset()
	return pipeline.snapshot()


async def submit_voice(request: Request, audio_file: UploadFile) -> Dict[str, Any]:
	"""Validate a voice recording and schedule the voice turn."""
	pipeline = _pipeline(request)
	audio_bytes, mime_type = await read_audio_bytes(audio_file)
	pipeline.start(pipeline.submit_voice(audio_bytes, mime_type))
	return {"accepted": True}


async def get_state(request: Request) -> Dict[str, Any]:
	return _pipeline(request).snapshot()


async def update_settings(
	request: Request,
	preferred_model: Optional[str] = None,
	response_language: Optional[str] = None,
	code_language: Optional[str] = None,
) -> Dict[str, Any]:
	"""Change runtime preferences for the next inference calls."""
	pipeline = _pipeline(request)
	pipeline.update_preferences(
		preferred_model=preferred_model,
		response_language=response_language,
		code_language=code_language,
	)
	settings = pipeline.settings
	return {
		"preferred_model": settings.preferred_model,
		"fallback_chain": pipeline.chain(),
		"response_language": settings.response_language,
		"code_language": settings.code_language,
	}
