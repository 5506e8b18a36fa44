"""FastAPI routes for pipeline actions and session state."""

from typing import Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from controllers.session_controller import get_state, reset_session, start_processing, submit_voice, update_settings

router = APIRouter()


class SettingsPayload(BaseModel):
	preferred_model: Optional[str] = None
	response_language: Optional[str] = None
	code_language: Optional[str] = None


@router.post("/process", status_code=202)
async def process_route(request: Request):
	try:
		return await start_processing(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/reset")
async def reset_route(request: Request):
	try:
		return await reset_session(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/voice", status_code=202)
async def voice_route(request: Request, audio: UploadFile = File(...)):
	try:
		return await submit_voice(request, audio)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/state")
async def state_route(request: Request):
	try:
		return await get_state(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.patch("/settings")
async def settings_route(request: Request, payload: SettingsPayload):
	try:
		return await update_settings(
			request,
			preferred_model=payload.preferred_model,
			response_language=payload.response_language,
			code_language=payload.code_language,
		)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
