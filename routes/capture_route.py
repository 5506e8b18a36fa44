from typing import Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from controllers.capture_controller import delete_capture, list_captures, upload_capture
from models.session_models import QueueKind

router = APIRouter(prefix="/captures")


@router.post("/primary")
async def post_primary_capture(request: Request, file: UploadFile = File(...)):
	"""Store a screenshot of a new problem."""
	try:
		return await upload_capture(request, file, QueueKind.PRIMARY)
	except HTTPException:
		raise
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc))
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/secondary")
async def post_secondary_capture(request: Request, file: UploadFile = File(...)):
	"""Store a follow-up screenshot used for debugging."""
	try:
		return await upload_capture(request, file, QueueKind.SECONDARY)
	except HTTPException:
		raise
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc))
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("")
async def get_captures(request: Request):
	try:
		return await list_captures(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.delete("/{index}")
async def delete_capture_route(request: Request, index: int, queue: Optional[QueueKind] = None):
	"""Delete a capture by position; the queue defaults to the one in view."""
	try:
		return await delete_capture(request, index, queue)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
