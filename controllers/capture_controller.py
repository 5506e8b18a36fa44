from fastapi import Request, UploadFile, HTTPException
from typing import Dict, Any, Optional

from models.session_models import QueueKind
from services.pipeline.pipeline_controller import PipelineController
from utils.media_validation import read_image_bytes


def _pipeline(request: Request) -> PipelineController:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=500, detail="Pipeline unavailable")
    return pipeline


async def upload_capture(request: Request, file: UploadFile, queue: QueueKind) -> Dict[str, Any]:
    """Store an uploaded screenshot in the requested queue.

    A primary upload starts a fresh problem: both queues are emptied and any
    solve in flight is canceled before the new screenshot is kept.

    Args:
        request: FastAPI Request (used to access the shared pipeline).
        file: Uploaded screenshot (png, jpeg, webp or bmp).
        queue: Which queue receives the screenshot.

    Returns:
        A dict containing the capture id, queue name and a thumbnail preview data URL.
    """
    pipeline = _pipeline(request)
    image_bytes, mime_type = await read_image_bytes(file)

    if queue is QueueKind.PRIMARY:
        image = await pipeline.capture_primary(image_bytes, mime_type)
    else:
        image = await pipeline.capture_secondary(image_bytes, mime_type)

    try:
        preview = await pipeline.preview(image)
    except ValueError:
        # Undecodable images are kept; the model may still read them.
        preview = None

    return {"id": image.id, "queue": queue.value, "preview": preview, "state": pipeline.state.value}


async def list_captures(request: Request) -> Dict[str, Any]:
    """Return previews for both queues in display order."""
    pipeline = _pipeline(request)
    result: Dict[str, Any] = {}
    for kind in QueueKind:
        entries = []
        for image in pipeline.queues.queue(kind):
            try:
                preview = await pipeline.preview(image)
            except (OSError, ValueError):
                preview = None
            entries.append({"id": image.id, "created_at": image.created_at, "preview": preview})
        result[kind.value] = entries
    return result


async def delete_capture(request: Request, index: int, queue: Optional[QueueKind] = None) -> Dict[str, Any]:
    """Delete one capture by position and report the outcome as `{success, error}`."""
    pipeline = _pipeline(request)
    result = await pipeline.delete(index, queue)
    return {"success": result.success, "error": result.error}
