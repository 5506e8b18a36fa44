"""File-backed storage for captured screenshots.

Screenshots arrive as uploaded bytes. This store writes them under
`<CAPTURE_DIR>/screenshots` (primary) or `<CAPTURE_DIR>/extra_screenshots`
(secondary), reads them back for inference, renders previews, and deletes
the backing files when a queue lets go of them.
"""

from __future__ import annotations

import asyncio
import uuid
from pathlib import Path
from typing import Dict, Union

import aiofiles
import aiofiles.os

from models.session_models import CapturedImage, QueueKind
from services.capture.thumbnail_generator import ThumbnailGenerator

EXTENSIONS: Dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/bmp": "bmp",
}

MIME_TYPES: Dict[str, str] = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".bmp": "image/bmp",
}

SUBDIRECTORIES = {
    QueueKind.PRIMARY: "screenshots",
    QueueKind.SECONDARY: "extra_screenshots",
}


def mime_type_for(path: Union[str, Path]) -> str:
    """Return the image MIME type for a file path, defaulting to PNG."""
    return MIME_TYPES.get(Path(path).suffix.lower(), "image/png")


class ScreenshotStore:
    """Persist screenshot bytes on disk for the lifetime of a capture."""

    def __init__(self, root: Union[str, Path], thumbnails: ThumbnailGenerator | None = None) -> None:
        self.root = Path(root).expanduser()
        self.thumbnails = thumbnails or ThumbnailGenerator()
        for name in SUBDIRECTORIES.values():
            (self.root / name).mkdir(parents=True, exist_ok=True)

    async def save(self, image_bytes: bytes, mime_type: str = "image/png", kind: QueueKind = QueueKind.PRIMARY) -> CapturedImage:
        """Write screenshot bytes to disk and return the capture record.

        Raises:
            ValueError: If image bytes are missing.
        """
        if not image_bytes:
            raise ValueError("Image bytes are required for saving.")
        normalized = (mime_type or "image/png").lower().split(";", 1)[0].strip()
        ext = EXTENSIONS.get(normalized, "png")
        image_id = uuid.uuid4().hex
        path = self.root / SUBDIRECTORIES[kind] / f"{image_id}.{ext}"
        async with aiofiles.open(path, "wb") as f:
            await f.write(image_bytes)
        return CapturedImage(id=image_id, path=str(path), mime_type=mime_type_for(path))

    async def read(self, image: CapturedImage) -> bytes:
        async with aiofiles.open(image.path, "rb") as f:
            return await f.read()

    async def preview(self, image: CapturedImage) -> str:
        """Return a PNG thumbnail data URL for the capture."""
        data = await self.read(image)
        # thumbnail generation is blocking -> run in thread
        return await asyncio.to_thread(self.thumbnails.create_preview, data)

    async def delete(self, image: CapturedImage) -> None:
        """Remove the backing file; a file that is already gone is not an error."""
        try:
            await aiofiles.os.remove(image.path)
        except FileNotFoundError:
            pass
