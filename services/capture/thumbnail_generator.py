"""Thumbnail generator service.

Provides a small OOP wrapper around Pillow to create preview thumbnails
from raw screenshot bytes. The resulting thumbnail fits within the
configured box and is returned as a PNG data URL.

Example:
    tg = ThumbnailGenerator(max_size=(320, 320))
    preview = tg.create_preview(image_bytes)
"""
from __future__ import annotations

import base64
import io
from typing import Tuple

from PIL import Image


class ThumbnailGenerator:
    """Generate preview thumbnails from image bytes.

    Args:
        max_size: Maximum width and height for the thumbnail. Defaults to (320, 320).
        background: Optional background color used when flattening images with alpha.
            If None, images with alpha are flattened against white.
    """

    def __init__(self, max_size: Tuple[int, int] = (320, 320), background: Tuple[int, int, int] | None = None):
        self.max_size = max_size
        self.background = background or (255, 255, 255)

    def create_thumbnail(self, data: bytes) -> bytes:
        """Create PNG thumbnail bytes from raw image bytes.

        Raises:
            ValueError: If the bytes cannot be opened as an image.
        """
        try:
            src = Image.open(io.BytesIO(data))
            src.load()
        except Exception as exc:
            raise ValueError("Bytes are not a supported image format") from exc

        src = src.convert("RGBA")
        src.thumbnail(self.max_size, Image.LANCZOS)

        # Flatten alpha against the background color
        background = Image.new("RGB", src.size, self.background)
        background.paste(src, mask=src.split()[3])

        out_io = io.BytesIO()
        background.save(out_io, format="PNG", optimize=True)
        return out_io.getvalue()

    def create_preview(self, data: bytes) -> str:
        """Return a `data:image/png;base64,...` URL for the thumbnail."""
        encoded = base64.b64encode(self.create_thumbnail(data)).decode("utf-8")
        return f"data:image/png;base64,{encoded}"
