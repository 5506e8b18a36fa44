"""Primary and secondary screenshot queues.

The primary queue holds the screenshot defining the current problem and never
holds more than one entry. The secondary queue holds follow-up screenshots
used for debugging, capped at a configured capacity (oldest evicted first).
Superseded captures have their backing files deleted best-effort.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Protocol

from models.session_models import CapturedImage, DeleteResult, QueueKind

LOGGER = logging.getLogger(__name__)

DEFAULT_SECONDARY_CAPACITY = 2


class CaptureDeleter(Protocol):
    async def delete(self, image: CapturedImage) -> None: ...


class CaptureQueues:
    """Ordered capture holders; mutated only by the pipeline controller."""

    def __init__(self, store: CaptureDeleter, secondary_capacity: int = DEFAULT_SECONDARY_CAPACITY) -> None:
        if secondary_capacity < 1:
            raise ValueError("Secondary queue capacity must be at least 1.")
        self.store = store
        self.secondary_capacity = secondary_capacity
        self._primary: List[CapturedImage] = []
        self._secondary: List[CapturedImage] = []

    @property
    def primary(self) -> List[CapturedImage]:
        return list(self._primary)

    @property
    def secondary(self) -> List[CapturedImage]:
        return list(self._secondary)

    def queue(self, kind: QueueKind) -> List[CapturedImage]:
        return self.primary if kind is QueueKind.PRIMARY else self.secondary

    async def capture_primary(self, image: CapturedImage) -> None:
        """Start a fresh problem: `image` replaces both queues' contents."""
        superseded = self._primary + self._secondary
        self._primary = [image]
        self._secondary = []
        LOGGER.info("Primary capture %s replaces %d earlier capture(s)", image.id, len(superseded))
        await self._discard(superseded)

    async def add_secondary(self, image: CapturedImage) -> None:
        """Append a follow-up capture, evicting the oldest when over capacity."""
        self._secondary.append(image)
        evicted: List[CapturedImage] = []
        while len(self._secondary) > self.secondary_capacity:
            evicted.append(self._secondary.pop(0))
        if evicted:
            LOGGER.info("Secondary queue full; evicted %d capture(s)", len(evicted))
        await self._discard(evicted)

    async def delete(self, kind: QueueKind, index: int) -> DeleteResult:
        """Remove one capture and its backing file. Never raises."""
        entries = self._primary if kind is QueueKind.PRIMARY else self._secondary
        if index < 0 or index >= len(entries):
            return DeleteResult(success=False, error=f"No {kind.value} capture at index {index}.")
        image = entries.pop(index)
        try:
            await self.store.delete(image)
        except Exception as exc:
            LOGGER.error("Error deleting capture at %s: %s", image.path, exc)
            return DeleteResult(success=False, error=str(exc))
        return DeleteResult(success=True)

    async def clear_secondary(self) -> None:
        evicted, self._secondary = self._secondary, []
        await self._discard(evicted)

    async def clear_all(self) -> None:
        evicted = self._primary + self._secondary
        self._primary, self._secondary = [], []
        await self._discard(evicted)

    async def _discard(self, images: Iterable[CapturedImage]) -> None:
        for image in images:
            try:
                await self.store.delete(image)
            except Exception as exc:
                LOGGER.warning("Error deleting capture at %s: %s", image.path, exc)
