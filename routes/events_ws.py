"""WebSocket endpoint streaming pipeline events to the presentation layer."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from services.event_bus import EventBus, Subscription

LOGGER = logging.getLogger(__name__)

router = APIRouter()


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
	async for event in subscription:
		await websocket.send_text(json.dumps(event.to_dict()))


async def _wait_for_disconnect(websocket: WebSocket) -> None:
	# Client frames carry no commands; they are read only to notice the close.
	while True:
		message = await websocket.receive()
		if message["type"] == "websocket.disconnect":
			return


@router.websocket("/ws/events")
async def events_socket(websocket: WebSocket):
	"""Forward every published event as a JSON text frame until the client leaves."""
	bus: EventBus | None = getattr(websocket.app.state, "event_bus", None)
	if bus is None:
		await websocket.accept()
		await websocket.send_text(json.dumps({"type": "error", "detail": "Event bus unavailable"}))
		await websocket.close()
		return

	# Subscribe before accepting so nothing published after the handshake is missed.
	with bus.subscribe() as subscription:
		await websocket.accept()
		forward = asyncio.ensure_future(_forward_events(websocket, subscription))
		disconnect = asyncio.ensure_future(_wait_for_disconnect(websocket))
		try:
			done, _ = await asyncio.wait({forward, disconnect}, return_when=asyncio.FIRST_COMPLETED)
		finally:
			for task in (forward, disconnect):
				task.cancel()
			await asyncio.gather(forward, disconnect, return_exceptions=True)

		for task in done:
			exc = task.exception()
			if exc is not None and not isinstance(exc, WebSocketDisconnect):
				raise exc
	LOGGER.debug("Event stream closed; %d subscriber(s) left", bus.subscriber_count)
