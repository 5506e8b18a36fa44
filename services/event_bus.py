"""Typed publish/subscribe channel between the pipeline and its listeners."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set

from models.events import PipelineEvent

LOGGER = logging.getLogger(__name__)


class Subscription:
	"""A listener's private event queue.

	Events are delivered by value into the queue; the publisher never runs
	listener code. Call `unsubscribe()` (or leave the `with` block) to stop
	receiving events.
	"""

	def __init__(self, bus: "EventBus") -> None:
		self._bus = bus
		self._queue: "asyncio.Queue[PipelineEvent]" = asyncio.Queue()
		self.active = True

	def deliver(self, event: PipelineEvent) -> None:
		self._queue.put_nowait(event)

	async def get(self, timeout: Optional[float] = None) -> PipelineEvent:
		"""Wait for the next event."""
		if timeout is None:
			return await self._queue.get()
		return await asyncio.wait_for(self._queue.get(), timeout)

	def drain(self) -> List[PipelineEvent]:
		"""Return every event delivered so far without waiting."""
		events: List[PipelineEvent] = []
		while not self._queue.empty():
			events.append(self._queue.get_nowait())
		return events

	def unsubscribe(self) -> None:
		if self.active:
			self._bus._remove(self)
			self.active = False

	def __enter__(self) -> "Subscription":
		return self

	def __exit__(self, exc_type, exc, tb) -> None:
		self.unsubscribe()

	def __aiter__(self) -> "Subscription":
		return self

	async def __anext__(self) -> PipelineEvent:
		return await self.get()


class EventBus:
	"""Fan out pipeline events to every active subscription."""

	def __init__(self) -> None:
		self._subscriptions: Set[Subscription] = set()

	def subscribe(self) -> Subscription:
		subscription = Subscription(self)
		self._subscriptions.add(subscription)
		return subscription

	def publish(self, event: PipelineEvent) -> None:
		LOGGER.debug("Publishing %s to %d subscriber(s)", event.name, len(self._subscriptions))
		for subscription in list(self._subscriptions):
			subscription.deliver(event)

	@property
	def subscriber_count(self) -> int:
		return len(self._subscriptions)

	def _remove(self, subscription: Subscription) -> None:
		self._subscriptions.discard(subscription)
