"""Run one logical inference request across an ordered chain of models.

Candidates are tried strictly in chain order. Rate limits move on to the next
model after a short wait, transient network failures (timeouts included) get
exactly one retry on the same model, and a missing credential fails the call
without touching the rest of the chain. Every attempt and every wait is raced
against the action's cancellation token.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from models.events import ModelUsed
from services.event_bus import EventBus
from services.inference.cancellation import CancellationToken, OperationCanceled
from services.inference.errors import (
    CANCELED_MESSAGE,
    ErrorKind,
    GatewayError,
    classify_error,
    user_message,
)
from services.inference.model_chain import display_name

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

BASE_DELAY_S = 2.0
MAX_DELAY_S = 30.0
API_TIMEOUT_S = 60.0
MAX_RETRIES_PER_MODEL = 1


@dataclass
class InferenceRequest(Generic[T]):
    """A provider call parameterised by model id.

    Attributes:
        label: Short name used in logs (e.g. "Extract", "Debug").
        call: Coroutine factory performing one attempt against a model.
        exhausted_message: Optional message used when every candidate fails.
    """

    label: str
    call: Callable[[str], Awaitable[T]]
    exhausted_message: Optional[str] = None


class InferenceGateway:
    """Execute requests against a fallback chain with retry and cancellation."""

    def __init__(
        self,
        bus: Optional[EventBus] = None,
        *,
        base_delay: float = BASE_DELAY_S,
        max_delay: float = MAX_DELAY_S,
        timeout: float = API_TIMEOUT_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.bus = bus
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.timeout = timeout
        self._sleep = sleep
        self.last_used_model: Optional[str] = None

    @property
    def backoff_delay(self) -> float:
        return min(self.base_delay, self.max_delay)

    async def execute(
        self,
        request: InferenceRequest[T],
        chain: Sequence[str],
        token: CancellationToken,
    ) -> T:
        """Return the first successful result along `chain`.

        Raises:
            GatewayError: On cancellation, missing credentials, or when every
                candidate failed. The error's kind is that of the last failure.
        """
        if not chain:
            raise GatewayError(ErrorKind.UNKNOWN, "No models are configured.")

        last_kind = ErrorKind.UNKNOWN
        last_exc: Optional[BaseException] = None
        last_model: Optional[str] = None

        for index, model in enumerate(chain):
            has_next = index < len(chain) - 1
            retries_left = MAX_RETRIES_PER_MODEL
            while True:
                if token.canceled:
                    LOGGER.info("[%s] Canceled before attempting %s", request.label, model)
                    raise GatewayError(ErrorKind.CANCELED, CANCELED_MESSAGE, model=model)

                LOGGER.info("[%s] Attempting with model %s", request.label, model)
                try:
                    result = await token.guard(request.call(model), timeout=self.timeout)
                except OperationCanceled:
                    LOGGER.info("[%s] Canceled while waiting on %s", request.label, model)
                    raise GatewayError(ErrorKind.CANCELED, CANCELED_MESSAGE, model=model) from None
                except Exception as exc:
                    kind = classify_error(exc)
                    last_kind, last_exc, last_model = kind, exc, model
                    LOGGER.warning("[%s] Model %s failed (%s): %s", request.label, model, kind.value, exc)

                    if kind in (ErrorKind.AUTH_MISSING, ErrorKind.CANCELED):
                        raise GatewayError(kind, user_message(kind, exc), model=model) from exc

                    if kind is ErrorKind.NETWORK_TRANSIENT and retries_left > 0:
                        retries_left -= 1
                        LOGGER.info("[%s] Network error, retrying %s", request.label, model)
                        await self._backoff(token, request.label)
                        continue

                    if kind in (ErrorKind.RATE_LIMITED, ErrorKind.NETWORK_TRANSIENT) and has_next:
                        await self._backoff(token, request.label)
                    break
                else:
                    self.last_used_model = model
                    LOGGER.info("[%s] Success with %s", request.label, display_name(model))
                    if self.bus is not None:
                        self.bus.publish(ModelUsed(model_id=model))
                    return result

        LOGGER.error("[%s] All %d model(s) failed; last error: %s", request.label, len(chain), last_exc)
        message = request.exhausted_message or user_message(last_kind, last_exc)
        raise GatewayError(last_kind, message, model=last_model)

    async def _backoff(self, token: CancellationToken, label: str) -> None:
        delay = self.backoff_delay
        LOGGER.debug("[%s] Backing off for %.2fs", label, delay)
        try:
            await token.guard(self._sleep(delay))
        except OperationCanceled:
            raise GatewayError(ErrorKind.CANCELED, CANCELED_MESSAGE) from None
