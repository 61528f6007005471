"""
The confirmation protocol.

The pipeline asks a `ConfirmationResponder` to approve or reject a call
and suspends that call, and only that call, until an answer arrives or
the call is cancelled. The protocol has no timeout of its own; wrap a
responder in `TimeoutResponder` where one is needed.
"""

import asyncio
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from blade_core.tools.common import ConfirmationDetails, ConfirmationResponse

logger = logging.getLogger(__name__)


@runtime_checkable
class ConfirmationResponder(Protocol):
    async def request_confirmation(
        self, details: ConfirmationDetails
    ) -> ConfirmationResponse: ...


def _coerce_response(answer: ConfirmationResponse | bool) -> ConfirmationResponse:
    if isinstance(answer, ConfirmationResponse):
        return answer
    return ConfirmationResponse(approved=bool(answer))


class CallbackResponder:
    """Adapts a sync or async callable into a ConfirmationResponder."""

    def __init__(
        self,
        callback: Callable[
            [ConfirmationDetails],
            ConfirmationResponse | bool | Awaitable[ConfirmationResponse | bool],
        ],
    ):
        self._callback = callback

    async def request_confirmation(
        self, details: ConfirmationDetails
    ) -> ConfirmationResponse:
        answer = self._callback(details)
        if inspect.isawaitable(answer):
            answer = await answer
        return _coerce_response(answer)


class ConfirmationRequest(BaseModel):
    """A pending request published to the UI side of a channel."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    details: ConfirmationDetails
    created_at: datetime = Field(default_factory=datetime.now)


class ChannelResponder:
    """
    A future-based request/response channel.

    The pipeline side awaits `request_confirmation`; the UI side takes
    requests from `next_request()` (or `get_pending()`) and answers them
    with `respond(request_id, response)`.
    """

    def __init__(
        self, on_request: Callable[[ConfirmationRequest], None] | None = None
    ):
        self._pending: dict[
            str, tuple[ConfirmationRequest, asyncio.Future]
        ] = {}
        self._requests: asyncio.Queue[ConfirmationRequest] = asyncio.Queue()
        self._on_request = on_request

    async def request_confirmation(
        self, details: ConfirmationDetails
    ) -> ConfirmationResponse:
        request = ConfirmationRequest(details=details)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request.id] = (request, future)

        await self._requests.put(request)
        if self._on_request:
            self._on_request(request)

        try:
            return await future
        finally:
            self._pending.pop(request.id, None)

    async def next_request(self) -> ConfirmationRequest:
        """Waits for the next request that is still pending."""
        while True:
            request = await self._requests.get()
            if request.id in self._pending:
                return request

    def respond(
        self, request_id: str, response: ConfirmationResponse | bool
    ) -> bool:
        entry = self._pending.get(request_id)
        if entry is None:
            logger.warning(f"No pending confirmation with id '{request_id}'.")
            return False
        _, future = entry
        if not future.done():
            future.set_result(_coerce_response(response))
        return True

    def get_pending(self) -> list[ConfirmationRequest]:
        return sorted(
            (request for request, _ in self._pending.values()),
            key=lambda r: r.created_at,
        )


class TimeoutResponder:
    """Rejects a confirmation that is not answered within `timeout` seconds."""

    def __init__(self, inner: ConfirmationResponder, timeout: float):
        self.inner = inner
        self.timeout = timeout

    async def request_confirmation(
        self, details: ConfirmationDetails
    ) -> ConfirmationResponse:
        try:
            return await asyncio.wait_for(
                self.inner.request_confirmation(details), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.info(
                f"Confirmation '{details.title}' timed out after {self.timeout}s."
            )
            return ConfirmationResponse(
                approved=False,
                reason=f"No response within {self.timeout:g} seconds.",
            )
