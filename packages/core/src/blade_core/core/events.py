import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class PipelineEventType(str, Enum):
    EXECUTION_STARTED = "execution_started"
    STATE_CHANGED = "state_changed"
    CONFIRMATION_REQUESTED = "confirmation_requested"
    EXECUTION_COMPLETED = "execution_completed"


class PipelineEvent(BaseModel):
    type: PipelineEventType
    execution_id: str
    tool_name: str
    value: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)


Listener = Callable[[PipelineEvent], Awaitable[None] | None]


class EventEmitter:
    """
    Publishes pipeline lifecycle events.

    Consumers either subscribe a queue, which receives every event, or
    register a listener callback for one event type.
    """

    def __init__(self):
        self._subscribers: list[asyncio.Queue[PipelineEvent]] = []
        self._listeners: dict[PipelineEventType, list[Listener]] = {}

    async def emit(
        self,
        event_type: PipelineEventType,
        execution_id: str,
        tool_name: str,
        **value: Any,
    ) -> None:
        event = PipelineEvent(
            type=event_type,
            execution_id=execution_id,
            tool_name=tool_name,
            value=value,
        )

        for subscriber in self._subscribers:
            await subscriber.put(event)

        for listener in self._listeners.get(event_type, []):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    f"Listener for '{event_type.value}' failed; event dropped."
                )

    def on(self, event_type: PipelineEventType, listener: Listener) -> None:
        self._listeners.setdefault(PipelineEventType(event_type), []).append(
            listener
        )

    def off(self, event_type: PipelineEventType, listener: Listener) -> None:
        listeners = self._listeners.get(PipelineEventType(event_type), [])
        if listener in listeners:
            listeners.remove(listener)

    def subscribe(self) -> asyncio.Queue[PipelineEvent]:
        """
        Subscribes to every event.

        Returns:
            A queue receiving events in emission order.

        """
        queue: asyncio.Queue[PipelineEvent] = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[PipelineEvent]) -> None:
        if queue in self._subscribers:
            self._subscribers.remove(queue)
