"""Paced, ordered delivery of turn events to a client sink."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol, assert_never

import structlog

from agentchat.core.settings import StreamingConfig
from agentchat.schemas.event_schema import (
    CompletedEvent,
    DeliveryEvent,
    ErrorEvent,
    FunctionCallEvent,
    FunctionResultEvent,
    ThinkingEvent,
    TokenEvent,
)

logger = structlog.get_logger()

DISCONNECT_POLL_SECONDS = 0.25


class SinkDisconnectedError(Exception):
    """The client behind a sink is gone."""


class DeliverySink(Protocol):
    """Transport-facing end of a delivery stream."""

    @property
    def disconnected(self) -> bool: ...

    async def send(self, event: DeliveryEvent) -> None: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class DeliveryOptions:
    """Per-turn delivery toggles chosen by the client."""

    show_thinking: bool = True
    typing_speed_ms: int = 100
    show_completed: bool = True
    show_function_calls: bool = True

    @classmethod
    def resolve(
        cls,
        config: StreamingConfig,
        show_thinking: bool | None = None,
        typing_speed_ms: int | None = None,
        show_completed: bool | None = None,
        show_function_calls: bool | None = None,
    ) -> "DeliveryOptions":
        """Merge client overrides onto configured defaults."""
        speed = config.typing_speed_ms if typing_speed_ms is None else typing_speed_ms
        return cls(
            show_thinking=(
                config.show_thinking if show_thinking is None else show_thinking
            ),
            typing_speed_ms=max(0, min(speed, config.max_typing_speed_ms)),
            show_completed=(
                config.show_completed if show_completed is None else show_completed
            ),
            show_function_calls=(
                config.show_function_calls
                if show_function_calls is None
                else show_function_calls
            ),
        )

    @property
    def token_delay(self) -> float:
        return self.typing_speed_ms / 1000

    def allows(self, event: DeliveryEvent) -> bool:
        """Whether ``event`` reaches the client under these options."""
        match event:
            case ThinkingEvent():
                return self.show_thinking
            case CompletedEvent():
                return self.show_completed
            case FunctionCallEvent() | FunctionResultEvent():
                return self.show_function_calls
            case TokenEvent() | ErrorEvent():
                return True
            case _:
                assert_never(event)


class DeliveryHandle:
    """Producer side of one turn's event stream.

    Events pushed by the coordinator are queued and forwarded by a pacing
    task in FIFO order, pausing after each token. Once cancelled, nothing
    more is forwarded and pushes are ignored.
    """

    def __init__(self, sink: DeliverySink, options: DeliveryOptions) -> None:
        self._sink = sink
        self._options = options
        self._queue: asyncio.Queue[DeliveryEvent | None] = asyncio.Queue()
        self._cancel_event = asyncio.Event()
        self._closed = False
        self._pacer = asyncio.create_task(self._pace())

    @property
    def options(self) -> DeliveryOptions:
        return self._options

    @property
    def cancelled(self) -> bool:
        # A transport-side disconnect cancels without waiting for the next send.
        if not self._cancel_event.is_set() and self._sink.disconnected:
            self.cancel()
        return self._cancel_event.is_set()

    @property
    def closed(self) -> bool:
        return self._closed

    async def push(self, event: DeliveryEvent) -> None:
        """Queue an event for delivery."""
        if self._closed or self.cancelled:
            return
        await self._queue.put(event)

    def cancel(self) -> None:
        """Mark the client as gone and stop forwarding."""
        if self._cancel_event.is_set():
            return
        logger.info("Delivery cancelled", pending=self._queue.qsize())
        self._cancel_event.set()
        self._queue.put_nowait(None)

    async def close(self) -> None:
        """Drain pending events, stop pacing and close the sink once."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        try:
            await self._pacer
        finally:
            await self._sink.close()

    async def _pace(self) -> None:
        while True:
            event = await self._queue.get()
            if event is None or self.cancelled:
                return
            if not self._options.allows(event):
                continue
            try:
                await self._sink.send(event)
            except SinkDisconnectedError:
                logger.info("Delivery sink disconnected")
                self.cancel()
                return
            except Exception:
                logger.exception("Delivery sink failed", event_type=event.type)
                self.cancel()
                return
            if isinstance(event, TokenEvent) and self._options.typing_speed_ms > 0:
                await self.wait_cancelled(self._options.token_delay)

    async def wait_cancelled(self, delay: float) -> bool:
        """Sleep for ``delay`` seconds, waking early on cancellation.

        Returns whether the handle is cancelled. The sink is re-checked every
        ``DISCONNECT_POLL_SECONDS`` since a transport disconnect sets no event.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + delay
        while not self.cancelled:
            remaining = deadline - loop.time()
            if remaining <= 0:
                return False
            try:
                await asyncio.wait_for(
                    self._cancel_event.wait(),
                    timeout=min(remaining, DISCONNECT_POLL_SECONDS),
                )
            except TimeoutError:
                pass
        return True


class StreamingDelivery:
    """Opens paced delivery handles over client sinks."""

    def __init__(self, options: DeliveryOptions | None = None) -> None:
        self._options = options or DeliveryOptions()

    def open(self, sink: DeliverySink) -> DeliveryHandle:
        """Start delivering to ``sink``; must be called inside a running loop."""
        return DeliveryHandle(sink, self._options)


class QueueSink:
    """Sink consumed as an async iterator, used by the SSE endpoint."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[DeliveryEvent | None] = asyncio.Queue()
        self._closed = False
        self._disconnected = False

    @property
    def disconnected(self) -> bool:
        return self._disconnected

    async def send(self, event: DeliveryEvent) -> None:
        if self._disconnected:
            raise SinkDisconnectedError("client disconnected")
        await self._queue.put(event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._queue.put(None)

    def disconnect(self) -> None:
        """Called by the transport when the client goes away."""
        self._disconnected = True

    def __aiter__(self) -> AsyncIterator[DeliveryEvent]:
        return self

    async def __anext__(self) -> DeliveryEvent:
        event = await self._queue.get()
        if event is None:
            raise StopAsyncIteration
        return event


class CollectingSink:
    """Sink that records delivered events in memory."""

    def __init__(self) -> None:
        self.events: list[DeliveryEvent] = []
        self.close_calls = 0

    @property
    def disconnected(self) -> bool:
        return False

    async def send(self, event: DeliveryEvent) -> None:
        self.events.append(event)

    async def close(self) -> None:
        self.close_calls += 1

    @property
    def text(self) -> str:
        """Concatenated token text."""
        return "".join(e.data for e in self.events if isinstance(e, TokenEvent))

    @property
    def types(self) -> list[str]:
        return [e.type for e in self.events]
