#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
State-change notifications produced by AtemConnection and AtemDeviceProber.

Two ways of consuming them are provided:

  1. Synchronous handlers registered with AtemEventSource.add_event_handler(). They are
     called on the event loop that produced the event, from inside the receive path.
  2. AtemEventSubscriber, an async context manager/iterator that queues events until
     the consumer drains them.

Events are always produced on the event loop that owns the source. Any hand-off to
another thread or loop (e.g., a UI thread) is the responsibility of the consumer.
"""

from __future__ import annotations

import asyncio
import time

from .internal_types import *
from .pkg_logging import logger
from .constants import MAX_QUEUE_SIZE

class AtemEvent:
    """Base class for all notifications."""

    source: Any
    """The AtemConnection or AtemDeviceProber that produced the event"""

    monotonic_time: float
    """The local time (in seconds) at which the event was produced, as returned by time.monotonic()."""

    name: str = 'event'
    """A short name for the kind of event, used in logs and CLI output"""

    def __init__(self, source: Any):
        self.source = source
        self.monotonic_time = time.monotonic()

    def summary(self) -> JsonableDict:
        """Returns a JSON-able description of the event."""
        return dict(event=self.name)

    def __str__(self) -> str:
        fields = ', '.join(f"{k}={v!r}" for k, v in self.summary().items() if k != 'event')
        return f"{self.__class__.__name__}({fields})"

    def __repr__(self) -> str:
        return str(self)

class ConnectedEvent(AtemEvent):
    """The first data packet of a session was received."""
    name = 'connected'

class DisconnectedEvent(AtemEvent):
    """The connection was closed, either explicitly or by a transport failure."""
    name = 'disconnected'

    exc: Optional[BaseException]
    """The transport failure that ended the connection, or None for an explicit disconnect."""

    def __init__(self, source: Any, exc: Optional[BaseException]=None):
        super().__init__(source)
        self.exc = exc

    def summary(self) -> JsonableDict:
        result = super().summary()
        if self.exc is not None:
            result['error'] = str(self.exc)
        return result

class _InputChangedEvent(AtemEvent):
    mix_effect: int
    """The index of the mix-effect bus whose input changed"""

    input_id: int
    """The id of the newly selected input"""

    def __init__(self, source: Any, mix_effect: int, input_id: int):
        super().__init__(source)
        self.mix_effect = mix_effect
        self.input_id = input_id

    def summary(self) -> JsonableDict:
        result = super().summary()
        result.update(mix_effect=self.mix_effect, input_id=self.input_id)
        return result

class ProgramInputChangedEvent(_InputChangedEvent):
    """A mix-effect reported a different program (on-air) input."""
    name = 'program_input_changed'

class PreviewInputChangedEvent(_InputChangedEvent):
    """A mix-effect reported a different preview input."""
    name = 'preview_input_changed'

class DeviceFoundEvent(AtemEvent):
    """A probed address completed the handshake."""
    name = 'device_found'

    address: str
    port: int
    label: str

    def __init__(self, source: Any, address: str, port: int, label: str):
        super().__init__(source)
        self.address = address
        self.port = port
        self.label = label

    def summary(self) -> JsonableDict:
        result = super().summary()
        result.update(address=self.address, port=self.port, label=self.label)
        return result

AtemEventHandler = Callable[[AtemEvent], None]
"""A synchronous callback for events."""

class AtemEventSource:
    """Mixin for objects that emit AtemEvents to handlers and subscribers."""

    event_handlers: Dict[int, AtemEventHandler]
    """Handlers that will be called with each event, indexed by ID number."""

    i_next_event_handler: int = 0
    """The next event handler ID to assign."""

    event_subscribers: Set[AtemEventSubscriber]
    """Subscribers with a queue of undelivered events."""

    event_stream_ended: bool = False
    """True once end_event_stream() has been called and the stream has not been reopened."""

    def __init__(self):
        self.event_handlers = {}
        self.event_subscribers = set()

    def add_event_handler(self, handler: AtemEventHandler) -> int:
        """Adds a handler to be called with every event emitted by this source. Returns
           an ID that can be passed to remove_event_handler()."""
        i = self.i_next_event_handler
        self.i_next_event_handler += 1
        self.event_handlers[i] = handler
        return i

    def remove_event_handler(self, i: int) -> None:
        """Removes a previously added event handler."""
        del self.event_handlers[i]

    def add_subscriber(self, subscriber: AtemEventSubscriber) -> None:
        """Adds a subscriber. A subscriber added after the stream has ended is ended at once."""
        self.event_subscribers.add(subscriber)
        if self.event_stream_ended:
            subscriber.on_end_of_stream()

    def remove_subscriber(self, subscriber: AtemEventSubscriber) -> None:
        self.event_subscribers.discard(subscriber)

    def emit(self, event: AtemEvent) -> None:
        """Delivers an event to all handlers and subscribers. Exceptions raised by
           handlers are logged and do not propagate."""
        logger.debug(f"Emitting {event}")
        for handler in list(self.event_handlers.values()):
            try:
                handler(event)
            except Exception as e:
                logger.warning(f"Event handler raised exception processing {event}: {e}")
        for subscriber in list(self.event_subscribers):
            subscriber.on_event(event)

    def end_event_stream(self) -> None:
        """Tells all subscribers that no further events will be emitted."""
        self.event_stream_ended = True
        for subscriber in list(self.event_subscribers):
            subscriber.on_end_of_stream()

    def reopen_event_stream(self) -> None:
        """Allows subscribers added from now on to receive events again. Subscribers that
           were already ended stay ended."""
        if self.event_stream_ended:
            self.event_stream_ended = False
            for subscriber in list(self.event_subscribers):
                if subscriber.eos:
                    self.event_subscribers.discard(subscriber)

class AtemEventSubscriber(
        AsyncContextManager['AtemEventSubscriber'],
        AsyncIterable[AtemEvent]
      ):
    """Queues the events emitted by an AtemEventSource for an async consumer.

    Usage:
        async with AtemEventSubscriber(connection) as subscriber:
            async for event in subscriber:
                print(event)
    """
    source: AtemEventSource
    queue: asyncio.Queue[Optional[AtemEvent]]
    eos: bool = False

    def __init__(self, source: AtemEventSource, max_queue_size: int=MAX_QUEUE_SIZE):
        self.source = source
        self.queue = asyncio.Queue(max_queue_size)

    async def __aenter__(self) -> Self:
        self.source.add_subscriber(self)
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        self.source.remove_subscriber(self)
        self.on_end_of_stream()
        return False

    async def receive(self) -> Optional[AtemEvent]:
        """Returns the next event, or None once the stream has ended and the queue is drained."""
        if self.eos and self.queue.empty():
            return None
        result = await self.queue.get()
        self.queue.task_done()
        if result is None:
            # Leave the marker in place for any other waiter
            self._put_end_marker()
        return result

    async def iter_events(self) -> AsyncIterator[AtemEvent]:
        while True:
            result = await self.receive()
            if result is None:
                break
            yield result

    def __aiter__(self) -> AsyncIterator[AtemEvent]:
        return self.iter_events()

    def on_event(self, event: AtemEvent) -> None:
        if not self.eos:
            try:
                self.queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Queue full, dropping event {event}")

    def on_end_of_stream(self) -> None:
        if not self.eos:
            self.eos = True
            self._put_end_marker()

    def _put_end_marker(self) -> None:
        try:
            # wake up any waiting tasks
            self.queue.put_nowait(None)
        except asyncio.QueueFull:
            # queue is full so waiters will wake up soon
            pass
