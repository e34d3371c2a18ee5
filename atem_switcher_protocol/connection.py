#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
AtemConnection -- A UDP control session with a single ATEM switcher that:

  1. Performs the connect handshake and acknowledges every packet that needs it
  2. Decodes the command frames in received packets and tracks the program and
     preview input of each mix-effect
  3. Emits AtemEvents (connected, disconnected, program/preview input changed) to
     registered handlers and subscribers

  All socket I/O and state mutation happen in asyncio DatagramProtocol callbacks on the
  event loop that called connect(), so no locking is needed. Events are emitted on that
  same loop.

  Nothing sent by this side is ever retransmitted. A lost handshake shows up only as
  the absence of a ConnectedEvent; callers that want to retry must create a new
  AtemConnection.
"""

from __future__ import annotations

import asyncio
from asyncio import Future
import struct
from enum import Enum

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    ATEM_PORT,
    HANDSHAKE_PAYLOAD,
    INITIAL_LOCAL_PACKAGE_ID,
    CMD_PROGRAM_INPUT,
    CMD_PREVIEW_INPUT,
    CMD_PRODUCT_IDENTIFIER,
  )
from .exceptions import AtemError, MalformedPacketError, TransportFailureError
from .atem_packet import AtemPacket, PacketFlag
from .command_frame import CommandFrame, parse_command_frames
from .events import (
    AtemEventSource,
    ConnectedEvent,
    DisconnectedEvent,
    ProgramInputChangedEvent,
    PreviewInputChangedEvent,
  )

class ConnectionState(Enum):
    DISCONNECTED = 'disconnected'
    HANDSHAKING = 'handshaking'
    ESTABLISHED = 'established'

class _AtemConnectionProtocol(asyncio.DatagramProtocol):
    """An adapter between the asyncio transport and AtemConnection."""

    connection: AtemConnection

    def __init__(self, connection: AtemConnection):
        self.connection = connection

    def connection_made(self, transport: asyncio.BaseTransport):
        """Called when the socket is ready."""
        try:
            self.connection.connection_made(transport) # type: ignore[arg-type]
        except BaseException as e:
            self.connection.fail(e)
            raise

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Called when some datagram is received."""
        try:
            self.connection.datagram_received(data, addr)
        except BaseException as e:
            self.connection.fail(e)
            raise

    def error_received(self, exc: Exception):
        """Called when a send or receive operation raises an OSError.

        (Other than BlockingIOError or InterruptedError.)
        """
        self.connection.error_received(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the connection is lost or closed."""
        self.connection.connection_lost(exc)

class AtemConnection(AtemEventSource, AsyncContextManager['AtemConnection']):
    """
    A control session with one ATEM switcher.

    Usage:
        async with AtemConnection('192.168.1.240') as conn:
            conn.add_event_handler(print)
            if await conn.wait_for_established(timeout=5.0):
                print(conn.get_program_input(0))

    An instance can be connected only once. Reconnecting requires a new instance.
    """

    host: Optional[str]
    """The default switcher address used by connect()"""

    port: int
    """The default switcher UDP port used by connect()"""

    _state: ConnectionState = ConnectionState.DISCONNECTED
    _transport: Optional[asyncio.DatagramTransport] = None
    _remote_addr: Optional[HostAndPort] = None
    _started: bool = False
    _closed: bool = False

    _session_id: int = 0
    _remote_package_id: int = 0
    _local_package_id: int = INITIAL_LOCAL_PACKAGE_ID
    _established: bool = False

    _program_inputs: Dict[int, int]
    _preview_inputs: Dict[int, int]

    _established_waiters: List[Future[bool]]
    _done_waiters: List[Future[None]]

    def __init__(self, host: Optional[str]=None, port: int=ATEM_PORT):
        super().__init__()
        self.host = host
        self.port = port
        self._program_inputs = {}
        self._preview_inputs = {}
        self._established_waiters = []
        self._done_waiters = []

    def __str__(self) -> str:
        addr = self._remote_addr if self._remote_addr is not None else (self.host, self.port)
        return f"AtemConnection({addr[0]}:{addr[1]}, {self._state.value})"

    def __repr__(self) -> str:
        return str(self)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def remote_addr(self) -> Optional[HostAndPort]:
        """The (host, port) this connection was opened to, or None before connect()."""
        return self._remote_addr

    @property
    def session_id(self) -> int:
        """The session id assigned by the switcher; 0 until a HELLO packet is received."""
        return self._session_id

    @property
    def remote_package_id(self) -> int:
        """The package id of the most recent data packet received."""
        return self._remote_package_id

    @property
    def local_package_id(self) -> int:
        return self._local_package_id

    @property
    def established(self) -> bool:
        """True once the first packet carrying a payload has been received."""
        return self._established

    @property
    def program_input_by_mix_effect(self) -> Dict[int, int]:
        """A copy of the last reported program input of each mix-effect."""
        return dict(self._program_inputs)

    @property
    def preview_input_by_mix_effect(self) -> Dict[int, int]:
        """A copy of the last reported preview input of each mix-effect."""
        return dict(self._preview_inputs)

    def get_program_input(self, mix_effect: int=0) -> Optional[int]:
        """Returns the last known program input of a mix-effect, or None if it has never been reported."""
        return self._program_inputs.get(mix_effect)

    def get_preview_input(self, mix_effect: int=0) -> Optional[int]:
        """Returns the last known preview input of a mix-effect, or None if it has never been reported."""
        return self._preview_inputs.get(mix_effect)

    async def connect(self, host: Optional[str]=None, port: Optional[int]=None) -> None:
        """Opens the UDP socket and sends the handshake.

        Returns once the socket is ready and the handshake has been sent. A failure to open
        the socket is not raised; it is reported with a DisconnectedEvent. Whether the
        switcher answers is reported later with a ConnectedEvent.
        """
        if self._started:
            raise AtemError(f"{self} cannot be reused; create a new AtemConnection to reconnect")
        if host is None:
            host = self.host
        if host is None:
            raise AtemError("No switcher address given")
        if port is None:
            port = self.port
        self._started = True
        self._remote_addr = (host, port)
        loop = asyncio.get_running_loop()
        logger.debug(f"Opening UDP endpoint to {host}:{port}")
        try:
            await loop.create_datagram_endpoint(
                lambda: _AtemConnectionProtocol(self),
                remote_addr=(host, port)
              )
        except OSError as e:
            logger.warning(f"Unable to open UDP endpoint to {host}:{port}: {e}")
            self._set_disconnected(TransportFailureError(f"Unable to open UDP endpoint to {host}:{port}: {e}"))

    def disconnect(self) -> None:
        """Closes the socket without sending anything to the switcher."""
        if not self._started:
            logger.debug(f"Disconnect of {self} before connect; ignoring")
            return
        self._set_disconnected(None)

    def fail(self, exc: BaseException) -> None:
        """Ends the connection because of a transport failure."""
        if not isinstance(exc, TransportFailureError):
            exc = TransportFailureError(f"Transport failure on {self}: {exc}")
        self._set_disconnected(exc)

    async def wait_for_established(self, timeout: Optional[float]=None) -> bool:
        """Waits until the first data packet has been received.

        Returns True if the connection is established, False if it is disconnected first
        or the timeout elapses.
        """
        if self._established:
            return True
        if self._closed:
            return False
        future: Future[bool] = asyncio.get_running_loop().create_future()
        self._established_waiters.append(future)
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            return False
        finally:
            if future in self._established_waiters:
                self._established_waiters.remove(future)

    async def wait_for_done(self) -> None:
        """Waits until the connection has been disconnected."""
        if self._closed:
            return
        future: Future[None] = asyncio.get_running_loop().create_future()
        self._done_waiters.append(future)
        try:
            await future
        finally:
            if future in self._done_waiters:
                self._done_waiters.remove(future)

    def send_packet(self, packet: AtemPacket) -> None:
        if self._transport is None:
            logger.debug(f"Not sending {packet} on {self}: no transport")
            return
        logger.debug(f"Sending {packet} on {self}")
        self._transport.sendto(packet.to_bytes())

    def connection_made(self, transport: asyncio.DatagramTransport) -> None:
        """Called when the socket is ready. Sends the handshake."""
        if self._closed:
            # disconnect() was called while the endpoint was being created
            transport.close()
            return
        logger.debug(f"Connection made: {self}")
        # the transport may be supplied without connect()
        self._started = True
        self._transport = transport
        handshake = AtemPacket(
            flags=PacketFlag.CONNECT | PacketFlag.HELLO,
            session_id=0,
            acknowledgment=0,
            package_id=0,
            payload=HANDSHAKE_PAYLOAD,
          )
        self.send_packet(handshake)
        self._set_state(ConnectionState.HANDSHAKING)

    def datagram_received(self, data: bytes, addr: HostAndPort) -> None:
        """Handles one received datagram."""
        if self._closed:
            return
        try:
            packet = AtemPacket.from_bytes(data)
        except MalformedPacketError as e:
            logger.warning(f"Dropping datagram from {addr}: {e}")
            return
        logger.debug(f"Received {packet} from {addr}")

        if packet.is_hello:
            self._session_id = packet.session_id
            logger.info(f"Handshake answered by {addr}, session ID: {self._session_id}")
            self._send_ack(packet)
        elif packet.is_ack and len(packet.payload) == 0:
            logger.debug(f"Remote acknowledged package {packet.acknowledgment}")
        elif len(packet.payload) > 0:
            self._remote_package_id = packet.package_id
            if not self._established:
                self._established = True
                self._set_state(ConnectionState.ESTABLISHED)
                self._resolve_established_waiters(True)
                logger.info(f"Connection established: {self}")
                self.emit(ConnectedEvent(self))
            for frame in parse_command_frames(packet.payload):
                if self._closed:
                    # a handler disconnected; the rest of the packet is discarded
                    return
                self._handle_command(frame)
            if not self._closed:
                self._send_ack(packet)

    def error_received(self, exc: Exception) -> None:
        """Called when a send or receive on the socket fails (e.g., ICMP port unreachable)."""
        logger.info(f"Error received from transport of {self}: {exc}")
        self.fail(exc)

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the transport is closed."""
        logger.debug(f"Connection to transport lost on {self}, exc={exc}")
        self._transport = None
        if exc is None:
            self._set_disconnected(None)
        else:
            self.fail(exc)

    def _send_ack(self, packet: AtemPacket) -> None:
        ack = AtemPacket(
            flags=PacketFlag.ACK,
            session_id=self._session_id,
            acknowledgment=packet.package_id,
            package_id=self._local_package_id,
          )
        self.send_packet(ack)

    def _handle_command(self, frame: CommandFrame) -> None:
        if frame.name == CMD_PROGRAM_INPUT:
            self._update_input(frame, self._program_inputs, ProgramInputChangedEvent)
        elif frame.name == CMD_PREVIEW_INPUT:
            self._update_input(frame, self._preview_inputs, PreviewInputChangedEvent)
        elif frame.name == CMD_PRODUCT_IDENTIFIER:
            product_name = frame.data.decode('utf-8', errors='replace').rstrip('\x00')
            logger.info(f"Connected to: {product_name}")

    def _update_input(
            self,
            frame: CommandFrame,
            inputs: Dict[int, int],
            event_class: Union[Type[ProgramInputChangedEvent], Type[PreviewInputChangedEvent]]
          ) -> None:
        if self._closed:
            return
        if len(frame.data) < 4:
            logger.debug(f"Ignoring short {frame}")
            return
        mix_effect, input_id = struct.unpack_from('>HH', frame.data, 0)
        old_input_id = inputs.get(mix_effect)
        inputs[mix_effect] = input_id
        if old_input_id != input_id:
            logger.info(f"{event_class.name}: ME{mix_effect} -> Input {input_id}")
            self.emit(event_class(self, mix_effect, input_id))

    def _set_state(self, state: ConnectionState) -> None:
        if state != self._state:
            logger.debug(f"{self}: state {self._state.value} -> {state.value}")
            self._state = state

    def _resolve_established_waiters(self, result: bool) -> None:
        waiters = self._established_waiters
        self._established_waiters = []
        for future in waiters:
            if not future.done():
                future.set_result(result)

    def _set_disconnected(self, exc: Optional[BaseException]) -> None:
        if self._closed:
            return
        self._closed = True
        self._set_state(ConnectionState.DISCONNECTED)
        transport = self._transport
        self._transport = None
        if transport is not None:
            try:
                transport.close()
            except Exception as e:
                logger.error(f"Error closing transport of {self}: {e}")
        if exc is None:
            logger.debug(f"Disconnected: {self}")
        else:
            logger.info(f"Disconnected: {self}: {exc}")
        self._resolve_established_waiters(False)
        waiters = self._done_waiters
        self._done_waiters = []
        for future in waiters:
            if not future.done():
                future.set_result(None)
        self.emit(DisconnectedEvent(self, exc))
        self.end_event_stream()

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        self.disconnect()
        return False
