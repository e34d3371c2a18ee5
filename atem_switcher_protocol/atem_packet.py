#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Abstraction of a transport packet used in the ATEM switcher control protocol.

Each UDP datagram holds exactly one packet. Packets are written with a 14-byte header:

    flags(1) | 00 | length:u16be | session_id:u16be | acknowledgment:u16be | 00 00 |
        package_id:u16be | 00 00 | payload

Received packets are read with a 12-byte header:

    flags@0, length@2, session_id@4, acknowledgment@6, package_id@10, payload@12..end

The two trailing reserved bytes written on encode are therefore seen as the first two
payload bytes by decode. Both layouts are kept as-is.
"""

from __future__ import annotations

import struct
from enum import IntFlag

from .internal_types import *
from .exceptions import AtemError, MalformedPacketError
from .constants import PACKET_HEADER_LENGTH

_ENCODE_HEADER = struct.Struct('>BxHHHxxHxx')

_DECODE_HEADER = struct.Struct('>BxHHHxxH')

class PacketFlag(IntFlag):
    """Independent bits in the first byte of a packet."""
    NONE = 0
    HELLO = 0x02
    RESPONSE = 0x08
    CONNECT = 0x10
    RETRANSMIT = 0x20
    ACK = 0x80

class AtemPacket:
    """The logical content of one ATEM UDP datagram."""

    flags: int
    """Bitwise OR of PacketFlag values"""

    length: int
    """The declared packet length. Never checked against the actual datagram size."""

    session_id: int
    """The session id assigned by the switcher during the handshake; 0 before that."""

    acknowledgment: int
    """The package id being acknowledged. Only meaningful if PacketFlag.ACK is set."""

    package_id: int
    """The sequence number assigned by the sender of the packet."""

    payload: bytes
    """Zero or more command frames. Empty for handshake and ack-only packets."""

    def __init__(
            self,
            flags: int=PacketFlag.NONE,
            session_id: int=0,
            acknowledgment: int=0,
            package_id: int=0,
            payload: bytes=b'',
            length: Optional[int]=None,
          ):
        self.flags = int(flags)
        self.session_id = session_id
        self.acknowledgment = acknowledgment
        self.package_id = package_id
        self.payload = payload
        if length is None:
            length = PACKET_HEADER_LENGTH + len(payload)
        self.length = length

    def __str__(self) -> str:
        return (f"AtemPacket(flags={PacketFlag(self.flags)!r}, length={self.length}, session_id={self.session_id}, "
                f"ack={self.acknowledgment}, package_id={self.package_id}, payload=[{self.payload.hex(' ')}])")

    def __repr__(self) -> str:
        return str(self)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, AtemPacket):
            return False
        return (self.flags == other.flags and
                self.length == other.length and
                self.session_id == other.session_id and
                self.acknowledgment == other.acknowledgment and
                self.package_id == other.package_id and
                self.payload == other.payload)

    def has_flag(self, flag: int) -> bool:
        """Returns True iff every bit in flag is set on this packet."""
        return (self.flags & flag) == flag

    @property
    def is_hello(self) -> bool:
        return self.has_flag(PacketFlag.HELLO)

    @property
    def is_connect(self) -> bool:
        return self.has_flag(PacketFlag.CONNECT)

    @property
    def is_ack(self) -> bool:
        return self.has_flag(PacketFlag.ACK)

    def to_bytes(self) -> bytes:
        """Serializes the packet with a 14-byte header followed by the payload verbatim."""
        try:
            header = _ENCODE_HEADER.pack(
                self.flags,
                self.length,
                self.session_id,
                self.acknowledgment,
                self.package_id,
              )
        except struct.error as e:
            raise AtemError(f"Cannot encode {self}: {e}") from e
        return header + self.payload

    @classmethod
    def from_bytes(cls, data: bytes) -> AtemPacket:
        """Parses a received datagram.

        Raises MalformedPacketError if fewer than 12 bytes are present. No other
        header field is validated.
        """
        if len(data) < PACKET_HEADER_LENGTH:
            raise MalformedPacketError(f"Datagram too short for an ATEM packet ({len(data)} bytes): [{data.hex(' ')}]")
        flags, length, session_id, acknowledgment, package_id = _DECODE_HEADER.unpack_from(data, 0)
        return cls(
            flags=flags,
            session_id=session_id,
            acknowledgment=acknowledgment,
            package_id=package_id,
            payload=bytes(data[PACKET_HEADER_LENGTH:]),
            length=length,
          )

def encode_packet(packet: AtemPacket) -> bytes:
    """Encodes an AtemPacket into the bytes of a UDP datagram."""
    return packet.to_bytes()

def decode_packet(data: bytes) -> AtemPacket:
    """Decodes the bytes of a UDP datagram into an AtemPacket. Raises MalformedPacketError
       if the datagram is too short."""
    return AtemPacket.from_bytes(data)
