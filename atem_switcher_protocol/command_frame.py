#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Command frames carried in the payload of an ATEM packet.

Frames are packed back-to-back with no padding:

    frame_length:u16be | reserved(2) | name:4xASCII | data:(frame_length - 8) bytes
"""

from __future__ import annotations

import struct

from .internal_types import *
from .pkg_logging import logger
from .exceptions import AtemError
from .constants import COMMAND_FRAME_HEADER_LENGTH

class CommandFrame:
    """One named command inside a packet payload."""

    name: str
    """The 4-character command name (e.g., "PrgI"). Empty if the name was not valid ASCII."""

    data: bytes
    """The bytes of the frame following the 8-byte frame header."""

    def __init__(self, name: str, data: bytes=b''):
        self.name = name
        self.data = data

    def __str__(self) -> str:
        return f"CommandFrame('{self.name}', data=[{self.data.hex(' ')}])"

    def __repr__(self) -> str:
        return str(self)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, CommandFrame):
            return False
        return self.name == other.name and self.data == other.data

def parse_command_frames(data: bytes) -> List[CommandFrame]:
    """Splits a packet payload into its command frames.

    Parsing stops at the first frame whose declared length is less than 8 or runs past
    the end of the payload; the frames before it are returned. A truncated frame is
    never an error, since the payload of a bulk state dump may continue in a later packet.
    """
    frames: List[CommandFrame] = []
    offset = 0
    while offset + COMMAND_FRAME_HEADER_LENGTH <= len(data):
        length = int.from_bytes(data[offset:offset + 2], 'big')
        if length < COMMAND_FRAME_HEADER_LENGTH or offset + length > len(data):
            logger.debug(f"Stopped parsing command frames at offset {offset}: frame length {length}, {len(data) - offset} bytes remain")
            break
        try:
            name = data[offset + 4:offset + 8].decode('ascii')
        except UnicodeDecodeError:
            name = ''
        frames.append(CommandFrame(name, bytes(data[offset + COMMAND_FRAME_HEADER_LENGTH:offset + length])))
        offset += length
    return frames

def build_command_frame(name: str, data: bytes=b'') -> bytes:
    """Builds the bytes of a single well-formed command frame."""
    try:
        name_bytes = name.encode('ascii')
    except UnicodeEncodeError as e:
        raise AtemError(f"Command name must be ASCII: {name!r}") from e
    if len(name_bytes) != 4:
        raise AtemError(f"Command name must be exactly 4 characters: {name!r}")
    length = COMMAND_FRAME_HEADER_LENGTH + len(data)
    if length > 0xffff:
        raise AtemError(f"Command frame data too long ({len(data)} bytes)")
    return struct.pack('>Hxx4s', length, name_bytes) + data
