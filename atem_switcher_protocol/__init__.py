# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package atem_switcher_protocol implements a client for the UDP control protocol of
Blackmagic Design ATEM video switchers.

The client performs the connect handshake, acknowledges received packets, and decodes
the command frames that report the program (on-air) and preview input of each
mix-effect bus. Changes are delivered as events, which makes the package suitable for
driving tally lights.

The protocol is not publicly documented; only the small subset needed to follow
program/preview state is implemented. Bulk state dumps spread over several packets are
not reassembled, and nothing sent by the client is retransmitted.
"""

from .version import __version__

from .internal_types import Jsonable, JsonableDict, HostAndPort

from .exceptions import AtemError, MalformedPacketError, TransportFailureError

from .atem_packet import AtemPacket, PacketFlag, encode_packet, decode_packet
from .command_frame import CommandFrame, parse_command_frames, build_command_frame
from .events import (
    AtemEvent,
    ConnectedEvent,
    DisconnectedEvent,
    ProgramInputChangedEvent,
    PreviewInputChangedEvent,
    DeviceFoundEvent,
    AtemEventHandler,
    AtemEventSource,
    AtemEventSubscriber,
  )
from .connection import AtemConnection, ConnectionState
from .prober import AtemDeviceProber
from .constants import ATEM_PORT, DEFAULT_PROBE_CANDIDATES, DEFAULT_PROBE_TIMEOUT

__all__ = [
    '__version__',
    'Jsonable', 'JsonableDict', 'HostAndPort',
    'AtemError', 'MalformedPacketError', 'TransportFailureError',
    'AtemPacket', 'PacketFlag', 'encode_packet', 'decode_packet',
    'CommandFrame', 'parse_command_frames', 'build_command_frame',
    'AtemEvent', 'ConnectedEvent', 'DisconnectedEvent',
    'ProgramInputChangedEvent', 'PreviewInputChangedEvent', 'DeviceFoundEvent',
    'AtemEventHandler', 'AtemEventSource', 'AtemEventSubscriber',
    'AtemConnection', 'ConnectionState',
    'AtemDeviceProber',
    'ATEM_PORT', 'DEFAULT_PROBE_CANDIDATES', 'DEFAULT_PROBE_TIMEOUT',
]
