# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

ATEM_PORT = 9910
"""The UDP port on which ATEM switchers listen for control connections."""

PACKET_HEADER_LENGTH = 12
"""The number of header bytes that precede the payload of a received packet."""

COMMAND_FRAME_HEADER_LENGTH = 8
"""The size of the length/reserved/name header at the start of each command frame."""

HANDSHAKE_PAYLOAD = bytes([0x01, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])
"""The version/type marker sent as the payload of the connect handshake."""

INITIAL_LOCAL_PACKAGE_ID = 1
"""The package id this side uses for its acknowledgments."""

CMD_PROGRAM_INPUT = "PrgI"
"""Command frame carrying the program (on-air) input of a mix-effect."""

CMD_PREVIEW_INPUT = "PrvI"
"""Command frame carrying the preview input of a mix-effect."""

CMD_PRODUCT_IDENTIFIER = "_pin"
"""Command frame carrying the product name of the switcher."""

DEFAULT_PROBE_TIMEOUT = 2.0
"""The time (in seconds) a probe connection is given to reach the established state."""

DEFAULT_PROBE_CANDIDATES = (
    "192.168.1.240",
    "192.168.10.240",
    "10.0.0.240",
)
"""Addresses tried by the device prober. 192.168.1.240 is the factory default address."""

DEFAULT_DEVICE_LABEL = "ATEM Switcher"
"""The label reported for a device found by the prober."""

MAX_QUEUE_SIZE = 1000
"""The maximum number of undelivered events held for an event subscriber."""
