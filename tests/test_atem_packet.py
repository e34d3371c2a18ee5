"""Tests for ATEM packet encoding and decoding."""

import pytest

from atem_switcher_protocol.atem_packet import (
    AtemPacket,
    PacketFlag,
    encode_packet,
    decode_packet,
)
from atem_switcher_protocol.exceptions import AtemError, MalformedPacketError


def test_flag_values():
    assert PacketFlag.CONNECT == 0x10
    assert PacketFlag.HELLO == 0x02
    assert PacketFlag.ACK == 0x80
    assert PacketFlag.RETRANSMIT == 0x20
    assert PacketFlag.RESPONSE == 0x08


def test_encode_header_layout():
    """14-byte header: flags, 0, length, session, ack, 0 0, package id, 0 0."""
    packet = AtemPacket(
        flags=PacketFlag.ACK,
        session_id=0x1234,
        acknowledgment=0x0506,
        package_id=0x0708,
    )
    data = encode_packet(packet)
    assert data == bytes([
        0x80, 0x00,
        0x00, 0x0C,
        0x12, 0x34,
        0x05, 0x06,
        0x00, 0x00,
        0x07, 0x08,
        0x00, 0x00,
    ])


def test_encode_appends_payload_verbatim():
    payload = b"\x01\x00\x00\x00\x00\x00\x00\x00"
    data = AtemPacket(flags=PacketFlag.CONNECT | PacketFlag.HELLO, payload=payload).to_bytes()
    assert len(data) == 14 + len(payload)
    assert data[0] == 0x12
    assert data[14:] == payload


def test_default_length_counts_twelve_byte_header():
    assert AtemPacket().length == 12
    assert AtemPacket(payload=b"\x01" * 8).length == 20


def test_explicit_length_is_kept():
    assert AtemPacket(payload=b"abc", length=99).to_bytes()[2:4] == b"\x00\x63"


def test_decode_fields():
    data = bytes([0x88, 0x00, 0x00, 0x10, 0x00, 0x07, 0x00, 0x02, 0xAA, 0xBB, 0x00, 0x05]) + b"WXYZ"
    packet = decode_packet(data)
    assert packet.flags == 0x88
    assert packet.length == 16
    assert packet.session_id == 7
    assert packet.acknowledgment == 2
    assert packet.package_id == 5
    assert packet.payload == b"WXYZ"


def test_decode_exactly_twelve_bytes_has_empty_payload():
    packet = decode_packet(bytes(12))
    assert packet.payload == b""


def test_decode_does_not_check_length_field():
    data = bytes([0x80, 0x00, 0x03, 0xE7]) + bytes(8)
    assert decode_packet(data).length == 999


def test_decode_nine_bytes_is_malformed():
    with pytest.raises(MalformedPacketError):
        decode_packet(bytes(9))


def test_decode_empty_is_malformed():
    with pytest.raises(MalformedPacketError):
        AtemPacket.from_bytes(b"")


def test_header_fields_survive_encode_then_decode():
    packet = AtemPacket(
        flags=PacketFlag.ACK | PacketFlag.RESPONSE,
        session_id=0x8001,
        acknowledgment=0xFFFF,
        package_id=0x1234,
        length=12,
    )
    decoded = decode_packet(encode_packet(packet))
    assert decoded.flags == packet.flags
    assert decoded.length == packet.length
    assert decoded.session_id == packet.session_id
    assert decoded.acknowledgment == packet.acknowledgment
    assert decoded.package_id == packet.package_id


def test_encode_decode_header_asymmetry():
    """The two trailing reserved bytes of the encode header come back as payload."""
    decoded = decode_packet(AtemPacket(payload=b"abc").to_bytes())
    assert decoded.payload == b"\x00\x00abc"


def test_multiple_flags():
    packet = AtemPacket(flags=PacketFlag.CONNECT | PacketFlag.HELLO)
    assert packet.is_connect
    assert packet.is_hello
    assert not packet.is_ack
    assert packet.has_flag(PacketFlag.CONNECT | PacketFlag.HELLO)
    assert not packet.has_flag(PacketFlag.HELLO | PacketFlag.ACK)


def test_encode_out_of_range_field():
    with pytest.raises(AtemError):
        AtemPacket(session_id=0x10000).to_bytes()


def test_equality():
    assert AtemPacket(flags=PacketFlag.ACK, package_id=1) == AtemPacket(flags=PacketFlag.ACK, package_id=1)
    assert AtemPacket(flags=PacketFlag.ACK, package_id=1) != AtemPacket(flags=PacketFlag.ACK, package_id=2)
    assert "ACK" in str(AtemPacket(flags=PacketFlag.ACK))
