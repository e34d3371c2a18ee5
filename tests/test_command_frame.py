"""Tests for splitting packet payloads into command frames."""

import struct

import pytest

from atem_switcher_protocol.command_frame import (
    CommandFrame,
    parse_command_frames,
    build_command_frame,
)
from atem_switcher_protocol.exceptions import AtemError


def test_build_command_frame_layout():
    frame = build_command_frame("PrgI", b"\x00\x00\x00\x03")
    assert frame == b"\x00\x0c\x00\x00PrgI\x00\x00\x00\x03"


def test_parse_single_frame():
    frames = parse_command_frames(build_command_frame("PrvI", b"\x00\x01\x00\x02"))
    assert frames == [CommandFrame("PrvI", b"\x00\x01\x00\x02")]


def test_parse_frames_back_to_back():
    payload = (
        build_command_frame("_pin", b"ATEM Mini\x00\x00\x00")
        + build_command_frame("PrgI", struct.pack(">HH", 0, 3))
        + build_command_frame("PrvI", struct.pack(">HH", 0, 4))
        + build_command_frame("_top")
    )
    frames = parse_command_frames(payload)
    assert [f.name for f in frames] == ["_pin", "PrgI", "PrvI", "_top"]
    assert frames[1].data == b"\x00\x00\x00\x03"
    assert frames[3].data == b""


def test_trailing_partial_frame_is_dropped():
    payload = build_command_frame("PrgI", b"\x00\x00\x00\x01") + build_command_frame("PrvI", b"\x00\x00\x00\x02")
    partial = build_command_frame("PrgI", b"\x00\x00\x00\x05")[:10]
    frames = parse_command_frames(payload + partial)
    assert len(frames) == 2


def test_declared_length_past_end_stops_parsing():
    payload = build_command_frame("PrgI", b"\x00\x00\x00\x01") + b"\x00\x40\x00\x00Time" + bytes(4)
    frames = parse_command_frames(payload)
    assert [f.name for f in frames] == ["PrgI"]


def test_declared_length_below_header_size_stops_parsing():
    payload = b"\x00\x04\x00\x00PrgI" + build_command_frame("PrvI", b"\x00\x00\x00\x02")
    assert parse_command_frames(payload) == []


def test_empty_payload():
    assert parse_command_frames(b"") == []


def test_non_ascii_name_decodes_to_empty_string():
    payload = b"\x00\x0a\x00\x00\xff\xfe\xfd\xfc\x01\x02" + build_command_frame("PrgI", b"\x00\x00\x00\x01")
    frames = parse_command_frames(payload)
    assert frames[0].name == ""
    assert frames[0].data == b"\x01\x02"
    assert frames[1].name == "PrgI"


def test_parse_is_restartable():
    payload = build_command_frame("PrgI", b"\x00\x00\x00\x01")
    assert parse_command_frames(payload) == parse_command_frames(payload)


@pytest.mark.parametrize("name", ["Prg", "PrgIx", "Prgé"])
def test_build_command_frame_rejects_bad_names(name):
    with pytest.raises(AtemError):
        build_command_frame(name)
