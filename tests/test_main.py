"""Tests for the atem-switcher command-line tool."""

import asyncio
import json

import pytest

from atem_switcher_protocol import __version__
from atem_switcher_protocol.__main__ import CmdExitError, arun, parse_host_and_port, run

from fake_switcher import input_frame, start_fake_switcher, unused_udp_port


def test_version(capsys):
    assert run(["version"]) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_command_required(capsys):
    assert run([]) == 1
    assert "A command is required" in capsys.readouterr().err


def test_monitor_requires_host():
    assert run(["monitor"]) == 2


@pytest.mark.parametrize("value, expected", [
    ("192.168.1.240", ("192.168.1.240", 9910)),
    ("192.168.1.240:1234", ("192.168.1.240", 1234)),
    ("[::1]:9911", ("::1", 9911)),
    ("[fe80::1]", ("fe80::1", 9910)),
    ("::1", ("::1", 9910)),
])
def test_parse_host_and_port(value, expected):
    assert parse_host_and_port(value) == expected


def test_parse_host_and_port_bad_port():
    with pytest.raises(CmdExitError):
        parse_host_and_port("10.0.0.240:abc")


def test_probe_prints_found_device(capsys):
    async def amain():
        switcher = await start_fake_switcher(state_payload=input_frame("PrgI", 0, 1))
        try:
            return await arun(["probe", "-c", f"127.0.0.1:{switcher.port}", "--timeout", "1"]), switcher.port
        finally:
            switcher.transport.close()

    rc, port = asyncio.run(amain())
    assert rc == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["event"] == "device_found"
    assert summary["address"] == "127.0.0.1"
    assert summary["port"] == port


def test_monitor_prints_events(capsys):
    async def amain():
        switcher = await start_fake_switcher(state_payload=input_frame("PrgI", 0, 3) + input_frame("PrvI", 0, 4))
        try:
            return await arun(["monitor", f"127.0.0.1:{switcher.port}", "--duration", "0.2"])
        finally:
            switcher.transport.close()

    rc = asyncio.run(amain())
    assert rc == 0
    out = capsys.readouterr().out
    assert '"connected"' in out
    assert '"program_input_changed"' in out
    assert '"preview_input_changed"' in out
    assert '"disconnected"' in out


def test_monitor_fails_without_switcher(capsys):
    port = unused_udp_port()
    rc = run(["monitor", f"127.0.0.1:{port}", "--connect-timeout", "0.3"])
    assert rc == 1
    assert "error" in capsys.readouterr().err
