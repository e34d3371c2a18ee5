#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import asyncio
import logging
from signal import SIGINT, SIGTERM

from atem_switcher_protocol.internal_types import *

from atem_switcher_protocol import (
    __version__ as pkg_version,
    AtemConnection,
    AtemDeviceProber,
    AtemEvent,
    ATEM_PORT,
    DEFAULT_PROBE_CANDIDATES,
    DEFAULT_PROBE_TIMEOUT,
  )

DEFAULT_CONNECT_TIMEOUT = 5.0

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

def parse_host_and_port(value: str, default_port: int=ATEM_PORT) -> HostAndPort:
    """Parses "<host>" or "<host>:<port>". Bracketed IPv6 addresses ("[::1]:9910") are accepted."""
    if value.startswith('['):
        host, _, rest = value[1:].partition(']')
        port_str = rest[1:] if rest.startswith(':') else ''
    elif value.count(':') == 1:
        host, port_str = value.split(':', 1)
    else:
        host, port_str = value, ''
    if host == '':
        raise CmdExitError(1, f"Invalid address: '{value}'")
    if port_str == '':
        return (host, default_port)
    try:
        port = int(port_str)
    except ValueError:
        raise CmdExitError(1, f"Invalid port in address: '{value}'")
    return (host, port)

def event_summary(event: AtemEvent) -> JsonableDict:
    summary = event.summary()
    summary["monotonic_time"] = event.monotonic_time
    if isinstance(event.source, AtemConnection) and event.source.remote_addr is not None:
        summary["remote_addr"] = f"{event.source.remote_addr[0]}:{event.source.remote_addr[1]}"
    return summary

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    def _print_event(self, event: AtemEvent) -> None:
        print(json.dumps(event_summary(event), indent=2, sort_keys=True))
        sys.stdout.flush()

    def _install_signal_handlers(self, callback: Callable[[], None]) -> bool:
        loop = asyncio.get_running_loop()
        try:
            for signal in (SIGINT, SIGTERM):
                loop.add_signal_handler(signal, callback)
        except NotImplementedError:
            # Not available on Windows event loops
            return False
        return True

    def _remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for signal in (SIGINT, SIGTERM):
            loop.remove_signal_handler(signal)

    async def cmd_monitor(self) -> int:
        host, port = parse_host_and_port(self._args.host, self._args.port)
        connect_timeout: float = self._args.connect_timeout
        duration: float = self._args.duration
        connection = AtemConnection(host, port)
        connection.add_event_handler(self._print_event)
        have_signal_handlers = False
        if not self._provide_traceback:
            have_signal_handlers = self._install_signal_handlers(connection.disconnect)
        try:
            async with connection:
                if not await connection.wait_for_established(connect_timeout):
                    raise CmdExitError(1, f"No response from ATEM switcher at {host}:{port}")
                if duration > 0.0:
                    try:
                        await asyncio.wait_for(connection.wait_for_done(), duration)
                    except asyncio.TimeoutError:
                        logging.debug(f"Monitor duration of {duration} seconds elapsed")
                else:
                    await connection.wait_for_done()
        finally:
            if have_signal_handlers:
                self._remove_signal_handlers()
        return 0

    async def cmd_probe(self) -> int:
        port: int = self._args.port
        candidates: List[HostAndPort]
        if len(self._args.candidates) == 0:
            candidates = [ (host, port) for host in DEFAULT_PROBE_CANDIDATES ]
        else:
            candidates = [ parse_host_and_port(c, port) for c in self._args.candidates ]
        prober = AtemDeviceProber(candidates=candidates, probe_timeout=self._args.timeout)
        prober.add_event_handler(self._print_event)
        have_signal_handlers = False
        if not self._provide_traceback:
            have_signal_handlers = self._install_signal_handlers(prober.stop_discovery)
        try:
            found = await prober.simple_probe()
        finally:
            if have_signal_handlers:
                self._remove_signal_handlers()
        logging.debug(f"Probe found {len(found)} device(s)")
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the atem-switcher command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Follow program/preview state of ATEM video switchers.")


        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')


        # ======================= monitor

        parser_monitor = subparsers.add_parser('monitor', description="Connect to a switcher and print state changes")
        parser_monitor.add_argument('host',
                            help='''The address of the switcher, as <host> or <host>:<port>''')
        parser_monitor.add_argument('--port', type=int, default=ATEM_PORT,
                            help=f'''The UDP port of the switcher if not given with the host. Default: {ATEM_PORT}''')
        parser_monitor.add_argument('--connect-timeout', dest='connect_timeout', type=float, default=DEFAULT_CONNECT_TIMEOUT,
                            help=f'''The time to wait for the switcher to answer, in seconds. Default: {DEFAULT_CONNECT_TIMEOUT}''')
        parser_monitor.add_argument('--duration', type=float, default=0.0,
                            help='''Stop monitoring after this many seconds. Default: 0 (until interrupted)''')
        parser_monitor.set_defaults(func=self.cmd_monitor)

        # ======================= probe

        parser_probe = subparsers.add_parser('probe', description="Probe candidate addresses for ATEM switchers")
        parser_probe.add_argument('-c', '--candidate', dest="candidates", action='append', default=[],
                            help=f'''A <host> or <host>:<port> to probe. May be repeated. Default: {', '.join(DEFAULT_PROBE_CANDIDATES)}''')
        parser_probe.add_argument('--port', type=int, default=ATEM_PORT,
                            help=f'''The UDP port for candidates given without one. Default: {ATEM_PORT}''')
        parser_probe.add_argument('--timeout', type=float, default=DEFAULT_PROBE_TIMEOUT,
                            help=f'''The time each candidate is given to answer, in seconds. Default: {DEFAULT_PROBE_TIMEOUT}''')
        parser_probe.set_defaults(func=self.cmd_probe)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"atem-switcher: error: {ex}", file=sys.stderr)
        except BaseException as ex:
            print(f"atem-switcher: Unhandled exception: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            rc = loop.run_until_complete(self.arun())
        finally:
            loop.close()
        return rc

def run(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    sys.exit(run())
