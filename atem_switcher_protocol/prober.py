#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
AtemDeviceProber -- Finds ATEM switchers by trying a short fixed list of addresses.

This is not a discovery protocol. Each candidate address gets a transient
AtemConnection; the ones that reach the established state before the probe deadline are
reported with a DeviceFoundEvent. Devices outside the candidate list, or that answer
after the deadline, are silently missed.
"""

from __future__ import annotations

import asyncio

from .internal_types import *
from .pkg_logging import logger
from .constants import (
    ATEM_PORT,
    DEFAULT_PROBE_CANDIDATES,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_DEVICE_LABEL,
  )
from .connection import AtemConnection
from .events import AtemEventSource, DeviceFoundEvent

ProbeCandidate = Union[str, HostAndPort]
"""A host probed on the prober's port, or an explicit (host, port)"""

class AtemDeviceProber(AtemEventSource):
    """
    Probes candidate addresses concurrently and emits a DeviceFoundEvent for each one that
    completes the handshake within probe_timeout seconds.

    Usage:
        prober = AtemDeviceProber()
        prober.add_event_handler(print)
        prober.start_discovery()
        await prober.wait_for_done()
    """

    candidates: List[HostAndPort]
    """The (host, port) addresses to probe."""

    probe_timeout: float
    """The time (in seconds) after which each probe connection is torn down, whatever its state."""

    label: str
    """The label reported for each device found."""

    probe_tasks: List[asyncio.Task[None]]
    """The tasks started by the most recent start_discovery()."""

    found_devices: List[DeviceFoundEvent]
    """The devices found by the most recent start_discovery()."""

    _probes_done: Optional[asyncio.Future[List[Any]]] = None

    def __init__(
            self,
            candidates: Optional[Iterable[ProbeCandidate]]=None,
            port: int=ATEM_PORT,
            probe_timeout: float=DEFAULT_PROBE_TIMEOUT,
            label: str=DEFAULT_DEVICE_LABEL,
          ) -> None:
        super().__init__()
        if candidates is None:
            candidates = DEFAULT_PROBE_CANDIDATES
        self.candidates = [ (c, port) if isinstance(c, str) else (c[0], c[1]) for c in candidates ]
        self.probe_timeout = probe_timeout
        self.label = label
        self.probe_tasks = []
        self.found_devices = []

    def start_discovery(self) -> None:
        """Starts one probe task per candidate. Any probing already in progress is cancelled.

        The event stream ends when every probe of the most recent start_discovery() has
        finished. Subscribers ended by an earlier run stay ended; subscribe again to see
        the events of a new run. Must be called from a running event loop.
        """
        self.stop_discovery()
        self.found_devices = []
        self.reopen_event_stream()
        loop = asyncio.get_running_loop()
        logger.debug(f"Starting ATEM probe of {self.candidates}, timeout={self.probe_timeout}")
        self.probe_tasks = [ loop.create_task(self._run_probe_task(host, port)) for host, port in self.candidates ]
        probes_done = asyncio.gather(*self.probe_tasks, return_exceptions=True)
        self._probes_done = probes_done
        probes_done.add_done_callback(self._on_probes_done)

    def stop_discovery(self) -> None:
        """Cancels any probing in progress."""
        for task in self.probe_tasks:
            if not task.done():
                task.cancel()

    async def wait_for_done(self) -> None:
        """Waits until every probe started by the last start_discovery() has finished."""
        tasks = list(self.probe_tasks)
        if len(tasks) > 0:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def simple_probe(self) -> List[DeviceFoundEvent]:
        """Probes all candidates and returns the devices found once every probe has finished.

        A probe finishes early when its device is found, and otherwise at its deadline.
        """
        self.start_discovery()
        try:
            await self.wait_for_done()
        finally:
            self.stop_discovery()
        return list(self.found_devices)

    async def _run_probe_task(self, host: str, port: int) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.probe_timeout
        connection = AtemConnection(host, port)
        try:
            await asyncio.wait_for(connection.connect(), self.probe_timeout)
            remaining_time = max(0.0, deadline - loop.time())
            if await connection.wait_for_established(remaining_time):
                self._report_device_found(host, port)
            else:
                logger.debug(f"No ATEM switcher answered at {host}:{port}")
        except asyncio.TimeoutError:
            logger.debug(f"Timed out opening probe connection to {host}:{port}")
        except asyncio.CancelledError:
            logger.debug(f"Probe of {host}:{port} cancelled")
            raise
        finally:
            connection.disconnect()

    def _on_probes_done(self, probes_done: asyncio.Future[List[Any]]) -> None:
        if probes_done is not self._probes_done:
            # superseded by a later start_discovery()
            return
        logger.debug(f"ATEM probe finished, found {len(self.found_devices)} device(s)")
        self.end_event_stream()

    def _report_device_found(self, host: str, port: int) -> None:
        if any(d.address == host and d.port == port for d in self.found_devices):
            return
        logger.info(f"Found ATEM at: {host}:{port}")
        event = DeviceFoundEvent(self, host, port, self.label)
        self.found_devices.append(event)
        self.emit(event)
