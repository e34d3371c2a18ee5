#!/usr/bin/env python3

import logging
import asyncio
import atem_switcher_protocol as atem

logging.basicConfig(level=logging.DEBUG)

async def amain():
    # All parameters to AtemDeviceProber are optional; they allow you to set the candidate addresses,
    # the time each candidate is given to answer, etc.
    prober = atem.AtemDeviceProber()
    # simple_probe() tries every candidate concurrently and returns once every probe deadline has passed.
    for device in await prober.simple_probe():
        print(f"{device.label} at {device.address}:{device.port}")

loop = asyncio.new_event_loop()
try:
    asyncio.set_event_loop(loop)
    loop.run_until_complete(amain())
finally:
    loop.close()
