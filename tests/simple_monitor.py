#!/usr/bin/env python3

import sys
import logging
import asyncio
import atem_switcher_protocol as atem

#logging.basicConfig(level=logging.DEBUG)

async def amain(host: str):
    # The AtemConnection context manager sends the handshake on entry and closes the socket on exit.
    async with atem.AtemConnection(host) as conn:
        if not await conn.wait_for_established(timeout=5.0):
            print(f"No response from {host}", file=sys.stderr)
            return
        # AtemEventSubscriber queues events until they are read; iteration ends when the connection closes.
        async with atem.AtemEventSubscriber(conn) as subscriber:
            print(f"ME0 program={conn.get_program_input(0)} preview={conn.get_preview_input(0)}")
            async for event in subscriber:
                print(event)

loop = asyncio.new_event_loop()
try:
    asyncio.set_event_loop(loop)
    loop.run_until_complete(amain(sys.argv[1] if len(sys.argv) > 1 else "192.168.1.240"))
finally:
    loop.close()
