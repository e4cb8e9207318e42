"""Server-sent player-count stream."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass

from aiohttp import web

from kittenclicker import protocol

_logger = logging.getLogger(__name__)

STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Access-Control-Allow-Origin": "*",
}


@dataclass
class StreamConnection:
    conn_id: str
    request: web.Request
    resp: web.StreamResponse
    created_at: float
    task: asyncio.Task | None = None
    sent: int = 0


class CountStreamHub:
    """One periodic push task per connected client."""

    def __init__(self, svc):
        self.svc = svc
        self._conns: dict[str, StreamConnection] = {}

    def __len__(self) -> int:
        return len(self._conns)

    def connections(self) -> list[StreamConnection]:
        return list(self._conns.values())

    async def handle(self, request: web.Request) -> web.StreamResponse:
        resp = web.StreamResponse(status=200, headers=STREAM_HEADERS)
        await resp.prepare(request)

        conn = StreamConnection(conn_id=uuid.uuid4().hex, request=request, resp=resp, created_at=time.time())
        self._conns[conn.conn_id] = conn
        _logger.debug("Stream %s opened (%d open)", conn.conn_id, len(self._conns))

        conn.task = asyncio.create_task(self._run(conn))
        try:
            await conn.task
        except asyncio.CancelledError:
            conn.task.cancel()
            # Only propagate if this handler itself is being cancelled, not just the push task.
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        finally:
            self._conns.pop(conn.conn_id, None)
            _logger.debug("Stream %s closed after %d events", conn.conn_id, conn.sent)
        return resp

    async def _run(self, conn: StreamConnection) -> None:
        interval = self.svc.config.stream_interval_sec
        loop = asyncio.get_running_loop()
        due = loop.time()
        try:
            while True:
                await self._send(conn)
                # Fixed cadence from the first event, not from the end of each write.
                due += interval
                delay = due - loop.time()
                if delay < 0:
                    # Fell behind (slow client or busy loop); skip missed ticks instead of bursting.
                    due = loop.time()
                    delay = 0
                await asyncio.sleep(delay)
        except ConnectionResetError:
            # aiohttp's ClientConnectionResetError subclasses this.
            return

    async def _send(self, conn: StreamConnection) -> None:
        transport = conn.request.transport
        if transport is None or transport.is_closing():
            raise ConnectionResetError("client disconnected")
        await conn.resp.write(protocol.sse_event(self.svc.store.aggregate()))
        conn.sent += 1

    async def close_all(self) -> None:
        tasks = [c.task for c in self._conns.values() if c.task is not None]
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
