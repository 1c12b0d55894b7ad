"""SSE streaming endpoint for consolidated quotes."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator, Collection

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from .interface import MarketDataManager
from .manager import normalize_symbols
from .models import Quote

logger = logging.getLogger(__name__)

QUEUE_SIZE = 64


def create_stream_router(
    manager: MarketDataManager,
    default_symbols: Collection[str] | None = None,
) -> APIRouter:
    """Create the SSE router bound to ``manager``.

    Every connected client becomes one subscription on the manager, so any
    number of browsers watching overlapping symbols still cost a single
    upstream poll per interval.
    """
    router = APIRouter(prefix="/api/stream", tags=["streaming"])
    fallback = normalize_symbols(default_symbols)

    @router.get("/quotes")
    async def stream_quotes(request: Request, symbols: str = "") -> StreamingResponse:
        """SSE endpoint for live quotes.

        The client connects with EventSource and receives events like:

            data: {"AAPL": {"symbol": "AAPL", "last_price": 190.50, ...}, ...}

        Upstream failures arrive as ``event: error`` messages; the stream
        stays open and resumes when the provider recovers.
        """
        wanted = normalize_symbols(symbols.split(",")) or fallback
        if not wanted:
            raise HTTPException(status_code=400, detail="symbols query parameter is required")
        return StreamingResponse(
            _generate_events(manager, wanted, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering if proxied
            },
        )

    return router


def _offer(queue: asyncio.Queue, item: tuple[str, object]) -> None:
    """Enqueue, dropping the oldest item when a slow client falls behind."""
    if queue.full():
        queue.get_nowait()
    queue.put_nowait(item)


def _format_quotes(quotes: list[Quote]) -> str:
    payload = json.dumps({quote.symbol: quote.to_dict() for quote in quotes})
    return f"data: {payload}\n\n"


async def _generate_events(
    manager: MarketDataManager,
    symbols: list[str],
    request: Request,
    heartbeat: float = 15.0,
) -> AsyncGenerator[str, None]:
    """Async generator yielding SSE-formatted quote events.

    Quotes are produced on the manager's poll thread and handed to the event
    loop through ``call_soon_threadsafe``. The subscription is released when
    the client disconnects or the generator is closed.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[tuple[str, object]] = asyncio.Queue(maxsize=QUEUE_SIZE)

    def on_quotes(quotes: list[Quote]) -> None:
        loop.call_soon_threadsafe(_offer, queue, ("quotes", quotes))

    def on_error(error: BaseException) -> None:
        loop.call_soon_threadsafe(_offer, queue, ("error", str(error)))

    client_ip = request.client.host if request.client else "unknown"
    subscription_id = manager.subscribe(symbols, on_quotes, on_error)
    logger.info("SSE client connected: %s (%s)", client_ip, ",".join(symbols))

    # Tell the client to retry after 1 second if the connection drops
    yield "retry: 1000\n\n"

    try:
        while True:
            if await request.is_disconnected():
                logger.info("SSE client disconnected: %s", client_ip)
                break
            try:
                kind, payload = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue

            if kind == "quotes":
                yield _format_quotes(payload)  # type: ignore[arg-type]
            else:
                yield f"event: error\ndata: {json.dumps({'message': payload})}\n\n"
    except asyncio.CancelledError:
        logger.info("SSE stream cancelled for: %s", client_ip)
        raise
    finally:
        manager.unsubscribe(subscription_id)
