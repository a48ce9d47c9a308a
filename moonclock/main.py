from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import partial
from typing import AsyncIterator, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from awtrix import AwtrixClient
from broadcaster import Broadcaster, ChannelClosedError
from config import (
    get_awtrix_host,
    get_channel_max_pending,
    get_latitude,
    get_rejected_latitude,
    get_refresh_interval_s,
    get_sse_keepalive_s,
)
from log import get_logger, log_info, log_warn
from scheduler import Scheduler
from snapshot import SnapshotDocument, build_snapshot, serialize, to_document
from store import SnapshotStore
from timeutil import parse_iso_datetime_utc

logger = get_logger("moonclock.main")


async def event_stream(
    broadcaster: Broadcaster, store: SnapshotStore, keepalive_s: float
) -> AsyncIterator[str]:
    """Eventos SSE hasta que el canal se cierre o el cliente se desconecte.

    El canal se registra al iterar por primera vez, así una desconexión antes
    de empezar el stream no deja canales huérfanos en el broadcaster.
    """
    channel_id = broadcaster.subscribe()
    try:
        channel = broadcaster.channel(channel_id)
        current = store.current()
        # Enviar la instantánea actual al conectar para que el cliente tenga datos
        if current is not None and channel is not None:
            channel.send(serialize(current))
        while channel is not None:
            payload = await channel.receive(timeout=keepalive_s)
            if payload is None:
                yield ": keep-alive\n\n"
                continue
            yield f"event: update\ndata: {payload}\n\n"
    except ChannelClosedError:
        pass
    finally:
        broadcaster.unsubscribe(channel_id)


def create_app(
    store: Optional[SnapshotStore] = None,
    broadcaster: Optional[Broadcaster] = None,
    scheduler: Optional[Scheduler] = None,
) -> FastAPI:
    latitude = get_latitude()
    store = store or SnapshotStore()
    broadcaster = broadcaster or Broadcaster(max_pending=get_channel_max_pending())
    scheduler = scheduler or Scheduler(
        store,
        broadcaster,
        interval_s=get_refresh_interval_s(),
        build=partial(build_snapshot, latitude_deg=latitude),
    )
    keepalive_s = get_sse_keepalive_s()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        rejected = get_rejected_latitude()
        if rejected is not None:
            log_warn(logger, "invalid latitude, falling back to Greenwich", latitude=rejected, fallback=latitude)
        # Si no se puede armar el scheduler, el arranque falla (SchedulerStartError)
        scheduler.start()

        awtrix: Optional[AwtrixClient] = None
        awtrix_task: Optional[asyncio.Task] = None
        host = get_awtrix_host()
        if host:
            awtrix = AwtrixClient(host)
            await awtrix.check_connectivity()
            awtrix_task = asyncio.create_task(awtrix.run(broadcaster, store))
        log_info(logger, "application started", latitude=latitude, awtrix=host)
        try:
            yield
        finally:
            if awtrix_task is not None:
                awtrix_task.cancel()
                try:
                    await awtrix_task
                except asyncio.CancelledError:
                    pass
            if awtrix is not None:
                await awtrix.aclose()
            await scheduler.stop()
            for channel_id in broadcaster.channel_ids():
                broadcaster.unsubscribe(channel_id)
            log_info(logger, "application shutting down", ticks=scheduler.ticks, failed_ticks=scheduler.failed_ticks)

    app = FastAPI(
        title="Moonclock API",
        description="Instantánea periódica de la Luna, el Sistema Solar y las sondas lejanas, con actualizaciones en vivo por SSE",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.scheduler = scheduler

    # Error handling
    @app.exception_handler(ValueError)
    async def value_error_handler(_: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={
                "detail": str(exc),
                "hint": "Use ISO 8601 UTC con sufijo Z, ej. 2025-01-10T03:00:00Z",
            },
        )

    # CORS (entorno de desarrollo: permitir todo)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> dict:
        return {
            "status": "ok",
            "scheduler": scheduler.state.value,
            "ticks": scheduler.ticks,
            "failedTicks": scheduler.failed_ticks,
            "subscribers": len(broadcaster),
            "hasSnapshot": store.current() is not None,
        }

    @app.get("/api/data", response_model=SnapshotDocument)
    def current_data() -> SnapshotDocument:
        snapshot = store.current()
        if snapshot is None:
            # Aún no hay datos: el primer cálculo no ha terminado
            raise HTTPException(status_code=503, detail="Snapshot not yet available")
        return to_document(snapshot)

    @app.get("/api/snapshot", response_model=SnapshotDocument)
    def snapshot_at(
        at: Optional[str] = Query(
            None,
            description="Fecha/hora en formato ISO 8601 (UTC). Ej: 2024-01-01T02:30:00Z. Si se omite, se usa la hora actual en UTC.",
        ),
    ) -> SnapshotDocument:
        # Cálculo puntual: no se guarda ni se publica
        return to_document(build_snapshot(parse_iso_datetime_utc(at), latitude_deg=latitude))

    @app.get("/api/events")
    async def events() -> StreamingResponse:
        return StreamingResponse(
            event_stream(broadcaster, store, keepalive_s),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app


app = create_app()


if __name__ == "__main__":
    # Ejecución directa: uvicorn con autoreload para desarrollo
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
