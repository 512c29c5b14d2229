from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from binpulse.api.routes import router as api_router
from binpulse.api.websocket import ConnectionManager, router as websocket_router
from binpulse.config import load_config
from binpulse.engine import build_engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = load_config()
    engine = build_engine(config)

    ws_manager = ConnectionManager()
    engine.telemetry.subscribe(ws_manager)

    for owner_id in config.telemetry.demo_owners:
        engine.telemetry.seed_owner(owner_id)

    engine.tracker.start()
    poll_task: asyncio.Task[Any] | None = None
    if config.session.auto_start_polling:
        poll_task = asyncio.create_task(engine.tracker.run_forever(config.session.reset_poll_seconds))
    if config.telemetry.auto_start_updates:
        engine.telemetry.start_updates(config.telemetry.update_interval_seconds)

    app.state.config = config
    app.state.engine = engine
    app.state.ws_manager = ws_manager

    yield

    if poll_task:
        poll_task.cancel()
        with suppress(asyncio.CancelledError):
            await poll_task

    await engine.aclose()


app = FastAPI(
    title="Bin Telemetry & Collection Session API",
    version="1.0.0",
    description="Simulated bin telemetry with day-scoped collection session tracking",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
app.include_router(websocket_router)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
