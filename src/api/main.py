from __future__ import annotations

import logging
import sqlite3

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.actions import config, health, queues, schedules
from core.errors import ContinuityError

logger = logging.getLogger(__name__)

app = FastAPI(title="Narrative Continuity API")

app.include_router(health.router)
app.include_router(config.router)
app.include_router(schedules.router)
app.include_router(queues.router)


@app.exception_handler(ContinuityError)
async def continuity_error_handler(request: Request, exc: ContinuityError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content=exc.to_payload())


@app.exception_handler(sqlite3.Error)
async def state_store_error_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
    logger.error("State store unavailable for %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"error": "state_store_unavailable"})
