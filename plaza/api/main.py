"""
plaza.api.main — FastAPI application entry point
==================================================

Run with::

    uvicorn plaza.api.main:asgi_app --reload --port 8000

``asgi_app`` wraps the FastAPI ``app`` with the Socket.IO server, so HTTP
and realtime traffic share one process and one port.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

import socketio
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

from plaza.api.deps import get_config, get_engine  # noqa: E402
from plaza.api.rate_limit import configure_rate_limiter, rate_limited  # noqa: E402
from plaza.api.realtime import configure_chat, sio  # noqa: E402
from plaza.api.routes.admin import router as admin_router  # noqa: E402
from plaza.api.routes.auth import router as auth_router  # noqa: E402
from plaza.api.routes.user import router as user_router  # noqa: E402
from plaza.errors import InternalError, PlazaError, ValidationError  # noqa: E402
from plaza.services.log_buffer import install_handler  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Allowed CORS origins from ``CORS_ALLOW_ORIGINS`` (comma-separated)."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — warm the engine, limiter and chat room."""
    install_handler()

    engine = get_engine()
    cfg = get_config()
    configure_rate_limiter(
        engine=engine,
        max_requests=cfg.rate_limit_requests,
        window_seconds=cfg.rate_limit_window_seconds,
    )
    configure_chat(engine=engine, cfg=cfg)
    logger.info("%s API started — engine ready (%s)", cfg.site_name, engine.url.database)
    yield
    logger.info("%s API shutting down", cfg.site_name)


app = FastAPI(
    title="Plaza API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error mapping: domain errors become {"error": code, "message": ...}
# ---------------------------------------------------------------------------
@app.exception_handler(PlazaError)
async def _plaza_error(request: Request, exc: PlazaError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code, content=exc.payload(), headers=exc.headers()
    )


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "invalid"),
        }
        for err in exc.errors()
    ]
    err = ValidationError(errors=errors)
    return JSONResponse(status_code=err.status_code, content=err.payload())


@app.exception_handler(SQLAlchemyError)
async def _store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Store failure on %s %s", request.method, request.url.path)
    err = InternalError()
    return JSONResponse(status_code=err.status_code, content=err.payload())


@app.exception_handler(Exception)
async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    err = InternalError()
    return JSONResponse(status_code=err.status_code, content=err.payload())


# Mount routers: every /api route except health counts against the limiter
_limited = [Depends(rate_limited)]
app.include_router(auth_router, prefix="/api", dependencies=_limited)
app.include_router(user_router, prefix="/api", dependencies=_limited)
app.include_router(admin_router, prefix="/api", dependencies=_limited)


@app.get("/api/health")
def health():
    return {"status": "ok"}


asgi_app = socketio.ASGIApp(sio, other_asgi_app=app)
