"""
agora.api.main — FastAPI application entry point
=================================================

Run with::

    uvicorn agora.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from agora.api.deps import (  # noqa: E402
    close_chain_client,
    get_chain_client,
    get_config,
    get_engine,
)
from agora.api.routes.comments import router as comments_router  # noqa: E402
from agora.api.routes.graphql import router as graphql_router  # noqa: E402
from agora.api.routes.metrics import router as metrics_router  # noqa: E402
from agora.services.notification_dispatcher import NotificationDispatcher  # noqa: E402
from agora.services.push_client import PushClient  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: warm the engine, run the dispatcher."""
    engine = get_engine()
    cfg = get_config()
    chain = get_chain_client(cfg)

    push = PushClient(cfg.push_endpoint_url) if cfg.push_endpoint_url else None
    if push is None:
        logger.warning("No push_endpoint_url configured; notifications are stored only")

    dispatcher = NotificationDispatcher(
        engine, chain, push, coin_display_name=cfg.coin_display_name,
    )
    dispatcher.start()
    app.state.dispatcher = dispatcher
    logger.info("Agora API started (db %s, chain %s)", engine.url.database, cfg.chain_query_url)
    yield
    logger.info("Agora API shutting down")
    dispatcher.stop()
    app.state.dispatcher = None
    if push is not None:
        await push.aclose()
    close_chain_client(chain)


app = FastAPI(
    title="Agora API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_error(request: Request, exc: RequestValidationError):
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Error parsing request"},
    )


# Mount routers
app.include_router(comments_router, prefix="/api")
app.include_router(metrics_router, prefix="/api")
app.include_router(graphql_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
