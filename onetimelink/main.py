# onetimelink/main.py
from __future__ import annotations

"""
# onetimelink API — Application Entrypoint (FastAPI)

ASGI application factory and lifecycle for the one-time video link service.

## Design
- Deterministic, testable **app factory** (`create_app`) with explicit lifespan.
- Long-lived handles (S3 signer, DB engine/session factory or in-memory store)
  are constructed once and kept on `app.state`; `create_app` accepts
  pre-built ones so callers and tests can inject their own.
- Middleware order: request id → security headers → CORS.
- Centralized problem+json exception handling.

## Probes
- `/healthz`: liveness (process up).
- `/readyz`: readiness (quick store check).
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
import logging

from fastapi import FastAPI
from starlette.responses import JSONResponse

# Importing sets up Loguru sinks and the stdlib intercept.
from onetimelink.core import logger as _logsetup  # noqa: F401
from onetimelink.api.routers.access_links import router as access_links_router
from onetimelink.core.config import settings
from onetimelink.core.exception_handlers import install_exception_handlers
from onetimelink.db.session import create_engine_and_sessionmaker, db_healthcheck
from onetimelink.middleware.request_id import RequestIDMiddleware
from onetimelink.repositories.access_links import AccessLinkRepositoryProtocol, MemoryAccessLinkRepository
from onetimelink.security_headers import configure_cors, install_security
from onetimelink.services.access_link_service import UrlSigner
from onetimelink.utils.aws import S3Client

logger = logging.getLogger("onetimelink")


# ─────────────────────────────────────────────────────────────────────────────
# 🔄 Lifespan: startup & shutdown
# ─────────────────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Startup:
        - Build the S3 signer unless one was injected.
        - Build the record store: in-memory when `STORE_BACKEND=memory`
          (seeded from `MEMORY_SEED_EMAILS`),
          otherwise the async engine + session factory, verified with `SELECT 1`.
          Startup fails if the store is unreachable.

    Shutdown:
        - Dispose the DB engine (if one was created here).
    """
    logger.info("onetimelink API starting up")

    if getattr(app.state, "url_signer", None) is None:
        app.state.url_signer = S3Client()

    engine = None
    if getattr(app.state, "repository", None) is None:
        if settings.STORE_BACKEND == "memory":
            app.state.repository = MemoryAccessLinkRepository(settings.memory_seed_emails)
            logger.warning(
                "STORE_BACKEND=memory: access records are not persisted (%d seeded)",
                len(app.state.repository),
            )
        else:
            engine, app.state.session_maker = create_engine_and_sessionmaker()
            app.state.engine = engine
            if not await db_healthcheck(engine):
                await engine.dispose()
                logger.error("Could not establish a connection to the record store")
                raise RuntimeError("Could not establish a connection to the record store")
            logger.info("Connection to the record store is established")

    try:
        yield
    finally:
        if engine is not None:
            try:
                await engine.dispose()
                logger.info("Database engine disposed")
            except Exception:
                logger.exception("Error disposing DB engine")
        logger.info("onetimelink API shutting down")


# ─────────────────────────────────────────────────────────────────────────────
# 🏗️ App factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(
    *,
    url_signer: Optional[UrlSigner] = None,
    repository: Optional[AccessLinkRepositoryProtocol] = None,
) -> FastAPI:
    """
    Build and configure the FastAPI app instance.

    Args:
        url_signer: signer to use instead of building an `S3Client` at startup.
        repository: record store to use instead of the configured backend.
    """
    docs = settings.ENABLE_DOCS
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        openapi_url="/openapi.json" if docs else None,
        lifespan=lifespan,
    )

    app.state.url_signer = url_signer
    app.state.repository = repository

    # ── Middlewares (added innermost first) ─────────────────────────────────
    configure_cors(app, origins=settings.cors_origins)
    install_security(app, https_redirect=settings.ENABLE_HTTPS_REDIRECT)
    app.add_middleware(RequestIDMiddleware)

    install_exception_handlers(app)

    # ── Routers ─────────────────────────────────────────────────────────────
    app.include_router(access_links_router)

    # ── Meta endpoints ──────────────────────────────────────────────────────
    @app.get("/healthz", tags=["meta"])
    async def healthz() -> dict[str, bool]:
        """Liveness probe. No external checks."""
        return {"ok": True}

    @app.get("/readyz", tags=["meta"])
    async def readyz() -> JSONResponse:
        """Readiness probe: injected/in-memory stores are always ready, SQL stores get a `SELECT 1`."""
        if getattr(app.state, "repository", None) is not None:
            store_ok = True
        else:
            engine = getattr(app.state, "engine", None)
            store_ok = engine is not None and await db_healthcheck(engine)
        body = {"ready": store_ok, "checks": {"store": store_ok}}
        return JSONResponse(body, status_code=200 if store_ok else 503)

    return app


# ─────────────────────────────────────────────────────────────────────────────
# 🚀 Module-level ASGI app for Uvicorn
# ─────────────────────────────────────────────────────────────────────────────
app = create_app()
__all__ = ["create_app", "app"]


# Local dev runner (prefer: `uvicorn onetimelink.main:app --reload`)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("onetimelink.main:app", host="0.0.0.0", port=settings.PORT, log_level="info")
