"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.auth.sessions import SessionStore
from app.config import get_settings
from app.db.session import Database
from app.files.routes import router as files_router
from app.limiter import limiter
from app.users.routes import router as users_router

log = logging.getLogger(__name__)


def _setup_logging() -> None:
    """Configure logging from settings (stderr always; optional file)."""
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger("app")
    root.setLevel(level)
    root.handlers.clear()
    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root.addHandler(sh)
    if settings.log_file and str(settings.log_file).strip():
        try:
            fh = logging.FileHandler(settings.log_file, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(fmt)
            root.addHandler(fh)
            root.info("Logging to file %s", settings.log_file)
        except OSError as e:
            root.warning("Could not open log file %s: %s", settings.log_file, e)
    else:
        root.debug("Logging to stderr only (no log_file set)")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the database for this app, create tables, drop expired sessions."""
    settings = get_settings()
    log.info("Startup: initializing database")
    db = Database(settings.db_url)
    await db.init()
    async with db.session() as session:
        purged = await SessionStore(
            session, timedelta(minutes=settings.session_max_age_minutes)
        ).purge_expired()
    if purged:
        log.info("Removed %d expired sessions", purged)
    app.state.db = db
    log.info("Startup complete")
    yield
    log.info("Shutdown")
    await db.dispose()


async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response


async def generic_exception_handler(request: Request, exc: Exception):
    """Return generic 500 without leaking stack trace or internals."""
    log.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def health() -> JSONResponse:
    """Health check. Exempt from rate limiting."""
    return JSONResponse(content={"status": "ok"})


def create_app() -> FastAPI:
    """Build the FastAPI app. The database is created per app in the lifespan."""
    _setup_logging()
    settings = get_settings()
    app = FastAPI(title="FileVault API", version="0.1.0", lifespan=lifespan)
    if settings.cors_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "DELETE"],
            allow_headers=["*"],
        )
    app.middleware("http")(add_security_headers)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(users_router)
    app.include_router(files_router)
    app.get("/health")(limiter.exempt(health))
    return app


app = create_app()
