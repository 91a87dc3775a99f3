"""
Polly: FastAPI application entry-point.

Run with:
    uvicorn polly.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.sessions import SessionMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from polly.config import settings
from polly.database import Base, engine
from polly.errors import AppError, handle_server_error

# ── Import models so create_all sees every table ──
import polly.models  # noqa: F401

# ── Import routers ──
from polly.routers import api, auth, forms, users, ws

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: create tables on startup ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Create polls, share them by link, vote and discuss the results.",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Session middleware (required for OAuth state) ──
app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY, https_only=not settings.DEBUG)
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.TRUSTED_PROXIES)


# ── Error envelope ──
def error_response(exc: BaseException) -> JSONResponse:
    error = handle_server_error(exc)
    return JSONResponse(error.to_dict(), status_code=error.status_code)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(exc)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    return error_response(exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    return error_response(exc)


# ── Register routers ──
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(api.router)
app.include_router(forms.router)
app.include_router(ws.router)


@app.get("/health")
async def health():
    return {"status": "ok", "app": settings.APP_NAME}


if settings.ENVIRONMENT != "production":
    from fastapi.responses import RedirectResponse

    from polly.routers.auth import set_auth_cookie

    @app.get("/mock-login/{user_id}")
    def mock_login(user_id: int):
        """Sign in as any user without OAuth; local development only."""
        resp = RedirectResponse(url="/dashboard", status_code=303)
        return set_auth_cookie(resp, user_id)
