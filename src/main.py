"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.fm_common.database import engine
from src.fm_common.errors import AppError
from src.fm_common.response import app_error_response
from src.fm_fixture.api.router import router as fixture_router
from src.fm_gateway.middleware.request_log import RequestLogMiddleware
from src.fm_ledger.api.router import router as ledger_router
from src.fm_market.api.router import router as market_router
from src.fm_position.api.router import router as portfolio_router
from src.fm_settlement.api.router import router as settlement_router
from src.fm_wallet.api.router import router as wallet_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify the DB connection. Shutdown: dispose the pool."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = app_error_response(exc)
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        resp.request_id = request_id
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(market_router, prefix="/api/v1")
app.include_router(ledger_router, prefix="/api/v1")
app.include_router(settlement_router, prefix="/api/v1")
app.include_router(fixture_router, prefix="/api/v1")
app.include_router(portfolio_router, prefix="/api/v1")
app.include_router(wallet_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
