"""HTTP surface for the quote service.

Endpoints:
    GET /           service description and endpoint list
    GET /health     liveness probe
    GET /quotes     quotes per source        (?currency=ARS|BRL)
    GET /average    average buy/sell price   (?currency=ARS|BRL)
    GET /slippage   per-source slippage      (?currency=ARS|BRL)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from time import perf_counter
from typing import TYPE_CHECKING, AsyncGenerator, Awaitable, Callable

from fastapi import FastAPI, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from .fetchers import BaseFetcher
from .QueryService import QueryResult, QueryService, UnsupportedCurrencyError

if TYPE_CHECKING:
    from .Quote import CurrencyGroup
    from .RefreshTimer import RefreshTimer

logger = logging.getLogger(__name__)

CURRENCY_HELP = "Currency to quote: ARS (default) or BRL"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Strict-Transport-Security": "max-age=15552000; includeSubDomains",
}


def _respond(result: QueryResult) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.body)


def create_app(service: QueryService, refresh_timer: RefreshTimer | None = None) -> FastAPI:
    """Build the FastAPI application around a query service.

    The refresh timer, if any, starts with the application and is cancelled at
    shutdown together with the shared HTTP client. Every response is open to
    any origin, carries SECURITY_HEADERS and is gzip-compressed when large.

    :param service: Query service answering the quote endpoints.
    :param refresh_timer: Optional background refresher.
    :returns: Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI) -> AsyncGenerator[None, None]:
        if refresh_timer is not None:
            refresh_timer.start()
        yield
        if refresh_timer is not None:
            refresh_timer.stop()
        await BaseFetcher.close_shared_client()

    app = FastAPI(title="Currency Exchange API", lifespan=lifespan)
    app.state.service = service

    @app.exception_handler(UnsupportedCurrencyError)
    async def unsupported_currency(request: Request, exc: UnsupportedCurrencyError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc), "currency": exc.currency})

    @app.middleware("http")
    async def handle_errors(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        start_time = perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"Error handling {request.method} {request.url.path}")
            response = JSONResponse(status_code=500, content={"error": "Internal server error"})
        response.headers.update(SECURITY_HEADERS)
        process_time = perf_counter() - start_time
        logger.debug(f"{request.method} {request.url}: {response.status_code} in {process_time:.4f}s")
        return response

    # Registered last so they wrap the error handler
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    def resolve(currency: str | None) -> CurrencyGroup:
        return service.normalize_currency(currency)

    @app.get("/")
    async def root() -> dict:
        return {
            "message": "Currency Exchange API",
            "endpoints": {
                "quotes": "GET /quotes?currency=ARS|BRL",
                "average": "GET /average?currency=ARS|BRL",
                "slippage": "GET /slippage?currency=ARS|BRL",
                "health": "GET /health",
            },
        }

    @app.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    @app.get("/quotes")
    async def quotes(currency: str | None = Query(None, description=CURRENCY_HELP)) -> JSONResponse:
        return _respond(await service.get_quotes(resolve(currency)))

    @app.get("/average")
    async def average(currency: str | None = Query(None, description=CURRENCY_HELP)) -> JSONResponse:
        return _respond(await service.get_average(resolve(currency)))

    @app.get("/slippage")
    async def slippage(currency: str | None = Query(None, description=CURRENCY_HELP)) -> JSONResponse:
        return _respond(await service.get_slippage(resolve(currency)))

    return app
