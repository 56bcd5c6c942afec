"""
KodBank API Application Factory
"""

import re
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import get_config
from ..errors import BankingError
from ..logging_config import (
    bind_request_id, get_logger, log_action, reset_request_id, setup_logging
)
from .auth import router as auth_router
from .banking import router as banking_router
from .dependencies import BankingSystem


logger = get_logger("kodbank.api")

REQUEST_ID_HEADER = "X-Request-ID"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "; ".join(parts) or "Invalid request"


def _request_id(request: Request) -> str:
    """Client-supplied request id when well formed, otherwise a fresh one"""
    supplied = request.headers.get(REQUEST_ID_HEADER, "")
    if _REQUEST_ID_PATTERN.match(supplied):
        return supplied
    return uuid.uuid4().hex


def create_app(system: Optional[BankingSystem] = None) -> FastAPI:
    """
    Create and configure the FastAPI application

    Args:
        system: Pre-built banking system (tests pass one over in-memory
            storage). When omitted, one is built from configuration at startup
            and closed at shutdown.
    """
    config = system.config if system else get_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.banking_system is None
        if owned:
            app.state.banking_system = BankingSystem(config)
        log_action(logger, "info", "KodBank API started", action="startup")
        try:
            yield
        finally:
            if owned:
                app.state.banking_system.close()
                app.state.banking_system = None
            log_action(logger, "info", "KodBank API stopped", action="shutdown")

    app = FastAPI(
        title="KodBank API",
        description="Online banking: accounts, sessions, deposits, withdrawals and transfers",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.banking_system = system

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        request_id = _request_id(request)
        token = bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    @app.exception_handler(BankingError)
    async def banking_error_handler(request: Request, exc: BankingError):
        if exc.status_code >= 500:
            logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc}", exc_info=exc)
        headers = {"Retry-After": "1"} if exc.retryable else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": _validation_message(exc), "kind": "ValidationError"}
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "kind": "StorageError"}
        )

    app.include_router(auth_router, tags=["Auth"])
    app.include_router(banking_router, tags=["Banking"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "kodbank_api",
            "version": __version__
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "KodBank API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "register": "/register",
                "login": "/login",
                "logout": "/logout",
                "profile": "/profile",
                "balance": "/balance",
                "deposit": "/deposit",
                "withdraw": "/withdraw",
                "transfer": "/transfer",
                "transactions": "/transactions",
            }
        }

    return app


def run_server(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False):
    """Run the API with uvicorn"""
    config = get_config()
    setup_logging(config.log_level, config.log_format)
    uvicorn.run(
        "kodbank.api:create_app",
        factory=True,
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )
