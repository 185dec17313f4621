"""
Account Ledger API Application Factory
"""

import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import uvicorn

from .. import __version__
from ..config import get_config
from ..logging_config import setup_logging, get_logger, log_action, correlation_id_var
from ..storage import StorageError
from ..transactions import InvalidAmountError
from .accounts import router as accounts_router
from .persons import router as persons_router


logger = get_logger("account_ledger.api")

CORRELATION_HEADER = "X-Correlation-ID"


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)
    
    app = FastAPI(
        title="Account Ledger API",
        description="Accounts with daily withdrawal limits and an append-only transaction log",
        version=__version__,
        docs_url=config.docs_url,
        redoc_url=None
    )
    
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        token = correlation_id_var.set(correlation_id)
        try:
            started = time.perf_counter()
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            log_action(
                logger, "info", f"{request.method} {request.url.path} {response.status_code}",
                action="http_request",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": duration_ms
                }
            )
        finally:
            correlation_id_var.reset(token)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
    
    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )
    
    @app.exception_handler(InvalidAmountError)
    async def invalid_amount_handler(request: Request, exc: InvalidAmountError):
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc)}
        )
    
    app.include_router(persons_router, prefix="/person", tags=["Persons"])
    app.include_router(accounts_router, prefix="/account", tags=["Accounts"])
    
    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "account_ledger_api",
            "version": __version__
        }
    
    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 3001, debug: bool = False):
    """Run the FastAPI server"""
    uvicorn.run(
        "account_ledger.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level=get_config().log_level.lower()
    )
