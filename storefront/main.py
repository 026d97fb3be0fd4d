from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from storefront.config import Settings
from storefront.errors import PersistenceError
from storefront.routers import preorder, stock
from storefront.services.container import build_services
from storefront.services.store import DocumentStore
from storefront.utils.logging import add_context, clear_context, configure_logging

logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)

    app = FastAPI(
        title="Storefront Stock API",
        description="API for per-size stock and customer preorders.",
        version="1.0.0"
    )
    app.state.settings = settings
    app.state.services = build_services(settings, store)

    app.include_router(stock.router)
    app.include_router(preorder.router)

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        clear_context()
        add_context(method=request.method, path=request.url.path)
        return await call_next(request)

    @app.exception_handler(PersistenceError)
    async def handle_persistence_error(request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("Store unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": "Storage backend unavailable.", "error": str(exc)},
        )

    @app.get("/health", tags=["Health Check"])
    def health_check():
        """
        Check if the API is running.
        """
        return {"status": "ok"}

    return app
