import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .errors import INVALID_DOCUMENT, StorageError
from .observability import setup_logging
from .repositories import build_repository
from .routers import todos as todos_router
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "todos", "description": "Create, list, update and delete Todo items."},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the storage handle once for the process and close it on shutdown."""
    settings: Settings = app.state.settings
    setup_logging(settings.log_level, settings.log_format)
    app.state.repository = build_repository(settings)
    logger.info("Todo API started (backend=%s)", app.state.repository.name)
    try:
        yield
    finally:
        logger.info("Todo API shutting down")
        app.state.repository.close()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Report undecodable request bodies the same way the storage layer reports
    rejected documents: HTTP 500 with a StorageError body.

    Response format:
        {
            "name": "StorageError",
            "code": "INVALID_DOCUMENT",
            "message": "Request body does not describe a valid Todo document",
            "meta": {"errors": [... pydantic error details ...]}
        }
    """
    logger.warning("Rejected body: %s", exc.errors(), extra={"path": request.url.path})
    error = StorageError(
        code=INVALID_DOCUMENT,
        message="Request body does not describe a valid Todo document",
        meta={"errors": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error.to_response(),
    )


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Routes are registered before the static frontend is mounted at '/', so the
    API paths take precedence over files in STATIC_DIR.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Todo API",
        description="Todo list backend with four CRUD endpoints over a document store.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # PUBLIC_INTERFACE
    @app.get("/health", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health and the configured backend.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(todos_router.router)

    if os.path.isdir(settings.static_dir):
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


app = create_app()
