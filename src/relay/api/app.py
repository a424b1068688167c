"""FastAPI application for the streaming relay."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from relay import __version__
from relay.api.streaming_routes import router as streaming_router
from relay.config import settings
from relay.streaming.ids import new_request_id, request_id_var
from relay.tokens import default_estimator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan events."""
    # Startup
    logger.info("Starting Streaming Relay API...")
    await default_estimator.warm_up()
    logger.info(f"Tokenizer {default_estimator.encoding_name} ready")
    yield
    # Shutdown
    logger.info("Shutting down Streaming Relay API...")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Streaming Relay",
        description="Event-stream and WebSocket delivery for LLM completions",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request id middleware
    @app.middleware("http")
    async def bind_request_id(request: Request, call_next):
        request_id = request.headers.get(settings.request_id_header) or new_request_id()
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[settings.request_id_header] = request_id
        return response

    app.include_router(streaming_router, prefix="/v1", tags=["streaming"])

    # Health check
    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "version": __version__}

    @app.get("/")
    async def root():
        return {
            "name": "Streaming Relay",
            "version": __version__,
            "docs": "/docs",
            "openapi": "/openapi.json",
        }

    return app


# Create app instance
app = create_app()
