"""
OpsRelay - Main FastAPI application.

Realtime signaling server for the operations staff chat: connections, room
subscriptions, typing indicators, presence and heartbeat.
"""
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

from opsrelay.core.config import settings
from opsrelay.core.api import health
from opsrelay.core.memory.chat_store import SqlChatStore
from opsrelay.core.security.tokens import TokenVerifier
from opsrelay.core.websocket.context import SignalingContext
from opsrelay.core.websocket.routes import websocket_endpoint

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    signaling: Optional[SignalingContext] = None,
    init_database: bool = True,
) -> FastAPI:
    """
    Build the FastAPI app around a signaling context.

    Args:
        signaling: Context to serve; defaults to one backed by the SQL chat store
        init_database: Create missing tables on startup
    """
    if signaling is None:
        signaling = SignalingContext(store=SqlChatStore(), verifier=TokenVerifier())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown."""
        if init_database:
            from opsrelay.core.memory.db import init_db
            logger.info("Initializing database...")
            init_db()
        await app.state.signaling.start()
        logger.info(
            "OpsRelay signaling on %s:%s, WebSocket path %s",
            settings.api_host,
            settings.api_port,
            app.state.signaling.settings.ws_path,
        )
        yield
        await app.state.signaling.stop()
        logger.info("OpsRelay shutting down")

    app = FastAPI(
        title="OpsRelay",
        description="Realtime signaling for the operations chat",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.signaling = signaling

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log HTTP requests. Health checks at DEBUG to reduce log spam."""
        path = request.url.path
        level = logger.debug if path.startswith("/health") else logger.info
        level("%s %s", request.method, path)
        response = await call_next(request)
        level("%s %s - %s", request.method, path, response.status_code)
        return response

    # Error handlers
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.errors()},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error": str(exc) if settings.debug else None,
            },
        )

    # WebSocket for room subscriptions, typing, presence and heartbeat
    app.add_api_websocket_route(signaling.settings.ws_path, websocket_endpoint)

    app.include_router(health.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "opsrelay.core.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
