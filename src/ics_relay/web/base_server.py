"""
Base FastAPI server module.

Provides the pieces every relay deployment shares: a plaintext health
check, plaintext 404s for anything unrouted, per-request logging and the
uvicorn lifecycle.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

logger = logging.getLogger(__name__)

# Every RFC 9110 method plus PATCH; non-standard methods get the plaintext 404.
ALL_METHODS = [
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "OPTIONS",
    "TRACE",
    "CONNECT",
]


class BaseServer:
    """
    Generic FastAPI server with a health check and plaintext error pages.

    Unknown paths, and known paths hit with an unsupported method, both
    answer ``404 Not Found`` as ``text/plain``.
    """

    def __init__(
        self,
        title: str = "Server",
        description: str = "Simple HTTP service",
        version: str = "1.0.0",
    ):
        """
        Initialize the base server.

        Args:
            title: Application title
            description: Application description
            version: Application version
        """
        self.app = FastAPI(
            title=title,
            description=description,
            version=version,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )
        self.running = False

        self._setup_request_logging()
        self._setup_error_handlers()
        self._setup_default_routes()

    def _setup_request_logging(self):
        """Log every inbound request before it is dispatched."""

        @self.app.middleware("http")
        async def log_request(request: Request, call_next):
            logger.info("%s %s", request.method, request.url.path)
            return await call_next(request)

    def _setup_error_handlers(self):
        """Replace the framework's JSON error bodies with plaintext."""

        @self.app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(
            request: Request, exc: StarletteHTTPException
        ):
            if exc.status_code in (404, 405):
                return PlainTextResponse("Not Found", status_code=404)
            return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    def _setup_default_routes(self):
        """Setup the health route."""

        @self.app.api_route("/health", methods=ALL_METHODS)
        async def health_check():
            """Health check endpoint."""
            return PlainTextResponse("OK")

    def start(self, host: str = "0.0.0.0", port: int = 8000, **kwargs):
        """
        Start server synchronously.

        Args:
            host: Host to bind to
            port: Port to bind to
            **kwargs: Additional uvicorn configuration
        """
        self.running = True
        logger.info("Starting server on %s:%d", host, port)
        try:
            uvicorn.run(self.app, host=host, port=port, log_level="info", **kwargs)
        finally:
            self.running = False

    def is_running(self) -> bool:
        """Check if server is running."""
        return self.running
