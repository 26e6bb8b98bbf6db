"""Gemini Gateway — FastAPI Application.

This module is the single entry point for the web application.  It defines
the application factory, all routes, the exception handlers that turn
failures into structured JSON, and the ``main()`` CLI function that launches
the uvicorn server.

Architecture
------------
The gateway is a stateless pass-through:

- **Configuration** is read once at startup from environment variables
  (:mod:`gemini_gateway.core.config`) and never modified afterwards.
- **Generation** goes through one shared
  :class:`~gemini_gateway.core.generation.GenerationClient`, built in the
  lifespan handler and injected into the orchestrator.
- **Uploads** live in a :class:`~gemini_gateway.core.temp_store.TempFileStore`
  only for the duration of their request.

Endpoints
---------
========  ==================  ==========================================
Method    Path                Purpose
========  ==================  ==========================================
GET       ``/``               Plain-text liveness string
GET       ``/test-gemini``    Round-trip a fixed prompt through Gemini
POST      ``/analyze-image``  Describe an uploaded image
========  ==================  ==========================================

Usage
-----
CLI (installed entry point)::

    gemini-gateway

Direct invocation::

    python -m gemini_gateway.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gemini_gateway import __version__
from gemini_gateway.api.models import AnalyzeResponse, ErrorResponse, GeminiTestResponse
from gemini_gateway.api.orchestrator import ImageAnalysisOrchestrator
from gemini_gateway.core.config import GatewayConfig, config
from gemini_gateway.core.errors import GatewayError
from gemini_gateway.core.generation import GenerationClient
from gemini_gateway.core.temp_store import TempFileStore

logger = logging.getLogger(__name__)

LIVENESS_TEXT = "Gemini backend running"

# ---------------------------------------------------------------------------
# Application lifecycle: shared collaborators.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the shared store, generation client and orchestrator.

    The generation client is created here unless one was injected through
    :func:`create_app`.  All three objects are stored on ``app.state`` and
    treated as read-only by request handlers.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    cfg: GatewayConfig = app.state.config

    # --- Startup -----------------------------------------------------------
    store = TempFileStore(cfg.upload_dir, cfg.max_upload_bytes)
    if app.state.generation_client is None:
        app.state.generation_client = GenerationClient.from_config(cfg)

    app.state.store = store
    app.state.orchestrator = ImageAnalysisOrchestrator(
        cfg,
        store,
        app.state.generation_client,
    )
    logger.info(
        "Gateway ready (model=%s, max upload=%d MB, upload dir=%s).",
        cfg.model_name,
        cfg.max_upload_mb,
        cfg.upload_dir,
    )

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    logger.info("Gateway shutting down.")


# ---------------------------------------------------------------------------
# Exception handlers: every failure becomes a structured JSON body.
# ---------------------------------------------------------------------------


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Convert a :class:`GatewayError` into its status and error body.

    ``details`` is only included when ``expose_error_details`` is enabled.
    """
    cfg: GatewayConfig = request.app.state.config
    body = ErrorResponse(
        error=exc.message,
        code=exc.code,
        details=exc.details if cfg.expose_error_details else None,
    )
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", exc.code, request.url.path, exc.details or exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render framework HTTP errors (malformed multipart, 404, 405) as JSON."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the failure, return a generic 500."""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="Internal server error").model_dump(exclude_none=True),
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def index() -> PlainTextResponse:
    """Return the plain-text liveness string."""
    return PlainTextResponse(LIVENESS_TEXT)


@router.get(
    "/test-gemini",
    response_model=GeminiTestResponse,
    response_model_exclude_none=True,
    responses={500: {"model": GeminiTestResponse}},
)
async def test_gemini(request: Request):
    """Send the configured test prompt to Gemini and relay the reply.

    Returns:
        ``{"success": true, "output": ...}`` on success, or a 500 response
        with ``{"success": false, "error": ...}`` if the upstream call fails.
    """
    cfg: GatewayConfig = request.app.state.config
    client: GenerationClient = request.app.state.generation_client

    result = await client.generate_text(cfg.model_name, cfg.test_prompt)
    if result.success:
        return GeminiTestResponse(success=True, output=result.output)

    body = GeminiTestResponse(
        success=False,
        error="Gemini request failed",
        details=result.error if cfg.expose_error_details else None,
    )
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


@router.post(
    "/analyze-image",
    response_model=AnalyzeResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def analyze_image(request: Request) -> AnalyzeResponse:
    """Describe an uploaded image.

    Expects a multipart form with an ``image`` file field and an optional
    ``prompt`` text field.  The form is parsed by the upload acceptor rather
    than by FastAPI parameter binding so that size checks run before the
    file is stored.

    Returns:
        :class:`AnalyzeResponse` with the generated text.

    Raises:
        GatewayError: Converted by :func:`gateway_error_handler` — 400 for a
            missing or rejected upload, 500 for generation or storage
            failures.
    """
    orchestrator: ImageAnalysisOrchestrator = request.app.state.orchestrator
    output = await orchestrator.analyze(request)
    return AnalyzeResponse(output=output)


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    app_config: GatewayConfig | None = None,
    generation_client: GenerationClient | None = None,
) -> FastAPI:
    """Build a configured FastAPI application.

    Args:
        app_config: Configuration to use.  Defaults to the global
            :data:`~gemini_gateway.core.config.config` instance.
        generation_client: Pre-built generation client.  When omitted, the
            lifespan handler builds one from the configured API key.

    Returns:
        The FastAPI application.
    """
    cfg = app_config or config

    app = FastAPI(
        title="Gemini Gateway",
        description="HTTP gateway relaying prompts and images to Google Gemini.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = cfg
    app.state.generation_client = generation_client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)
    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from
    :data:`~gemini_gateway.core.config.config` (``GATEWAY_SERVER_HOST``,
    ``PORT`` / ``GATEWAY_SERVER_PORT``, ``GATEWAY_LOG_LEVEL``).  Defaults to
    ``0.0.0.0:3000``.

    This function is registered as the ``gemini-gateway`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "gemini_gateway.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
