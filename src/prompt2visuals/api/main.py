"""Prompt2Visuals - FastAPI Application.

This module is the single entry point for the web application.  It defines
the FastAPI ``app`` instance, all REST API routes, and the ``main()`` CLI
function that launches the uvicorn server.

Architecture
------------
Every route is a stateless request/response function:

- **Configuration** is loaded once into a frozen
  :class:`~prompt2visuals.core.config.Prompt2VisualsConfig`, stored on
  ``app.state`` by the lifespan and handed to routes via :func:`get_config`.
- **Outbound HTTP** goes through one shared :class:`httpx.AsyncClient`, also
  owned by the lifespan and injected via :func:`get_http_client`.
- **Provider access** is wrapped by the clients in
  :mod:`prompt2visuals.core.providers`.
- **Image processing** is done by :mod:`prompt2visuals.core.transform` in
  a worker thread so the event loop is never blocked by Pillow.

Endpoints
---------
========  ==================  ==========================================
Method    Path                Purpose
========  ==================  ==========================================
GET       ``/config``         Version, provider status, search defaults
GET       ``/search``         Stock search + AI generation for a query
GET       ``/download``       Resolve a stock resource to a download link
POST      ``/ai-generate``    Generate images for a prompt
POST      ``/transform``      Crop / resize / re-encode an image
POST      ``/export``         Transform a selected result for download
========  ==================  ==========================================

Usage
-----
CLI (installed entry point)::

    prompt2visuals

Direct invocation::

    python -m prompt2visuals.api.main
"""

from __future__ import annotations

import logging
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Literal

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from prompt2visuals import __version__
from prompt2visuals.api.models import (
    EXPORT_SIZES,
    ConfigResponse,
    CropRect,
    ExportRequest,
    GeneratedImageItem,
    GenerateRequest,
    GenerateResponse,
    ProviderStatus,
    SearchResponse,
    SearchResultItem,
    TransformRequest,
)
from prompt2visuals.core.config import Prompt2VisualsConfig, config
from prompt2visuals.core.providers import (
    FreepikClient,
    OpenAIImageClient,
    ProviderError,
    clamp_generation_count,
    generation_size_for,
)
from prompt2visuals.core.search import aggregate_search
from prompt2visuals.core.transform import (
    CONTENT_TYPES,
    FILE_EXTENSIONS,
    TransformError,
    UnsupportedSourceError,
    load_source,
    transform_image,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Application lifecycle - configuration and HTTP client setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Stores the global configuration on ``app.state`` and opens the
        shared outbound HTTP client.

    On shutdown:
        Closes the HTTP client and its connection pool.
    """
    app.state.config = config
    app.state.http_client = httpx.AsyncClient()
    logger.info(
        "Prompt2Visuals started (stock=%s, generation=%s).",
        bool(config.freepik_api_key),
        bool(config.openai_api_key),
    )

    yield  # Application runs here.

    await app.state.http_client.aclose()
    logger.info("HTTP client closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Prompt2Visuals",
    description="Stock photo search, AI image generation and image export API.",
    version=__version__,
    lifespan=lifespan,
)

# The browser client may be served from a different origin during
# development.  Restrict ``allow_origins`` in production.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and parameters as HTTP 400."""
    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        detail = "Invalid JSON body"
    else:
        parts = []
        for err in errors:
            location = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query"))
            parts.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
        detail = "Invalid request: " + "; ".join(parts)
    return JSONResponse(status_code=400, content={"detail": detail})


# ---------------------------------------------------------------------------
# Dependencies.
# ---------------------------------------------------------------------------


def get_config(request: Request) -> Prompt2VisualsConfig:
    """Return the configuration loaded at startup."""
    return request.app.state.config


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Return the shared outbound HTTP client."""
    return request.app.state.http_client


def _freepik_client(cfg: Prompt2VisualsConfig, http: httpx.AsyncClient) -> FreepikClient:
    return FreepikClient(http, api_key=cfg.freepik_api_key or "", base_url=cfg.freepik_api_url)


def _openai_client(cfg: Prompt2VisualsConfig, http: httpx.AsyncClient) -> OpenAIImageClient:
    return OpenAIImageClient(
        http,
        api_key=cfg.openai_api_key or "",
        base_url=cfg.openai_api_url,
        model=cfg.openai_image_model,
    )


# ---------------------------------------------------------------------------
# Transform helper shared by /transform and /export.
# ---------------------------------------------------------------------------


async def _run_transform(
    source: str,
    *,
    width: int,
    height: int,
    crop: CropRect | None,
    fit: str,
    output_format: str,
    http: httpx.AsyncClient,
) -> bytes:
    """Load ``source`` and run the transform pipeline on it.

    Raises:
        HTTPException: 400 for an unsupported source, 500 for any
            processing failure.
    """
    try:
        data = await load_source(source, http)
        return await run_in_threadpool(
            transform_image,
            data,
            width=width,
            height=height,
            crop=crop.as_tuple() if crop else None,
            fit=fit,
            output_format=output_format,
        )
    except UnsupportedSourceError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except TransformError as exc:
        logger.error("Transform error: %s", exc)
        raise HTTPException(status_code=500, detail="Transform failed") from exc


def export_filename(item_id: str, output_format: str) -> str:
    """Build a header-safe attachment filename from a client-supplied id.

    Runs of characters outside ``[A-Za-z0-9._-]`` collapse to ``_``; an id
    with nothing usable left becomes ``image``.
    """
    stem = re.sub(r"[^A-Za-z0-9._-]+", "_", item_id).strip("._") or "image"
    return f"{stem}.{FILE_EXTENSIONS[output_format]}"


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/config", response_model=ConfigResponse)
async def get_app_config(cfg: Prompt2VisualsConfig = Depends(get_config)) -> ConfigResponse:
    """Return the version, provider availability and search defaults.

    Only reports *whether* each provider credential is configured; the
    credentials themselves are never returned.
    """
    return ConfigResponse(
        version=__version__,
        providers=ProviderStatus(
            stock=bool(cfg.freepik_api_key),
            generation=bool(cfg.openai_api_key),
        ),
        safe_search=cfg.safe_search,
        license_filter=cfg.license_filter,
        max_results_per_source=cfg.max_results_per_source,
        aspect_presets=EXPORT_SIZES,
    )


@app.get("/search", response_model=SearchResponse)
async def search(
    q: str | None = None,
    safe: bool | None = Query(default=None, description="Override the safe-search default."),
    license_filter: Literal["free", "all"] | None = Query(
        default=None,
        alias="license",
        description="Override the license filter default.",
    ),
    cfg: Prompt2VisualsConfig = Depends(get_config),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> SearchResponse:
    """Search stock photos and generate AI images for the same query.

    The ``safe`` and ``license`` query parameters override the configured
    defaults for this request only.  Each provider branch degrades to an
    empty list on failure; the response is 200 as long as the request
    itself was valid and both credentials are configured.

    Raises:
        HTTPException: 400 for a missing query, 500 if either provider
            credential is missing.
    """
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail="Missing search query")
    if not cfg.has_search_credentials:
        raise HTTPException(status_code=500, detail="API keys are not configured on the server")

    outcome = await aggregate_search(
        q,
        stock=_freepik_client(cfg, http),
        generator=_openai_client(cfg, http),
        max_results=cfg.max_results_per_source,
        safe_search=cfg.safe_search if safe is None else safe,
        license_filter=license_filter or cfg.license_filter,
    )
    return SearchResponse(
        search_results=[SearchResultItem.from_resource(r) for r in outcome.stock],
        generated_results=[GeneratedImageItem.from_datum(d) for d in outcome.generated],
    )


@app.get("/download")
async def download(
    resource_id: str | None = Query(default=None, alias="id"),
    cfg: Prompt2VisualsConfig = Depends(get_config),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Resolve a stock resource id to its signed download payload.

    The provider's JSON body is passed through unchanged.

    Raises:
        HTTPException: 400 for a missing id, 500 for a missing credential or
            a failed provider call.
    """
    if not resource_id:
        raise HTTPException(status_code=400, detail="Missing id")
    if not cfg.freepik_api_key:
        raise HTTPException(status_code=500, detail="Freepik API key not configured")

    try:
        payload = await _freepik_client(cfg, http).resolve_download(resource_id)
    except ProviderError as exc:
        logger.error("Freepik download error: %s %s", exc, exc.detail)
        raise HTTPException(status_code=500, detail="Download failed") from exc
    return JSONResponse(content=payload)


@app.post("/ai-generate", response_model=GenerateResponse)
async def ai_generate(
    req: GenerateRequest,
    cfg: Prompt2VisualsConfig = Depends(get_config),
    http: httpx.AsyncClient = Depends(get_http_client),
) -> GenerateResponse:
    """Generate images for a prompt.

    ``aspect`` selects one of three fixed output sizes and ``n`` is clamped
    to ``1..10``.  At most ``n`` images are returned.

    Raises:
        HTTPException: 500 for a missing credential or a provider error,
            400 for a missing prompt.
    """
    if not cfg.openai_api_key:
        raise HTTPException(status_code=500, detail="OpenAI API key not configured")
    if not req.prompt.strip():
        raise HTTPException(status_code=400, detail="Missing prompt")

    n = clamp_generation_count(req.n, cfg.default_generate_count)
    try:
        images = await _openai_client(cfg, http).generate(
            req.prompt,
            n=n,
            size=generation_size_for(req.aspect),
        )
    except ProviderError as exc:
        logger.error("OpenAI generation error (status=%s): %s %s", exc.status, exc, exc.detail)
        raise HTTPException(status_code=500, detail="Image generation failed") from exc
    return GenerateResponse(images=[GeneratedImageItem.from_datum(d) for d in images])


@app.post("/transform")
async def transform(
    req: TransformRequest,
    http: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Crop, resize and re-encode an image.

    Returns the encoded bytes with a matching ``Content-Type``.

    Raises:
        HTTPException: 400 for missing fields or an unsupported source, 500
            for any processing failure.
    """
    if not req.image or req.width <= 0 or req.height <= 0:
        raise HTTPException(status_code=400, detail="Missing required fields")

    body = await _run_transform(
        req.image,
        width=req.width,
        height=req.height,
        crop=req.crop,
        fit=req.fit,
        output_format=req.output_format,
        http=http,
    )
    return Response(content=body, media_type=CONTENT_TYPES[req.output_format])


@app.post("/export")
async def export(
    req: ExportRequest,
    http: httpx.AsyncClient = Depends(get_http_client),
) -> Response:
    """Transform a selected search result into a downloadable file.

    Stock selections are read from their thumbnail URL; generated
    selections from their inline base64 data.  The output size comes from
    the aspect preset.

    Raises:
        HTTPException: 400 for an unusable source, 500 for any processing
            failure.
    """
    width, height = req.target_size
    body = await _run_transform(
        req.selection.image_source,
        width=width,
        height=height,
        crop=req.crop,
        fit=req.fit,
        output_format=req.output_format,
        http=http,
    )
    filename = export_filename(req.selection.item.id, req.output_format)
    return Response(
        content=body,
        media_type=CONTENT_TYPES[req.output_format],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~prompt2visuals.core.config.config`
    (``PROMPT2VISUALS_SERVER_HOST`` / ``PROMPT2VISUALS_SERVER_PORT``).
    Registered as the ``prompt2visuals`` console script in ``pyproject.toml``.
    """
    import uvicorn

    uvicorn.run(
        "prompt2visuals.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
