"""FastAPI application factory.

Lifespan
--------
On startup the app opens one shared ``httpx.AsyncClient`` (available to every
request as ``request.app.state.client``) configured from :data:`settings`.
On shutdown it closes the client.

Routers
-------
    /tools     — scraping operations exposed as named tools
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from markgrab import __version__
from markgrab.config import settings
from markgrab.scraper.fetcher import create_client

from markgrab.api.routers import tools as tools_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the shared HTTP client on startup and close it on shutdown."""
    client = create_client(
        timeout=settings.request_timeout, user_agent=settings.user_agent
    )
    app.state.client = client
    try:
        yield
    finally:
        await client.aclose()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="markgrab",
        description=(
            "Tool interface for markgrab. Scrapes documentation sites to "
            "Markdown, previews runs, extracts links, inspects llms.txt "
            "manifests and analyses page structure."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.include_router(tools_router.router, prefix="/tools", tags=["tools"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn markgrab.api.app:app --reload
app = create_app()
