"""FastAPI application for the company hierarchy graph.

Serves the positioned graph, the optimistic edit operations and the picker
flow over a configurable Tree Source.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from orgchart import __version__
from orgchart.core.config import Settings
from orgchart.graph.store import GraphStore
from orgchart.interaction.controller import InteractionController
from orgchart.interaction.picker import PickerFlow
from orgchart.source import create_tree_source
from orgchart.source.base import TreeSource
from orgchart.web.graph_router import router as graph_router

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str
    graph_state: str
    version: str = __version__


def create_app(
    settings: Settings | None = None,
    tree_source: TreeSource | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings. Defaults to Settings().
        tree_source: Optional pre-built Tree Source. Defaults to the
            provider named in ``settings.source``.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    logging.getLogger("orgchart").setLevel(settings.log_level.upper())

    if tree_source is None:
        tree_source = create_tree_source(settings.source)

    graph_store = GraphStore(tree_source, config=settings.layout)
    picker = PickerFlow(settings.picker)
    interaction = InteractionController(graph_store, picker)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await graph_store.close()

    app = FastAPI(
        title="Orgchart",
        description="Company hierarchy graph with optimistic editing",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # CORS for development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.graph_store = graph_store
    app.state.picker = picker
    app.state.interaction = interaction

    app.include_router(graph_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service="orgchart",
            graph_state=str(graph_store.state),
        )

    logger.info(
        "Created orgchart app (source=%s, environment=%s)",
        settings.source.provider, settings.environment,
    )
    return app
