"""FastAPI application for Citegraph.

Serves the derived citation graph, per-node encodings and background job
progress to a renderer.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from citegraph.api.routes import router
from citegraph.config import settings
from citegraph.errors import CitegraphError
from citegraph.explorer import GraphExplorer

logger = logging.getLogger(__name__)


def create_app(explorer: GraphExplorer | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Manage application lifespan - startup and shutdown."""
        session = explorer
        if session is None:
            if not settings.project_id:
                raise RuntimeError("CITEGRAPH_PROJECT_ID is not set")
            session = GraphExplorer(settings.project_id)

        logger.info(f"Starting Citegraph for project {session.project_id}...")
        app.state.explorer = session

        try:
            await session.load()
        except CitegraphError as e:
            logger.warning(f"Initial graph load failed, serving without a graph: {e}")
        try:
            await session.load_semantic_clusters()
        except CitegraphError as e:
            logger.warning(f"Could not load saved semantic clusters: {e}")
        await session.resume_jobs()

        yield

        logger.info("Shutting down Citegraph...")
        await session.close()

    app = FastAPI(
        title="Citegraph",
        description="Citation graph derivation and background job orchestration",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "citegraph.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
