"""
FastAPI application for the marketplace listing core.
"""

# Load environment variables from .env file
from dotenv import load_dotenv
load_dotenv()

from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from listings_core import __version__
from listings_core.config import AppSettings, get_app_settings
from listings_core.store import Repositories, Store, create_store
from .routers import dashboard, listings, views

logger = logging.getLogger(__name__)


def create_app(store: Optional[Store] = None, settings: Optional[AppSettings] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        store: Backing store; built from settings when omitted
        settings: Application settings; read from the environment when omitted
    """
    settings = settings or get_app_settings()
    store = store or create_store(settings.store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events"""
        logger.info("Starting listings API...")
        await store.connect()
        logger.info("Store initialized")

        yield

        logger.info("Shutting down listings API...")
        await store.close()

    app = FastAPI(
        title="Listings API",
        description="Marketplace listing lifecycle, browsing and dashboard",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.repos = Repositories(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": __version__,
        }

    app.include_router(listings.router, prefix="/api", tags=["listings"])
    app.include_router(views.router, prefix="/api", tags=["views"])
    app.include_router(dashboard.router, prefix="/api", tags=["dashboard"])
    return app


def main():
    """Run the API with uvicorn."""
    import uvicorn

    settings = get_app_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    uvicorn.run(create_app(settings=settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
