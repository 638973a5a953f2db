"""FastAPI application definition."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .deps import lifespan
from .routes import api_router


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Build the FastAPI application.

    Args:
        use_lifespan: Wire the pipeline from settings on startup. Tests
            pass False and populate app.state themselves.
    """
    application = FastAPI(
        title="insightguard",
        description="Guarded question answering over member and location data",
        version="0.1.0",
        lifespan=lifespan if use_lifespan else None,
        redirect_slashes=False,  # Prevent 307 redirects that lose auth headers
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.include_router(api_router, prefix="/api/v1")

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return application


app = create_app()
