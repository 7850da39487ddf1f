"""Main FastAPI application."""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from trip_importer.config import settings
from trip_importer.database import init_db
from trip_importer.routers import imports
from trip_importer.services.redis_client import redis_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.environment == "development":
        await init_db()
    yield


# Create FastAPI app
app = FastAPI(
    title="Trip Importer API",
    description="Turns shared travel content into saved, enriched trip places",
    version="1.0.0",
    docs_url="/docs" if settings.environment == "development" else None,
    redoc_url="/redoc" if settings.environment == "development" else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.frontend_url,
        "http://localhost:19000",
        "http://localhost:8081",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(imports.router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to Trip Importer API",
        "version": "1.0.0",
        "docs": "/docs" if settings.environment == "development" else "disabled",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    health = {"status": "healthy"}
    if settings.enrichment_cache_enabled:
        health["cache"] = "connected" if await redis_client.ping() else "unavailable"
    return health


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "trip_importer.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
