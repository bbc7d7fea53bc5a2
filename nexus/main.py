from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import health, operations, sessions
from .api.deps import get_session_manager
from .config import settings
from .logging_config import setup_logging


@asynccontextmanager
async def lifespan(_: FastAPI):
    setup_logging()
    yield
    get_session_manager().disconnect_all()


# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Nexus Orchestrator API",
    description="Unified cross-chain balances, allowances, intents and swaps",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(sessions.router, tags=["Sessions"])
app.include_router(operations.router, tags=["Operations"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Nexus Orchestrator API",
        "version": __version__,
        "description": "Unified cross-chain balances, allowances, intents and swaps",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "nexus.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
