from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api import health, tools, workflows
from .api.errors import settlement_error_handler
from .config import settings
from .core.errors import SettlementError
from .logging_config import setup_logging

setup_logging()

# Create FastAPI app
app = FastAPI(
    title="FX Settlement API",
    description="Signing and delivery backend for FX escrow trades",
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

app.add_exception_handler(SettlementError, settlement_error_handler)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(tools.router, tags=["Tools"])
app.include_router(workflows.router, tags=["Workflows"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "FX Settlement API",
        "version": __version__,
        "description": "Signing and delivery backend for FX escrow trades",
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fxsettle.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
