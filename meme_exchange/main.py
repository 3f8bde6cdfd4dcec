"""Main FastAPI application."""
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from meme_exchange.api.routes import auth, coins, trading
from meme_exchange.core.database import init_db
from meme_exchange.core.config import get_settings
from meme_exchange.core.exceptions import ExchangeError
from meme_exchange.core.logging_config import setup_logging
from meme_exchange.services.scheduler import snapshot_scheduler

# Configure logging
setup_logging()
logger = logging.getLogger(__name__)

settings = get_settings()

# Create FastAPI app
app = FastAPI(
    title="Meme Coin Exchange",
    description="Bonding-curve exchange for user-created meme coins",
    version="0.1.0",
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
    openapi_url="/openapi.json" if settings.enable_docs else None
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(auth.router)
app.include_router(coins.router)
app.include_router(trading.router)


@app.exception_handler(ExchangeError)
async def exchange_error_handler(request: Request, exc: ExchangeError):
    """Return exchange errors as a single human-readable reason."""
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.kind}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "kind": exc.kind}
    )


@app.on_event("startup")
async def startup_event():
    """Initialize database and start scheduler on startup."""
    logger.info("Starting application...")
    init_db()
    snapshot_scheduler.start()
    logger.info("Application started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """Stop scheduler on shutdown."""
    logger.info("Shutting down application...")
    snapshot_scheduler.stop()
    logger.info("Application stopped")


@app.get("/api")
async def api_root():
    """API root endpoint."""
    return {
        "message": "Meme Coin Exchange API",
        "version": "0.1.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
