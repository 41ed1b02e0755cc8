"""
FastAPI application entry point.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging_config import setup_logging, get_main_logger
from app.core.exceptions import register_exception_handlers
from app.core.circuit_breaker import get_all_stats

# Initialize logging before anything else
setup_logging()
logger = get_main_logger()
from app.api.v1.companies import router as companies_router
from app.api.v1.market import router as market_router
from app.api.v1.vietcap import router as vietcap_router
from app.api.v1.filters import router as filters_router
from app.api.v1.posts import router as posts_router
from app.api.v1.tv import router as tv_router
from app.services.market_data import market_data_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.google_sheets_api_key:
        logger.warning("GOOGLE_SHEETS_API_KEY is not set; screener endpoints will fail and market behaviour uses fallback data")
    yield
    await market_data_service.close()

# Create FastAPI app
app = FastAPI(
    title="IQX Stock Express API",
    description="Vietnam stock market data aggregated from Simplize, VietCap, 24hmoney, CafeF and Google Sheets",
    version="1.0.0",
    lifespan=lifespan
)

# Register global exception handlers
register_exception_handlers(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(companies_router, prefix=settings.api_v1_prefix)
app.include_router(market_router, prefix=settings.api_v1_prefix)
app.include_router(vietcap_router, prefix=settings.api_v1_prefix)
app.include_router(filters_router, prefix=settings.api_v1_prefix)
app.include_router(posts_router, prefix=settings.api_v1_prefix)
app.include_router(tv_router, prefix=settings.api_v1_prefix)


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "IQX Stock Express API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint with the state of every upstream circuit breaker."""
    return {"status": "healthy", "providers": get_all_stats()}
