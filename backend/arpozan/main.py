"""
Arpozan - Backend API
Storefront catalog, cart, orders and admin dashboard over Supabase,
with an in-memory fallback dataset when Supabase is unavailable
"""
import logging
import time
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables before settings are read
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from arpozan.api import admin, cart, orders, products
from arpozan.api.responses import error_response
from arpozan.backends.selector import get_backend_selector
from arpozan.core.config import settings
from arpozan.core.rate_limit import RateLimitMiddleware

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

ALLOWED_ORIGINS = settings.get_allowed_origins()

# Create FastAPI app
app = FastAPI(
    title=settings.API_TITLE,
    version=settings.API_VERSION,
    description=settings.API_DESCRIPTION,
    debug=settings.API_DEBUG,
)

app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining"],
)

# Include API routers
app.include_router(products.router, prefix="/api/v1/products", tags=["Products"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(cart.router, prefix="/api/v1/cart", tags=["Cart"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Auth and other gate failures in the same envelope shape as everything else"""
    return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return error_response(400, details or "Invalid request")


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(500, "Internal error")


@app.on_event("startup")
async def select_backend():
    status = get_backend_selector().status()
    logger.info(f"Data backend at startup: {status['backend']}")


@app.get("/")
async def root():
    """Root endpoint - API status"""
    return {
        "message": "Arpozan API",
        "status": "online",
        "version": settings.API_VERSION,
    }


@app.get("/health")
@app.get("/api/v1/health")
async def health():
    """Health check: which backend serves data and why"""
    start_time = time.time()
    backend = get_backend_selector().status()
    return {
        "status": "healthy" if backend["backend"] == "live" else "degraded",
        "service": "arpozan-api",
        "version": settings.API_VERSION,
        "backend": backend,
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
    }
