# app/main.py

"""
main.py: Forge Control Plane

Purpose:
    FastAPI entrypoint for the deployment platform's control plane.
    Configures logging, CORS, rate limiting and the error envelope, then loads all routers.

What It Does:
    - Initializes FastAPI app.
    - Applies the global SlowAPI limit per client IP (HEAD /api/health is exempt).
    - Renders every error as {success: false, error: {code, message, details?}, meta}.
    - Registers auth, deployment, subdomain and health routers.

Used By:
    - uvicorn app.main:app --reload (development)
    - Production deployments behind the platform's load balancer.

--------------------------------------------------------------------
"""

from app.core.logging import init_logging
init_logging()

import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.errors import ForgeError
from app.core.limiter import limiter
from app.core.responses import error_response

# API / AUTH (app/api/auth)
from app.api.auth.signup import router as signup_router
from app.api.auth.regenerate_key import router as regenerate_key_router
from app.api.auth.profile import router as profile_router

# ROUTES / AUTH (app/routes/auth)
from app.routes.auth.login import router as login_router

# DEPLOYMENTS, SUBDOMAINS & HEALTH
from app.routes.deployments import router as deployments_router
from app.routes.subdomains import router as subdomains_router
from app.routes.health import router as health_router

logger = logging.getLogger(__name__)

# === FastAPI App Initialization ===
app = FastAPI(
    title="Forge Control Plane",
    description="Accounts, deployments and DNS provisioning for the Forge deployment platform.",
    version=settings.API_VERSION,
)

# === Rate Limiting Middleware ===
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Error Handlers ===

@app.exception_handler(ForgeError)
async def forge_error_handler(request: Request, exc: ForgeError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: [{exc.code}] {exc.message}")
    return error_response(exc.code, exc.message, exc.status_code, exc.details)

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    """Handles requests exceeding the global rate limit."""
    return error_response(
        "RATE_LIMIT_EXCEEDED",
        "Too many requests. Please slow down.",
        429,
        {"limit": str(exc.detail)},
    )

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return error_response(
        "VALIDATION_ERROR",
        "Request validation failed",
        400,
        {"errors": exc.errors()},
    )

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response("HTTP_ERROR", str(exc.detail), exc.status_code)

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500)

# === Include Routers (Prefix & Tag for Each) ===

# Auth (accounts and API keys)
app.include_router(signup_router,           prefix="/api/auth",        tags=["auth"])
app.include_router(login_router,            prefix="/api/auth",        tags=["auth"])
app.include_router(regenerate_key_router,   prefix="/api/auth",        tags=["auth"])
app.include_router(profile_router,          prefix="/api/auth",        tags=["auth"])

# Deployments and their subdomains
app.include_router(deployments_router,      prefix="/api/deployments", tags=["deployments"])
app.include_router(subdomains_router,       prefix="/api/subdomains",  tags=["subdomains"])

# Health check
app.include_router(health_router,           prefix="/api",             tags=["health"])

"""
--------------------------------------------------------------------
Deployment:
    - Run: uvicorn app.main:app --reload  (dev)
    - Run: uvicorn app.main:app --host 0.0.0.0 --port 8000  (prod)

Notes:
    - Services are wired in app/deps/services.py; tests swap them through
      app.dependency_overrides.
    - Auth endpoints carry their own stricter per-IP limits on top of the global one.

--------------------------------------------------------------------
"""
