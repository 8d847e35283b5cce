"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cmscrm.core.config import settings
from cmscrm.core.middleware import setup_middleware
from cmscrm.core.exceptions import CMSCRMError, AuthorizationError

from cmscrm.api.auth import router as auth_router
from cmscrm.api.users import router as users_router
from cmscrm.api.roles import router as roles_router
from cmscrm.api.pages import router as pages_router
from cmscrm.api.stats import router as stats_router
from cmscrm.api.admin import router as admin_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("cmscrm")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s", settings.APP_NAME)
    yield
    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="CMS CRM Admin API",
    description="Role-based admin panel backend",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

setup_middleware(app)


@app.exception_handler(CMSCRMError)
async def cmscrm_exception_handler(request: Request, exc: CMSCRMError):
    content = {"detail": exc.message}
    if isinstance(exc, AuthorizationError) and exc.required_permission:
        content["required_permission"] = exc.required_permission
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(pages_router, prefix="/api")
app.include_router(stats_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
