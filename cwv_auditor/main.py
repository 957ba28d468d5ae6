from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cwv_auditor.api_routers.v1 import api_router
from cwv_auditor.features.health.routes.health import router as health_router
from cwv_auditor.features.scan.services.scan_manager import get_scan_manager
from cwv_auditor.platform.config import settings
from cwv_auditor.platform.db.session import engine, init_models
from cwv_auditor.platform.exceptions import add_exception_handlers
from cwv_auditor.platform.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info(f"{settings.APP_NAME} started ({settings.ENVIRONMENT})")
    yield
    await get_scan_manager().shutdown()
    await engine.dispose()
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title="CWV Auditor API",
    description="Core Web Vitals audits for every page in a site's sitemap",
    version="1.0.0",
    debug=settings.DEBUG,
    lifespan=lifespan,
)


# Root endpoint for basic info
@app.get("/", tags=["Info"])
def root():
    return {
        "app_name": settings.APP_NAME,
        "description": "Discovers a site's pages and audits their Core Web Vitals.",
        "version": "1.0.0",
        "docs_url": "/docs",
        "api_base": "/api/v1",
    }


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(health_router)
app.include_router(api_router, prefix="/api/v1")
