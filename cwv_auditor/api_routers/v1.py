from fastapi import APIRouter

from cwv_auditor.features.admin.routes.auth import router as admin_router
from cwv_auditor.features.audits.routes.audits import router as audits_router
from cwv_auditor.features.health.routes.health import router as health_router
from cwv_auditor.features.reports.routes.reports import router as reports_router
from cwv_auditor.features.scan.routes.scan import router as scan_router
from cwv_auditor.features.scan.routes.sse import router as scan_events_router
from cwv_auditor.features.sitemap.routes.sitemap import router as sitemap_router
from cwv_auditor.features.vitals.routes.vitals import router as vitals_router

api_router = APIRouter()

api_router.include_router(health_router)
api_router.include_router(sitemap_router)
api_router.include_router(vitals_router)

# Scan feature routes
api_router.include_router(scan_router)
api_router.include_router(scan_events_router)

api_router.include_router(reports_router)
api_router.include_router(audits_router)
api_router.include_router(admin_router)
