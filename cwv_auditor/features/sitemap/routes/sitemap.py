from fastapi import APIRouter, Depends, Query, status

from cwv_auditor.features.sitemap.schemas.sitemap import SitemapResponse
from cwv_auditor.features.sitemap.services.sitemap_service import (
    SitemapService,
    get_sitemap_service,
)
from cwv_auditor.platform.response import api_response
from cwv_auditor.platform.utils.url_validator import sitemap_location

router = APIRouter(prefix="/sitemap", tags=["sitemap"])


@router.get("", summary="Discover and categorize a site's pages")
async def get_sitemap(
    domain: str = Query(..., description="Bare domain or full sitemap URL"),
    service: SitemapService = Depends(get_sitemap_service),
):
    pages = await service.discover_pages(domain)

    return api_response(
        data=SitemapResponse(
            domain=domain,
            sitemap_url=sitemap_location(domain),
            urls=pages,
            count=len(pages),
        ),
        message=f"Found {len(pages)} pages",
        status_code=status.HTTP_200_OK,
    )
