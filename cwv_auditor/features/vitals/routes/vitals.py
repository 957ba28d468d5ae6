from fastapi import APIRouter, Depends, Query, status

from cwv_auditor.features.vitals.services.pagespeed_client import (
    PageSpeedClient,
    get_pagespeed_client,
)
from cwv_auditor.platform.exceptions import InputError
from cwv_auditor.platform.logger import get_logger
from cwv_auditor.platform.response import api_response
from cwv_auditor.platform.utils.url_validator import is_absolute_http_url

logger = get_logger(__name__)

router = APIRouter(prefix="/vitals", tags=["vitals"])


@router.get("", summary="Core Web Vitals for a single page")
async def get_vitals(
    url: str = Query(..., description="Absolute http(s) URL of the page"),
    client: PageSpeedClient = Depends(get_pagespeed_client),
):
    """
    Runs one PageSpeed Insights request for `url`. A collaborator failure is
    reported as 502 by the FetchError handler.
    """
    if not is_absolute_http_url(url):
        raise InputError("URL is required and must be an absolute http(s) URL")

    metrics = await client.fetch_vitals(url)

    return api_response(
        data=metrics,
        message="Vitals fetched successfully",
        status_code=status.HTTP_200_OK,
    )
