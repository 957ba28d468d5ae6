from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict


class PageCategory(str, Enum):
    main = "main"
    cms = "cms"
    other = "other"


class DiscoveredPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    category: PageCategory


class SitemapResponse(BaseModel):
    domain: str
    sitemap_url: str
    urls: List[DiscoveredPage]
    count: int

    class Config:
        json_schema_extra = {
            "example": {
                "domain": "example.com",
                "sitemap_url": "https://example.com/sitemap.xml",
                "urls": [
                    {"url": "https://example.com/", "category": "main"},
                    {"url": "https://example.com/blog/launch", "category": "cms"},
                ],
                "count": 2,
            }
        }
