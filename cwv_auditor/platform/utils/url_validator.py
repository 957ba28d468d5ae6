from typing import Tuple
from urllib.parse import urlparse


def normalize_url(url: str) -> Tuple[str, bool]:

    url = url.strip()

    parsed = urlparse(url)

    if not parsed.scheme:
        normalized = f"https://{url}"
        return normalized, True

    return url, False


def validate_url(url: str) -> Tuple[bool, str, str]:
    if not url or not url.strip():
        return False, "", "URL cannot be empty"

    normalized_url, was_modified = normalize_url(url)

    try:
        parsed = urlparse(normalized_url)

        if parsed.scheme not in ['http', 'https']:
            return False, normalized_url, f"Invalid URL scheme: {parsed.scheme} (must be http or https)"

        if not parsed.netloc:
            return False, normalized_url, "Invalid URL format: missing domain"

        host = parsed.hostname or ""
        if " " in parsed.netloc or ("." not in host and host != "localhost"):
            return False, normalized_url, f"Invalid URL format: bad host '{parsed.netloc}'"

        return True, normalized_url, ""

    except ValueError as e:
        return False, normalized_url, f"URL parsing error: {str(e)}"


def is_absolute_http_url(url: str) -> bool:
    """Strict check used for worklist entries: no scheme inference."""
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def sitemap_location(domain: str) -> str:
    """
    Where to look for the sitemap of `domain`.

    A full http(s) URL is used as-is (the caller pointed at a specific
    sitemap); a bare host maps to https://<host>/sitemap.xml.
    """
    domain = domain.strip()
    if domain.startswith("http"):
        return domain
    return f"https://{domain.rstrip('/')}/sitemap.xml"
