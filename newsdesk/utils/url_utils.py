"""Helpers de URL usados na extração e na deduplicação do feed."""

from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

TRACKING_PARAMS = {
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content", "utm_id",
    "gclid", "fbclid", "mc_cid", "mc_eid",
}


def origin_of(url: str) -> str:
    p = urlparse(url)
    return f"{p.scheme}://{p.netloc}"


def is_absolute_http_url(url: Optional[str]) -> bool:
    if not isinstance(url, str) or not url:
        return False
    try:
        p = urlparse(url)
    except ValueError:
        return False
    return p.scheme in ("http", "https") and bool(p.netloc)


def resolve_url(url: str, base: str) -> str:
    """Resolve URL relativa (inclusive '//host/path') contra a base; absolutas voltam intactas."""
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base, url)


def canonicalize_url(url: str) -> str:
    """
    Forma canônica para deduplicação:
    - scheme e host em minúsculas
    - sem fragmento e sem barra final no path
    - sem parâmetros de rastreamento (utm_*, gclid, ...)
    """
    p = urlparse(url.strip())
    kept = [(k, v) for k, v in parse_qsl(p.query, keep_blank_values=True) if k.lower() not in TRACKING_PARAMS]
    path = p.path.rstrip("/") or "/"
    return urlunparse((p.scheme.lower(), p.netloc.lower(), path, p.params, urlencode(kept), ""))
