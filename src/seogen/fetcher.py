from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin

import requests
import structlog
import urllib3

from .charset import DecodedPage, charset_from_content_type, resolve
from .errors import (
    ContentTooShortError,
    FetchTimeoutError,
    HttpStatusError,
    TooManyRedirectsError,
    TransportError,
)

logger = structlog.get_logger(__name__)

# Target hosts are staging and test servers with self-signed certificates.
urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
HEADERS = {
    "User-Agent": UA,
    "Accept": "*/*",
    "Accept-Language": "ko-KR,ko;q=0.9",
    "Cache-Control": "no-cache",
}
DEFAULT_TIMEOUT = 15.0
MAX_REDIRECTS = 10
MIN_CONTENT_LENGTH = 100

# Substrings of the underlying exception text, checked in order.
TRANSPORT_ERROR_MARKERS = (
    ("dns", ("ENOTFOUND", "Name or service not known", "nodename nor servname", "getaddrinfo", "NameResolutionError")),
    ("refused", ("ECONNREFUSED", "Connection refused", "actively refused")),
    ("timeout", ("ETIMEDOUT", "timed out", "aborted")),
    ("tls", ("CERT", "SSL")),
)


@dataclass
class FetchResult:
    url: str
    content: bytes
    content_type: str
    status_code: int = 200


def classify_transport_error(text: str) -> str:
    for kind, markers in TRANSPORT_ERROR_MARKERS:
        if any(marker in text for marker in markers):
            return kind
    return "unknown"


def fetch(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    max_redirects: int = MAX_REDIRECTS,
    session: Optional[requests.Session] = None,
    locale: str = "en",
) -> FetchResult:
    """GET ``url`` following redirects by hand; raise a ``FetchError`` on failure."""
    http = session or requests
    current = url
    hops = 0
    while True:
        logger.debug("page_fetch", url=current, hop=hops)
        try:
            resp = http.get(
                current,
                headers=HEADERS,
                timeout=timeout,
                verify=False,
                allow_redirects=False,
            )
        except requests.Timeout as exc:
            raise FetchTimeoutError(url=current, locale=locale) from exc
        except requests.RequestException as exc:
            detail = str(exc)
            if exc.__cause__ is not None:
                detail = f"{detail} (cause: {exc.__cause__})"
            raise TransportError(
                classify_transport_error(detail), detail, url=current, locale=locale
            ) from exc

        location = resp.headers.get("Location")
        if 300 <= resp.status_code < 400 and location:
            hops += 1
            if hops > max_redirects:
                raise TooManyRedirectsError(max_redirects, url=url, locale=locale)
            current = urljoin(current, location)
            logger.debug("page_redirect", location=current)
            continue

        if not 200 <= resp.status_code < 300:
            raise HttpStatusError(resp.status_code, url=current, locale=locale)

        return FetchResult(
            url=current,
            content=resp.content,
            content_type=resp.headers.get("Content-Type", ""),
            status_code=resp.status_code,
        )


def fetch_page(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    max_redirects: int = MAX_REDIRECTS,
    min_length: int = MIN_CONTENT_LENGTH,
    session: Optional[requests.Session] = None,
    locale: str = "en",
) -> DecodedPage:
    """Fetch ``url`` and decode it, rejecting implausibly short documents."""
    result = fetch(url, timeout=timeout, max_redirects=max_redirects, session=session, locale=locale)
    page = resolve(result.content, charset_from_content_type(result.content_type))
    logger.info("page_loaded", url=result.url, chars=len(page.text), charset=page.charset_used)
    if len(page.text) < min_length:
        raise ContentTooShortError(len(page.text), url=result.url, locale=locale)
    return page
