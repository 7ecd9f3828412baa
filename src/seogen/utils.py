from __future__ import annotations

import html as html_lib
import re
from urllib.parse import urlparse, urlunparse


def normalize_url(url: str) -> str:
    cleaned = url.strip()
    parsed = urlparse(cleaned)
    scheme = (parsed.scheme or "").lower()
    netloc = parsed.netloc
    path = parsed.path
    query = parsed.query

    if not netloc:
        if scheme not in {"http", "https"}:
            scheme = "https"
        reparsed = urlparse(f"//{cleaned}", scheme=scheme)
        if reparsed.netloc:
            netloc = reparsed.netloc
            path = reparsed.path
            query = reparsed.query or query
    else:
        scheme = scheme or "https"

    if not netloc:
        raise ValueError(f"Cannot determine host for URL: {url!r}")

    if not path:
        path = "/"
    elif not path.startswith("/"):
        path = f"/{path}"

    return urlunparse((scheme, netloc, path, "", query, ""))


def page_url(scheme: str, host: str, path: str) -> str:
    """Join a bare host and a stored page path into an absolute URL."""
    host = host.strip().rstrip("/")
    if not path.startswith("/"):
        path = f"/{path}"
    return f"{scheme}://{host}{path}"


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def strip_tags(html: str) -> str:
    return re.sub(r"<[^>]+>", " ", html)


def strip_scripts(html: str) -> str:
    html = re.sub(r"<script[\s\S]*?</script>", "", html, flags=re.I)
    return re.sub(r"<style[\s\S]*?</style>", "", html, flags=re.I)


def extract_plain_text(html: str) -> str:
    # Lightweight text extraction sans a DOM
    return collapse_whitespace(strip_tags(strip_scripts(html)))


def inner_text(fragment: str) -> str:
    """Text of an element's inner markup: tags dropped, entities decoded."""
    return collapse_whitespace(html_lib.unescape(strip_tags(fragment)))


def truncate(text: str, limit: int, suffix: str = "...") -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(suffix)] + suffix
