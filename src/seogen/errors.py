from __future__ import annotations

from typing import Dict, Optional


# Human-readable messages per failure kind. Keys are locale codes.
MESSAGES: Dict[str, Dict[str, str]] = {
    "en": {
        "dns": "DNS lookup failed - domain not found",
        "refused": "Connection refused - server is not responding",
        "timeout": "Timed out - server responded too slowly",
        "tls": "SSL certificate error",
        "unknown": "Connection failed",
        "http_status": "HTTP {status}",
        "too_many_redirects": "Too many redirects (more than {limit})",
        "too_short": "Page content is too short",
    },
    "ko": {
        "dns": "DNS 조회 실패 - 도메인을 찾을 수 없음",
        "refused": "연결 거부됨 - 서버가 응답하지 않음",
        "timeout": "타임아웃 - 서버 응답이 너무 느림",
        "tls": "SSL 인증서 오류",
        "unknown": "연결 실패",
        "http_status": "HTTP {status}",
        "too_many_redirects": "리다이렉트가 너무 많음 ({limit}회 초과)",
        "too_short": "페이지 내용이 너무 짧음",
    },
}


def localized(key: str, locale: str = "en", **params: object) -> str:
    table = MESSAGES.get(locale) or MESSAGES["en"]
    template = table.get(key) or MESSAGES["en"][key]
    return template.format(**params)


class SeogenError(Exception):
    """Root of every error raised by this package."""


class FetchError(SeogenError):
    kind = "unknown"

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.url = url


class HttpStatusError(FetchError):
    kind = "http_status"

    def __init__(self, status_code: int, *, url: Optional[str] = None, locale: str = "en") -> None:
        super().__init__(localized("http_status", locale, status=status_code), url=url)
        self.status_code = status_code


class FetchTimeoutError(FetchError):
    kind = "timeout"

    def __init__(self, *, url: Optional[str] = None, locale: str = "en") -> None:
        super().__init__(localized("timeout", locale), url=url)


class TransportError(FetchError):
    """DNS, refused connection, TLS handshake and similar failures."""

    def __init__(self, kind: str, detail: str = "", *, url: Optional[str] = None, locale: str = "en") -> None:
        super().__init__(localized(kind, locale), url=url)
        self.kind = kind
        self.detail = detail


class TooManyRedirectsError(FetchError):
    kind = "too_many_redirects"

    def __init__(self, limit: int, *, url: Optional[str] = None, locale: str = "en") -> None:
        super().__init__(localized("too_many_redirects", locale, limit=limit), url=url)
        self.limit = limit


class ContentTooShortError(FetchError):
    kind = "too_short"

    def __init__(self, length: int, *, url: Optional[str] = None, locale: str = "en") -> None:
        super().__init__(localized("too_short", locale), url=url)
        self.length = length


class ProviderError(SeogenError):
    def __init__(self, message: str, model: str) -> None:
        super().__init__(message)
        self.message = message
        self.model = model


class StoreError(SeogenError):
    pass


class BatchValidationError(SeogenError):
    pass
