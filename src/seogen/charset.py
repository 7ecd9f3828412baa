"""Charset detection and decoding for fetched pages.

Pages on older Korean, Japanese and Chinese sites routinely omit the charset
from the Content-Type header or declare it only in a meta tag, and some lie
about it altogether. ``resolve`` follows the usual browser order (transport
header, then meta tags) and retries as EUC-KR when the first decode is
visibly broken.
"""

from __future__ import annotations

import codecs
import re
from dataclasses import dataclass
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

REPLACEMENT_CHAR = "\ufffd"
BROKEN_CHAR_THRESHOLD = 5
KOREAN = "euc-kr"
DEFAULT_CHARSET = "utf-8"

CHARSET_ALIASES = {
    "euckr": "euc-kr",
    "cp949": "euc-kr",
    "windows949": "euc-kr",
    "ksc5601": "euc-kr",
    "ksc56011987": "euc-kr",
    "ksksc56011987": "euc-kr",
    "eucjp": "euc-jp",
    "shiftjis": "shift_jis",
    "sjis": "shift_jis",
    "gb2312": "gb2312",
    "gbk": "gbk",
    "big5": "big5",
    "iso88591": "iso-8859-1",
    "latin1": "iso-8859-1",
    "utf8": "utf-8",
    "utf16": "utf-16",
}

# Python codec used to decode a canonical name, where it differs. Browsers
# decode "euc-kr" as the CP949 superset, which also covers the extended
# Hangul syllables found on real pages.
_CODEC_FOR = {"euc-kr": "cp949"}

_CONTENT_TYPE_CHARSET_RE = re.compile(r"charset=([^\s;]+)", re.I)
_META_TAG_RE = re.compile(r"<meta\b[^>]*>", re.I)
_META_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([^\"'\s;/>]+)", re.I)


@dataclass(frozen=True)
class DecodedPage:
    text: str
    charset_used: str
    replacement_count: int = 0


def _strip_quotes(value: str) -> str:
    return value.strip().strip("\"'").strip()


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    """Return the ``charset`` parameter of a Content-Type value, if any."""
    if not content_type:
        return None
    m = _CONTENT_TYPE_CHARSET_RE.search(content_type)
    if not m:
        return None
    return _strip_quotes(m.group(1)) or None


def detect_charset_from_html(html: str) -> Optional[str]:
    """Return the first charset declared by a meta tag, in source order."""
    for m in _META_TAG_RE.finditer(html):
        found = _META_CHARSET_RE.search(m.group(0))
        if found:
            return found.group(1)
    return None


def normalize_charset(charset: str) -> str:
    cleaned = _strip_quotes(charset).lower()
    key = cleaned.replace("_", "").replace("-", "")
    return CHARSET_ALIASES.get(key, cleaned)


def is_supported(charset: str) -> bool:
    """True for text encodings only; bytes-to-bytes codecs like base64 are not."""
    try:
        info = codecs.lookup(_CODEC_FOR.get(charset, charset))
    except LookupError:
        return False
    return getattr(info, "_is_text_encoding", True)


def decode_as(data: bytes, charset: str) -> str:
    return data.decode(_CODEC_FOR.get(charset, charset), errors="replace")


def count_replacements(text: str) -> int:
    return text.count(REPLACEMENT_CHAR)


def resolve(data: bytes, charset_hint: Optional[str] = None) -> DecodedPage:
    """Decode ``data`` using the hinted, declared or fallback charset."""
    charset = _strip_quotes(charset_hint) if charset_hint else ""
    if not charset:
        # Latin-1 maps every byte to one code point, so markup stays searchable
        # whatever the real encoding is.
        charset = detect_charset_from_html(data.decode("latin-1")) or ""

    charset = normalize_charset(charset or DEFAULT_CHARSET)
    if not is_supported(charset):
        logger.info("charset_unsupported", charset=charset, fallback=DEFAULT_CHARSET)
        charset = DEFAULT_CHARSET

    try:
        text = decode_as(data, charset)
    except (LookupError, UnicodeError):
        # idna and friends refuse errors="replace"
        logger.info("charset_undecodable", charset=charset, fallback=DEFAULT_CHARSET)
        charset = DEFAULT_CHARSET
        text = decode_as(data, charset)
    broken = count_replacements(text)
    logger.debug("charset_detected", charset=charset, broken_chars=broken)

    if broken > BROKEN_CHAR_THRESHOLD and charset != KOREAN:
        retry = decode_as(data, KOREAN)
        retry_broken = count_replacements(retry)
        if retry_broken < broken:
            logger.info(
                "charset_redecoded",
                original=charset,
                charset=KOREAN,
                broken_chars=broken,
                redecoded_broken_chars=retry_broken,
            )
            return DecodedPage(text=retry, charset_used=KOREAN, replacement_count=retry_broken)

    return DecodedPage(text=text, charset_used=charset, replacement_count=broken)
