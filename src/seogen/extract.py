"""Signal extraction from decoded page markup.

Regex-based on purpose: only a handful of fixed signals are needed, and
callers only see ``extract``, so a real parser can replace this later.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple

from .utils import extract_plain_text, inner_text, strip_scripts

_TITLE_RE = re.compile(r"<title[^>]*>([\s\S]*?)</title>", re.I)
_H1_RE = re.compile(r"<h1[^>]*>([\s\S]*?)</h1>", re.I)

# Checked in this order; the order of the result follows it.
SELECTOR_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"data-seo-heading"), "[data-seo-heading]"),
    (re.compile(r"class=[\"'][^\"']*post-title[^\"']*[\"']", re.I), ".post-title"),
    (re.compile(r"class=[\"'][^\"']*page-title[^\"']*[\"']", re.I), ".page-title"),
    (re.compile(r"class=[\"'][^\"']*entry-title[^\"']*[\"']", re.I), ".entry-title"),
    (re.compile(r"class=[\"'][^\"']*article-title[^\"']*[\"']", re.I), ".article-title"),
    (re.compile(r"class=[\"'][^\"']*main-title[^\"']*[\"']", re.I), ".main-title"),
    (re.compile(r"id=[\"']post-title[\"']", re.I), "#post-title"),
    (re.compile(r"id=[\"']title[\"']", re.I), "#title"),
    (re.compile(r"<h1[^>]*>", re.I), "h1"),
    (re.compile(r"<h2[^>]*>", re.I), "h2"),
)


@dataclass(frozen=True)
class ExtractedSignals:
    plain_text: str
    existing_title: str
    existing_h1: str
    candidate_selectors: Tuple[str, ...]


def extract_title(html: str) -> str:
    m = _TITLE_RE.search(strip_scripts(html))
    return inner_text(m.group(1)) if m else ""


def extract_h1(html: str) -> str:
    m = _H1_RE.search(strip_scripts(html))
    return inner_text(m.group(1)) if m else ""


def find_heading_selectors(html: str) -> List[str]:
    selectors: List[str] = []
    for pattern, selector in SELECTOR_PATTERNS:
        if selector not in selectors and pattern.search(html):
            selectors.append(selector)
    return selectors


def extract(html: str) -> ExtractedSignals:
    return ExtractedSignals(
        plain_text=extract_plain_text(html),
        existing_title=extract_title(html),
        existing_h1=extract_h1(html),
        candidate_selectors=tuple(find_heading_selectors(html)),
    )
