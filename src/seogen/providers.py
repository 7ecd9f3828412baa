from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass, fields as dataclass_fields
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlparse

import requests
import structlog

from .config import Settings
from .errors import ProviderError
from .extract import ExtractedSignals
from .utils import truncate

logger = structlog.get_logger(__name__)

TITLE_LIMIT = 60
DESCRIPTION_LIMIT = 160
PROMPT_TEXT_LIMIT = 3000
CANONICAL_PARAMS = ("id", "no")
DEFAULT_PORTS = {"http": 80, "https": 443}
PREFERRED_SELECTORS = ("[data-seo-heading]", ".post-title", "#post-title", ".title", "#title")
SYSTEM_PROMPT = "You are an SEO expert generating web page metadata. Reply with valid JSON only."

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


@dataclass
class FieldSelection:
    title: bool = False
    description: bool = False
    json_ld: bool = False
    canonical: bool = False
    h1_selector: bool = False

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "FieldSelection":
        if not isinstance(data, Mapping):
            data = {}
        return cls(**{f.name: bool(data.get(f.name)) for f in dataclass_fields(cls)})

    def selected(self) -> List[str]:
        return [name for name, on in asdict(self).items() if on]

    def any_selected(self) -> bool:
        return bool(self.selected())


@dataclass
class GenerationOutcome:
    used_model: str
    title: Optional[str] = None
    description: Optional[str] = None
    json_ld: Optional[Any] = None
    canonical: Optional[str] = None
    h1_selector: Optional[str] = None

    def updates(self, selection: FieldSelection) -> Dict[str, Any]:
        """Requested fields that were actually produced; nothing else is written."""
        values = {}
        for name in selection.selected():
            value = getattr(self, name)
            if value:
                values[name] = value
        return values


@dataclass
class KeyCheck:
    success: bool
    message: str
    model: Optional[str] = None


def heuristic_canonical(url: str) -> str:
    try:
        parsed = urlparse(url)
    except ValueError:
        return url
    try:
        host = parsed.hostname
        port = parsed.port
    except ValueError:
        return url
    if not parsed.scheme or not host:
        return url
    if ":" in host:
        host = f"[{host}]"
    origin = f"{parsed.scheme}://{host}"
    if port is not None and port != DEFAULT_PORTS.get(parsed.scheme):
        origin = f"{origin}:{port}"
    params = {}
    for key, value in parse_qsl(parsed.query, keep_blank_values=True):
        params.setdefault(key, value)
    kept = [(key, params[key]) for key in CANONICAL_PARAMS if key in params]
    query = urlencode(kept)
    canonical = f"{origin}{parsed.path or '/'}"
    return f"{canonical}?{query}" if query else canonical


def heuristic_description(plain_text: str) -> str:
    sentences = [s.strip() for s in re.split(r"[.!?]", plain_text)]
    sentences = [s for s in sentences if len(s) > 20]
    return ". ".join(sentences[:2])[:DESCRIPTION_LIMIT]


def pick_heading_selector(candidates) -> str:
    for selector in PREFERRED_SELECTORS:
        if selector in candidates:
            return selector
    return candidates[0] if candidates else ""


class Provider:
    name = ""
    label = ""

    def generate(
        self,
        signals: ExtractedSignals,
        url: str,
        selection: FieldSelection,
        api_key: Optional[str] = None,
    ) -> GenerationOutcome:
        raise NotImplementedError


class HeuristicProvider(Provider):
    """Rule-based fields straight from the page's own markup."""

    name = "heuristic"
    label = "Heuristic"

    def generate(self, signals, url, selection, api_key=None):
        out = GenerationOutcome(used_model=self.name)

        if selection.title:
            source = signals.existing_h1 or signals.existing_title or "Page Title"
            out.title = truncate(source, TITLE_LIMIT)

        if selection.description:
            out.description = (
                heuristic_description(signals.plain_text)
                or signals.existing_title
                or signals.existing_h1
                or "Page description"
            )

        if selection.canonical:
            out.canonical = heuristic_canonical(url)

        if selection.h1_selector and signals.candidate_selectors:
            out.h1_selector = pick_heading_selector(signals.candidate_selectors)

        if selection.json_ld:
            out.json_ld = {
                "@context": "https://schema.org",
                "@type": "WebPage",
                "name": out.title or signals.existing_title or signals.existing_h1,
                "description": out.description or "",
                "url": out.canonical or url,
            }

        return out


def build_prompt(signals: ExtractedSignals, url: str, selection: FieldSelection) -> str:
    selectors = ", ".join(signals.candidate_selectors) or "none found"
    wanted = []
    skeleton = []
    if selection.title:
        wanted.append(f"title (at most {TITLE_LIMIT} characters)")
        skeleton.append('  "title": "generated title"')
    if selection.description:
        wanted.append(f"description (at most {DESCRIPTION_LIMIT} characters)")
        skeleton.append('  "description": "generated description"')
    if selection.json_ld:
        wanted.append("json_ld (a Schema.org FAQPage or WebPage object)")
        skeleton.append('  "json_ld": { ...Schema.org object... }')
    if selection.canonical:
        wanted.append("canonical (the canonical URL)")
        skeleton.append('  "canonical": "canonical URL"')
    if selection.h1_selector:
        wanted.append(f"h1_selector (one of the available selectors: {selectors})")
        skeleton.append('  "h1_selector": "CSS selector"')

    return (
        "Analyze the following web page and generate SEO metadata.\n\n"
        f"URL: {url}\n"
        f"Existing title: {signals.existing_title or 'none'}\n"
        f"Existing h1: {signals.existing_h1 or 'none'}\n\n"
        "Page content (excerpt):\n"
        f"{signals.plain_text[:PROMPT_TEXT_LIMIT]}\n\n"
        f"Fields to generate: {', '.join(wanted)}\n"
        f"Available heading selectors: {selectors}\n\n"
        "Reply with a single JSON object only:\n"
        "{\n" + ",\n".join(skeleton) + "\n}"
    )


def extract_json_object(reply: str) -> Optional[Dict[str, Any]]:
    """Parse the ``{...}`` span of a free-text model reply."""
    m = re.search(r"\{[\s\S]*\}", reply or "")
    if not m:
        return None
    try:
        data = json.loads(m.group(0))
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def api_error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return "unknown error"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or "unknown error"
    if isinstance(error, str):
        return error
    return "unknown error"


class LLMProvider(Provider):
    endpoint = ""

    def __init__(self, model: str, timeout: float = 60.0) -> None:
        self.model = model
        self.timeout = timeout

    def headers(self, api_key: str) -> Dict[str, str]:
        raise NotImplementedError

    def payload(self, prompt: str, max_tokens: Optional[int] = None) -> Dict[str, Any]:
        raise NotImplementedError

    def reply_text(self, body: Dict[str, Any]) -> str:
        raise NotImplementedError

    def post(self, api_key: str, payload: Dict[str, Any]) -> requests.Response:
        return requests.post(self.endpoint, headers=self.headers(api_key), json=payload, timeout=self.timeout)

    def complete(self, prompt: str, api_key: str) -> str:
        try:
            resp = self.post(api_key, self.payload(prompt))
        except requests.RequestException as exc:
            raise ProviderError(f"{self.label} request failed: {exc}", self.name) from exc

        if not resp.ok:
            message = api_error_message(resp)
            logger.warning("provider_api_error", provider=self.name, status=resp.status_code, error=message)
            raise ProviderError(f"{self.label} API error ({resp.status_code}): {message}", self.name)

        try:
            body = resp.json()
        except ValueError as exc:
            raise ProviderError(f"{self.label} returned a non-JSON response", self.name) from exc
        text = self.reply_text(body)
        if not text:
            raise ProviderError(f"{self.label} reply was empty", self.name)
        return text

    def generate(self, signals, url, selection, api_key=None):
        if not api_key:
            raise ProviderError(f"{self.label} API key is missing", self.name)

        reply = self.complete(build_prompt(signals, url, selection), api_key)
        data = extract_json_object(reply)
        if data is None:
            raise ProviderError(f"Could not parse JSON from the {self.label} reply", self.name)

        values = {}
        for name in selection.selected():
            value = data.get(name)
            if not value:
                continue
            values[name] = value if name == "json_ld" else str(value)
        if not values:
            raise ProviderError(f"{self.label} reply contained none of the requested fields", self.name)
        return GenerationOutcome(used_model=self.name, **values)

    def check_key(self, api_key: str) -> KeyCheck:
        """Send a tiny request to see whether ``api_key`` is accepted."""
        payload = self.payload('Say "OK" only.', max_tokens=5)
        try:
            resp = self.post(api_key, payload)
        except requests.RequestException as exc:
            return KeyCheck(False, f"Connection failed: {exc}")
        if resp.ok:
            try:
                model = resp.json().get("model")
            except ValueError:
                model = None
            return KeyCheck(True, f"{self.label} API key is valid", model)
        if resp.status_code == 401:
            return KeyCheck(False, "The API key is not valid. Check the key and try again.")
        if resp.status_code == 429:
            return KeyCheck(False, "Rate limit exceeded. Wait a moment or check your billing details.")
        return KeyCheck(False, f"API error ({resp.status_code}): {api_error_message(resp)}")


class OpenAIProvider(LLMProvider):
    name = "openai"
    label = "OpenAI"
    endpoint = OPENAI_URL

    def headers(self, api_key):
        return {"Content-Type": "application/json", "Authorization": f"Bearer {api_key}"}

    def payload(self, prompt, max_tokens=None):
        if max_tokens is not None:
            return {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": max_tokens,
            }
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.3,
        }

    def reply_text(self, body):
        try:
            return body["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError):
            return ""


class ClaudeProvider(LLMProvider):
    name = "claude"
    label = "Claude"
    endpoint = ANTHROPIC_URL

    def headers(self, api_key):
        return {
            "Content-Type": "application/json",
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def payload(self, prompt, max_tokens=None):
        payload = {
            "model": self.model,
            "max_tokens": max_tokens or 2048,
            "messages": [{"role": "user", "content": prompt}],
        }
        if max_tokens is None:
            payload["system"] = SYSTEM_PROMPT
        return payload

    def reply_text(self, body):
        try:
            return body["content"][0]["text"] or ""
        except (KeyError, IndexError, TypeError):
            return ""


PROVIDERS = ("heuristic", "openai", "claude")


def get_provider(name: str, settings: Settings) -> Provider:
    if name == "heuristic":
        return HeuristicProvider()
    if name == "openai":
        return OpenAIProvider(settings.openai_model, timeout=settings.provider_timeout)
    if name == "claude":
        return ClaudeProvider(settings.claude_model, timeout=settings.provider_timeout)
    raise ValueError(f"Unknown model: {name!r}")


def check_api_key(provider: str, api_key: str, settings: Settings) -> KeyCheck:
    if not provider or not api_key:
        return KeyCheck(False, "provider and apiKey are required")
    if provider not in ("openai", "claude"):
        return KeyCheck(False, f"Unknown provider: {provider}")
    llm = get_provider(provider, settings)
    return llm.check_key(api_key)


def configured_providers(settings: Settings) -> Dict[str, bool]:
    """Which providers have an environment-level default key."""
    return {
        "openai": bool(settings.openai_api_key),
        "claude": bool(settings.anthropic_api_key),
    }
