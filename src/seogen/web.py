from __future__ import annotations

import argparse
from typing import Any, Dict, Optional

import structlog
from flask import Flask, Response, jsonify, request, stream_with_context

from .batch import BatchRequest, BatchRunner
from .config import Settings, get_settings
from .errors import FetchError, StoreError
from .events import ErrorEvent, format_sse
from .extract import extract
from .fetcher import fetch_page
from .logging_setup import configure_logging
from .providers import check_api_key, configured_providers
from .store import JsonFilePageStore, PageStore
from .utils import normalize_url

logger = structlog.get_logger(__name__)


def _clean_string(value: Any, *, max_length: int) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)
    value = value.strip()
    value = value.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    cleaned = "".join(ch for ch in value if ch.isprintable()).strip()
    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length].strip()
    return cleaned


def sanitize_host(value: Any) -> str:
    """Bare host name: scheme, path and trailing slashes removed."""
    cleaned = _clean_string(value, max_length=253)
    for prefix in ("https://", "http://"):
        if cleaned.lower().startswith(prefix):
            cleaned = cleaned[len(prefix):]
    return cleaned.split("/", 1)[0]


def create_app(store: Optional[PageStore] = None, settings: Optional[Settings] = None) -> Flask:
    settings = settings or get_settings()
    app = Flask(__name__)
    app.config["STORE"] = store

    def get_store() -> PageStore:
        if app.config["STORE"] is None:
            app.config["STORE"] = JsonFilePageStore(settings.store_path)
        return app.config["STORE"]

    @app.post("/api/ai-generate-seo")
    def api_generate():
        payload: Dict[str, Any] = request.get_json(force=True, silent=True) or {}
        if not isinstance(payload, dict):
            payload = {}
        payload["host"] = sanitize_host(payload.get("host"))
        batch_request = BatchRequest.from_payload(payload)
        logger.info(
            "generate_requested",
            version_id=batch_request.version_id,
            model=batch_request.model,
            api_key_supplied=bool(batch_request.api_key),
        )
        def stream():
            try:
                runner = BatchRunner(get_store(), settings)
            except StoreError as e:
                yield format_sse(ErrorEvent(str(e)))
                return
            for event in runner.events(batch_request):
                yield format_sse(event)

        return Response(
            stream_with_context(stream()),
            mimetype="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/api/check-api-keys")
    def api_check_keys():
        return jsonify(configured_providers(settings))

    @app.post("/api/test-api-key")
    def api_test_key():
        payload: Dict[str, Any] = request.get_json(force=True, silent=True) or {}
        if not isinstance(payload, dict):
            payload = {}
        provider = _clean_string(payload.get("provider"), max_length=20)
        api_key = _clean_string(payload.get("apiKey"), max_length=500)
        result = check_api_key(provider, api_key, settings)
        if result.success:
            return jsonify({"success": True, "message": result.message, "model": result.model})
        return jsonify({"success": False, "error": result.message})

    @app.get("/api/extract")
    def api_extract():
        raw = _clean_string(request.args.get("url"), max_length=2000)
        if not raw:
            return jsonify({"error": "Missing 'url'"}), 400
        try:
            url = normalize_url(raw)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        try:
            page = fetch_page(
                url,
                timeout=settings.fetch_timeout,
                max_redirects=settings.max_redirects,
                min_length=settings.min_content_length,
                locale=settings.locale,
            )
        except FetchError as e:
            return jsonify({"error": e.message, "kind": e.kind}), 502
        signals = extract(page.text)
        return jsonify(
            {
                "url": url,
                "charset": page.charset_used,
                "title": signals.existing_title,
                "h1": signals.existing_h1,
                "selectors": list(signals.candidate_selectors),
                "text_length": len(signals.plain_text),
            }
        )

    return app


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run the SEO generation API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5173)
    parser.add_argument("--store", default=None, help="JSON page store (default: SEOGEN_STORE_PATH)")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, settings.environment)
    store = JsonFilePageStore(args.store) if args.store else None
    app = create_app(store=store, settings=settings)
    app.run(host=args.host, port=args.port, debug=args.debug, threaded=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
