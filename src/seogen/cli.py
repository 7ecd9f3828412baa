from __future__ import annotations

import argparse
import json
import sys

from .batch import BatchRequest, BatchRunner
from .config import get_settings
from .errors import FetchError, StoreError
from .events import CompleteEvent, ErrorEvent, InitEvent, ProgressEvent, ProgressSink
from .extract import extract
from .fetcher import fetch_page
from .logging_setup import configure_logging
from .providers import PROVIDERS, FieldSelection
from .store import JsonFilePageStore
from .utils import normalize_url
from .web import main as serve_main

FIELD_NAMES = ("title", "description", "json_ld", "canonical", "h1_selector")


class ConsoleSink(ProgressSink):
    """Print batch events as they arrive; collect them for ``--json``."""

    def __init__(self, quiet: bool = False) -> None:
        self.quiet = quiet
        self.events = []

    def send(self, event):
        self.events.append(event)
        if self.quiet:
            return
        if isinstance(event, InitEvent):
            print(f"Generating with {event.model} for {event.total} page(s)")
        elif isinstance(event, ProgressEvent):
            print(f"  [{event.current}/{event.total}] {event.path}")
        elif isinstance(event, CompleteEvent):
            report = event.report
            print(f"\nDone: {report.success_count} succeeded, {report.error_count} failed (of {report.total})")
            for r in report.results:
                if not r.ok:
                    print(f"  - {r.path}: {r.message}")
        elif isinstance(event, ErrorEvent):
            print(f"Error: {event.error}", file=sys.stderr)


def parse_fields(value: str) -> FieldSelection:
    names = [v.strip() for v in value.split(",") if v.strip()]
    if names == ["all"]:
        names = list(FIELD_NAMES)
    unknown = [n for n in names if n not in FIELD_NAMES]
    if unknown:
        raise argparse.ArgumentTypeError(f"Unknown field(s): {', '.join(unknown)}")
    return FieldSelection.from_mapping({n: True for n in names})


def cmd_generate(args) -> int:
    settings = get_settings()
    try:
        store = JsonFilePageStore(args.store or settings.store_path)
    except StoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    batch_request = BatchRequest(
        version_id=args.version,
        host=args.host,
        fields=args.fields,
        model=args.model,
        page_ids=tuple(args.page_id or ()),
        api_key=args.api_key,
    )
    sink = ConsoleSink(quiet=args.as_json)
    report = BatchRunner(store, settings).run(batch_request, sink)
    if args.as_json:
        print(json.dumps([e.to_dict() for e in sink.events], indent=2, ensure_ascii=False))
    if report is None:
        return 1
    return 0 if report.error_count == 0 else 3


def cmd_inspect(args) -> int:
    settings = get_settings()
    url = normalize_url(args.url)
    try:
        page = fetch_page(
            url,
            timeout=settings.fetch_timeout,
            max_redirects=settings.max_redirects,
            min_length=settings.min_content_length,
            locale=settings.locale,
        )
    except FetchError as e:
        print(f"Fetch failed ({e.kind}): {e.message}", file=sys.stderr)
        return 1
    signals = extract(page.text)

    if args.as_json:
        print(
            json.dumps(
                {
                    "url": url,
                    "charset": page.charset_used,
                    "replacement_chars": page.replacement_count,
                    "title": signals.existing_title,
                    "h1": signals.existing_h1,
                    "selectors": list(signals.candidate_selectors),
                    "text_preview": signals.plain_text[:300],
                },
                indent=2,
                ensure_ascii=False,
            )
        )
        return 0

    print(f"URL: {url}")
    print(f"Charset: {page.charset_used} ({page.replacement_count} replacement chars)")
    print(f"Title: {signals.existing_title or '(missing)'}")
    print(f"H1: {signals.existing_h1 or '(missing)'}")
    print(f"Heading selectors: {', '.join(signals.candidate_selectors) or '(none)'}")
    print(f"Text: {len(signals.plain_text)} chars")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="seogen",
        description="Fetch pages, extract their signals and generate SEO fields in batches.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate SEO fields for the pages of a version")
    gen.add_argument("--store", default=None, help="JSON page store (default: SEOGEN_STORE_PATH)")
    gen.add_argument("--version", required=True, help="Version id whose pages are processed")
    gen.add_argument("--host", required=True, help="Host the page paths belong to (e.g., example.com)")
    gen.add_argument(
        "--fields",
        type=parse_fields,
        required=True,
        help="Comma-separated fields: title,description,json_ld,canonical,h1_selector or 'all'",
    )
    gen.add_argument("--page-id", action="append", help="Restrict to this page id (repeatable)")
    gen.add_argument("--model", choices=PROVIDERS, default="heuristic")
    gen.add_argument("--api-key", default=None, help="API key for openai/claude (default: environment)")
    gen.add_argument("--json", dest="as_json", action="store_true", help="Output the event stream as JSON")
    gen.set_defaults(func=cmd_generate)

    ins = sub.add_parser("inspect", help="Fetch one page and show what the extractor sees")
    ins.add_argument("url")
    ins.add_argument("--json", dest="as_json", action="store_true")
    ins.set_defaults(func=cmd_inspect)

    srv = sub.add_parser("serve", help="Run the HTTP API", add_help=False)
    srv.set_defaults(func=None)

    args, rest = parser.parse_known_args(argv)
    if args.command == "serve":
        return serve_main(rest)
    if rest:
        parser.error(f"unrecognized arguments: {' '.join(rest)}")

    settings = get_settings()
    configure_logging(settings.log_level, settings.environment)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
