"""Batch SEO generation over the pages of one content version.

Pages are handled one at a time, in the order the store returns them:
fetch (HTTPS, then HTTP once), decode, extract, generate, write back. Each
page ends with exactly one ``PageResult``; a failing page never stops the
batch. ``BatchRunner.events`` yields the progress stream and always finishes
with a ``complete`` or ``error`` event.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Mapping, Optional, Sequence, Tuple

import structlog

from .charset import DecodedPage
from .config import Settings
from .errors import BatchValidationError, FetchError, ProviderError, StoreError
from .events import (
    BatchReport,
    CompleteEvent,
    ErrorEvent,
    Event,
    InitEvent,
    PageResult,
    ProgressEvent,
    ProgressSink,
)
from .extract import extract
from . import fetcher
from .providers import PROVIDERS, FieldSelection, Provider, get_provider
from .store import PageRef, PageStore
from .utils import page_url

logger = structlog.get_logger(__name__)


@dataclass
class BatchRequest:
    version_id: str
    host: str
    fields: FieldSelection
    model: str = "heuristic"
    page_ids: Sequence[str] = field(default_factory=tuple)
    api_key: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "BatchRequest":
        """Build a request from the JSON body the admin client posts.

        Wrongly typed members are treated as absent so that validation,
        not a crash, reports them.
        """
        page_ids = payload.get("pageIds")
        if not isinstance(page_ids, (list, tuple)):
            page_ids = ()
        api_key = payload.get("apiKey")
        return cls(
            version_id=str(payload.get("versionId") or ""),
            host=str(payload.get("host") or ""),
            fields=FieldSelection.from_mapping(payload.get("fields")),
            model=str(payload.get("model") or "heuristic"),
            page_ids=tuple(str(p) for p in page_ids),
            api_key=api_key if isinstance(api_key, str) and api_key else None,
        )


@dataclass(frozen=True)
class Credentials:
    openai_key: Optional[str] = None
    claude_key: Optional[str] = None

    def for_model(self, model: str) -> Optional[str]:
        if model == "openai":
            return self.openai_key
        if model == "claude":
            return self.claude_key
        return None


def resolve_credentials(request: BatchRequest, settings: Settings) -> Credentials:
    """Request key for the selected model, else the environment default."""
    openai_key = request.api_key if request.model == "openai" else None
    claude_key = request.api_key if request.model == "claude" else None
    return Credentials(
        openai_key=openai_key or settings.openai_api_key,
        claude_key=claude_key or settings.anthropic_api_key,
    )


def validate(request: BatchRequest) -> None:
    if not request.version_id or not request.host:
        raise BatchValidationError("versionId and host are required")
    if not request.fields.any_selected():
        raise BatchValidationError("Select at least one field to generate")
    if request.model not in PROVIDERS:
        raise BatchValidationError(f"Unknown model: {request.model}")


class BatchRunner:
    def __init__(
        self,
        store: PageStore,
        settings: Settings,
        *,
        fetch_page: Optional[Callable[..., DecodedPage]] = None,
        sleep: Callable[[float], None] = time.sleep,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.store = store
        self.settings = settings
        self.fetch_page = fetch_page or fetcher.fetch_page
        self.sleep = sleep
        self.cancel = cancel

    def _load(self, host: str, path: str) -> Tuple[str, DecodedPage]:
        kwargs = dict(
            timeout=self.settings.fetch_timeout,
            max_redirects=self.settings.max_redirects,
            min_length=self.settings.min_content_length,
            locale=self.settings.locale,
        )
        url = page_url("https", host, path)
        try:
            return url, self.fetch_page(url, **kwargs)
        except FetchError as exc:
            logger.info("https_failed_trying_http", path=path, error=exc.message)
        url = page_url("http", host, path)
        return url, self.fetch_page(url, **kwargs)

    def _process(self, page: PageRef, request: BatchRequest, provider: Provider, api_key: Optional[str]) -> PageResult:
        model = provider.name
        try:
            url, decoded = self._load(request.host, page.path)
        except FetchError as exc:
            logger.warning("page_fetch_failed", path=page.path, kind=exc.kind, error=exc.message)
            return PageResult(page.id, page.path, "error", f"Page load failed: {exc.message}", model)

        signals = extract(decoded.text)
        try:
            outcome = provider.generate(signals, url, request.fields, api_key)
        except ProviderError as exc:
            logger.warning("page_generation_failed", path=page.path, provider=exc.model, error=exc.message)
            return PageResult(page.id, page.path, "error", exc.message, exc.model)

        try:
            self.store.apply_field_updates(page.id, outcome.updates(request.fields))
        except StoreError as exc:
            logger.warning("page_update_failed", page_id=page.id, error=str(exc))
            return PageResult(page.id, page.path, "error", str(exc), outcome.used_model)

        return PageResult(page.id, page.path, "success", None, outcome.used_model)

    def events(self, request: BatchRequest, credentials: Optional[Credentials] = None) -> Iterator[Event]:
        log = logger.bind(version_id=request.version_id, model=request.model)
        try:
            try:
                validate(request)
            except BatchValidationError as exc:
                yield ErrorEvent(str(exc))
                return

            if credentials is None:
                credentials = resolve_credentials(request, self.settings)
            api_key = credentials.for_model(request.model)
            provider = get_provider(request.model, self.settings)

            try:
                pages = self.store.list_pages_for_batch(request.version_id, request.page_ids or None)
            except StoreError as exc:
                yield ErrorEvent(str(exc) or "Failed to load pages")
                return

            total = len(pages)
            log.info("batch_started", total=total)
            yield InitEvent(total=total, model=request.model)

            results: List[PageResult] = []
            for index, page in enumerate(pages):
                if self.cancel is not None and self.cancel.is_set():
                    log.info("batch_cancelled", processed=len(results), total=total)
                    yield ErrorEvent(f"Batch cancelled after {len(results)} of {total} pages")
                    return

                yield ProgressEvent(current=index + 1, total=total, path=page.path)
                if request.model != "heuristic" and index > 0:
                    self.sleep(self.settings.rate_limit_delay)

                try:
                    result = self._process(page, request, provider, api_key)
                except Exception as exc:
                    log.exception("page_failed_unexpectedly", path=page.path)
                    result = PageResult(page.id, page.path, "error", str(exc), provider.name)
                results.append(result)

            report = BatchReport.from_results(total, results)
            try:
                self.store.mark_version_generated(request.version_id)
            except StoreError as exc:
                log.error("mark_version_generated_failed", error=str(exc))

            log.info(
                "batch_completed",
                total=report.total,
                success_count=report.success_count,
                error_count=report.error_count,
            )
            yield CompleteEvent(report=report, model=request.model)
        except Exception as exc:
            log.exception("batch_failed")
            yield ErrorEvent(str(exc))

    def run(
        self,
        request: BatchRequest,
        sink: ProgressSink,
        credentials: Optional[Credentials] = None,
    ) -> Optional[BatchReport]:
        """Drive ``events`` into ``sink``; return the report if the batch completed."""
        report = None
        try:
            for event in self.events(request, credentials):
                if isinstance(event, CompleteEvent):
                    report = event.report
                sink.send(event)
        finally:
            sink.close()
        return report
