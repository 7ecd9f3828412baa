from __future__ import annotations

import copy
import json
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import structlog

from .errors import StoreError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PageRef:
    id: str
    path: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class PageStore:
    """Pages and versions as seen by the batch orchestrator.

    Every method raises ``StoreError`` on failure.
    """

    def list_pages_for_batch(self, version_id: str, page_ids: Optional[Sequence[str]] = None) -> List[PageRef]:
        raise NotImplementedError

    def apply_field_updates(self, page_id: str, fields: Dict[str, Any]) -> None:
        raise NotImplementedError

    def mark_version_generated(self, version_id: str) -> None:
        raise NotImplementedError


class InMemoryPageStore(PageStore):
    def __init__(self, pages: Optional[List[Dict[str, Any]]] = None, versions: Optional[List[Dict[str, Any]]] = None) -> None:
        self._lock = threading.Lock()
        self.pages: List[Dict[str, Any]] = [dict(p) for p in pages or []]
        self.versions: List[Dict[str, Any]] = [dict(v) for v in versions or []]

    def _find(self, rows: List[Dict[str, Any]], row_id: str, kind: str) -> Dict[str, Any]:
        for row in rows:
            if str(row.get("id")) == str(row_id):
                return row
        raise StoreError(f"{kind} not found: {row_id}")

    def list_pages_for_batch(self, version_id, page_ids=None):
        wanted = {str(p) for p in page_ids} if page_ids else None
        with self._lock:
            return [
                PageRef(id=str(row["id"]), path=row.get("path") or "/")
                for row in self.pages
                if str(row.get("version_id")) == str(version_id)
                and (wanted is None or str(row["id"]) in wanted)
            ]

    def apply_field_updates(self, page_id, fields):
        with self._lock:
            row = self._find(self.pages, page_id, "page")
            row.update(copy.deepcopy(fields))
            row["updated_at"] = _now()

    def mark_version_generated(self, version_id):
        with self._lock:
            row = self._find(self.versions, version_id, "version")
            row["ai_generated"] = True
            row["ai_generated_at"] = _now()


class JsonFilePageStore(InMemoryPageStore):
    """``InMemoryPageStore`` persisted to a JSON document after every write.

    The document has the shape ``{"pages": [...], "versions": [...]}``.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)
        data: Dict[str, Any] = {}
        if self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                raise StoreError(f"Cannot read store {self.path}: {exc}") from exc
        super().__init__(data.get("pages", []), data.get("versions", []))

    def _save(self) -> None:
        payload = {"pages": self.pages, "versions": self.versions}
        try:
            self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Cannot write store {self.path}: {exc}") from exc

    def apply_field_updates(self, page_id, fields):
        super().apply_field_updates(page_id, fields)
        with self._lock:
            self._save()

    def mark_version_generated(self, version_id):
        super().mark_version_generated(version_id)
        with self._lock:
            self._save()
