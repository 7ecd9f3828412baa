from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class PageResult:
    page_id: str
    path: str
    status: str
    message: Optional[str] = None
    model: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"pageId": self.page_id, "path": self.path, "status": self.status}
        if self.message is not None:
            data["message"] = self.message
        if self.model is not None:
            data["model"] = self.model
        return data


@dataclass(frozen=True)
class BatchReport:
    total: int
    success_count: int
    error_count: int
    results: List[PageResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, total: int, results: List[PageResult]) -> "BatchReport":
        success = sum(1 for r in results if r.ok)
        return cls(total=total, success_count=success, error_count=len(results) - success, results=list(results))


@dataclass(frozen=True)
class InitEvent:
    total: int
    model: str
    type: str = field(default="init", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "total": self.total, "model": self.model}


@dataclass(frozen=True)
class ProgressEvent:
    current: int
    total: int
    path: str
    type: str = field(default="progress", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "current": self.current, "total": self.total, "path": self.path}


@dataclass(frozen=True)
class CompleteEvent:
    report: BatchReport
    model: str
    type: str = field(default="complete", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "success": True,
            "total": self.report.total,
            "successCount": self.report.success_count,
            "errorCount": self.report.error_count,
            "model": self.model,
            "results": [r.to_dict() for r in self.report.results],
        }


@dataclass(frozen=True)
class ErrorEvent:
    error: str
    type: str = field(default="error", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "error": self.error}


Event = Union[InitEvent, ProgressEvent, CompleteEvent, ErrorEvent]


def format_sse(event: Event) -> str:
    return f"data: {json.dumps(event.to_dict(), ensure_ascii=False)}\n\n"


class ProgressSink:
    """Destination for batch events; ``close`` is called exactly once."""

    def send(self, event: Event) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class ListSink(ProgressSink):
    def __init__(self) -> None:
        self.events: List[Event] = []
        self.closed = False

    def send(self, event):
        self.events.append(event)

    def close(self):
        self.closed = True
