"""Counters and capped samples returned with every sync run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reviewsync.domain.errors import SyncError

DEFAULT_SAMPLE_CAP = 20


@dataclass(slots=True)
class SampleList:
    """Keeps the first ``cap`` items and counts the rest."""

    cap: int = DEFAULT_SAMPLE_CAP
    items: list[dict[str, object]] = field(default_factory=list[dict[str, object]])
    total: int = 0

    def add(self, item: dict[str, object]) -> None:
        self.total += 1
        if len(self.items) < self.cap:
            self.items.append(item)

    def to_dict(self) -> dict[str, object]:
        return {"total": self.total, "samples": list(self.items)}


@dataclass(slots=True)
class SyncCounts:
    considered: int = 0
    matched: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "considered": self.considered,
            "matched": self.matched,
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
        }


@dataclass(slots=True)
class SyncDiagnostics:
    sample_cap: int = DEFAULT_SAMPLE_CAP
    step: str = "idle"
    tenant_id: str | None = None
    token_refreshed: bool = False
    pages_fetched: int = 0
    per_page_counts: list[int] = field(default_factory=list[int])
    page_ceiling_reached: bool = False
    batch_sizes: list[int] = field(default_factory=list[int])
    skipped: SampleList = field(init=False)
    invalid_ids: SampleList = field(init=False)
    errors: SampleList = field(init=False)
    notes: list[str] = field(default_factory=list[str])
    extra: dict[str, int] = field(default_factory=dict[str, int])

    def __post_init__(self) -> None:
        self.skipped = SampleList(cap=self.sample_cap)
        self.invalid_ids = SampleList(cap=self.sample_cap)
        self.errors = SampleList(cap=self.sample_cap)

    def record_page(self, record_count: int) -> None:
        self.pages_fetched += 1
        self.per_page_counts.append(record_count)

    def record_batch(self, size: int) -> None:
        self.batch_sizes.append(size)

    def skip(self, record_id: str | None, reason: str, **extra: object) -> None:
        self.skipped.add({"id": record_id, "reason": reason, **extra})

    def invalid(self, identifier: str | None) -> None:
        self.invalid_ids.add({"id": identifier})

    def error(self, record_id: str | None, error: SyncError) -> None:
        self.errors.add({"id": record_id, "code": error.code, "message": error.message})

    def note(self, message: str) -> None:
        self.notes.append(message)

    def bump(self, key: str, amount: int = 1) -> None:
        self.extra[key] = self.extra.get(key, 0) + amount

    def to_dict(self) -> dict[str, object]:
        return {
            "step": self.step,
            "tenant_id": self.tenant_id,
            "token_refreshed": self.token_refreshed,
            "pages_fetched": self.pages_fetched,
            "per_page_counts": list(self.per_page_counts),
            "page_ceiling_reached": self.page_ceiling_reached,
            "batch_sizes": list(self.batch_sizes),
            "skipped": self.skipped.to_dict(),
            "invalid_ids": self.invalid_ids.to_dict(),
            "errors": self.errors.to_dict(),
            "notes": list(self.notes),
            "extra": dict(self.extra),
        }
