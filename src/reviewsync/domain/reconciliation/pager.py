"""Shared pagination and batch fetching over provider capabilities."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from reviewsync.domain.errors import ProviderError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

    from reviewsync.domain.ports.providers import Cursor, ProviderCapability
    from reviewsync.domain.reconciliation.diagnostics import SyncDiagnostics

log = getLogger(__name__)

DEFAULT_MAX_PAGES = 50
DEFAULT_BATCH_SIZE = 100


class ProviderPager:
    """Walks a provider listing page by page, always from the first page.

    Paging stops on an empty page, on a missing next cursor, or at
    ``max_pages``; hitting the ceiling is reported in diagnostics, not raised.
    """

    def __init__(
        self,
        *,
        max_pages: int = DEFAULT_MAX_PAGES,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        if max_pages < 1 or batch_size < 1:
            raise ValueError("max_pages and batch_size must be positive")
        self.max_pages = max_pages
        self.batch_size = batch_size

    async def fetch_all[TQuery, TRecord](
        self,
        capability: ProviderCapability[TQuery, TRecord],
        access_token: str,
        query: TQuery,
        diagnostics: SyncDiagnostics,
    ) -> AsyncIterator[TRecord]:
        cursor: Cursor = None
        for _ in range(self.max_pages):
            page = await capability.list_page(access_token, query, cursor)
            diagnostics.record_page(len(page.records))
            if not page.records:
                return
            for record in page.records:
                yield record
            if page.next_cursor is None:
                return
            cursor = page.next_cursor

        diagnostics.page_ceiling_reached = True
        diagnostics.note(f"Stopped after {self.max_pages} pages; later pages were not fetched")
        log.warning(f"{capability.kind} paging hit the {self.max_pages} page ceiling")

    async def fetch_in_batches[TRecord](
        self,
        fetch_batch: Callable[[Sequence[str]], Awaitable[Sequence[TRecord]]],
        ids: Sequence[str],
        diagnostics: SyncDiagnostics,
    ) -> list[TRecord]:
        results: list[TRecord] = []
        for start in range(0, len(ids), self.batch_size):
            batch = ids[start : start + self.batch_size]
            diagnostics.record_batch(len(batch))
            try:
                records = await fetch_batch(batch)
            except ProviderError as exc:
                end = start + len(batch) - 1
                raise ProviderError(
                    f"Batch {start}-{end} failed: {exc.message}",
                    status=exc.status,
                    body=exc.body,
                    reason=f"batch {start}-{end}",
                ) from exc
            results.extend(records)
        return results
