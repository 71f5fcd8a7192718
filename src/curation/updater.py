"""
Grouped write-back of corrections to the store.

Successful corrections are queued and written in groups: rows of one group
are updated concurrently, groups one after another.  A queued update whose
topic label is not a known topic has that field removed; the row is also
recorded in :attr:`BatchUpdater.dead_letters` for manual follow-up.
"""

from __future__ import annotations

import asyncio

from .audit import LogSink, null_log
from .errors import StoreError
from .limiter import chunked
from .stats import RunStatistics


class BatchUpdater:
    """Accumulates ``(item_id, updates)`` pairs and flushes them in groups."""

    def __init__(
        self,
        store,
        valid_topics: list[str],
        group_size: int = 10,
        flush_threshold: int = 50,
        stats: RunStatistics | None = None,
        log: LogSink = null_log,
    ):
        if group_size < 1:
            raise ValueError(f"group_size must be positive, got {group_size}.")
        self.store = store
        self.valid_topics = set(valid_topics)
        self.group_size = group_size
        self.flush_threshold = flush_threshold
        self.stats = stats
        self.log = log
        self.pending: list[tuple[str, dict]] = []
        self.outcomes: dict[str, bool] = {}
        self.dead_letters: list[dict] = []

    def add(self, item_id: str, updates: dict) -> None:
        self.pending.append((item_id, dict(updates)))

    def should_flush(self, is_last_batch: bool = False) -> bool:
        if not self.pending:
            return False
        return is_last_batch or len(self.pending) >= self.flush_threshold

    async def flush(self) -> int:
        """Write every pending update; returns the number of successful writes."""
        pending, self.pending = self.pending, []
        if not pending:
            return 0
        self.log(f"💾 Flushing {len(pending)} pending updates in groups of {self.group_size}")
        written = await self.apply(pending)
        self.log(f"💾 Flush complete: {written}/{len(pending)} rows written")
        return written

    def _sanitize(self, item_id: str, updates: dict) -> dict:
        topic = updates.get("topic")
        if topic is not None and topic not in self.valid_topics:
            self.log(
                f"⚠️ Invalid topic \"{topic}\" suggested for ID {item_id}; "
                "dropping the topic field from the update."
            )
            self.dead_letters.append({"item_id": item_id, "rejected_topic": topic})
            updates = {k: v for k, v in updates.items() if k != "topic"}
        return updates

    def _mark_failed(self, item_id: str) -> bool:
        if self.stats is not None:
            self.stats.record_db_failure()
        self.outcomes[item_id] = False
        return False

    async def _write_one(self, item_id: str, updates: dict) -> bool:
        updates = self._sanitize(item_id, updates)
        if not updates:
            self.log(f"ℹ️ Nothing left to update for ID {item_id}.")
            self.outcomes[item_id] = True
            return True

        try:
            await self.store.update(item_id, updates)
        except StoreError as exc:
            self.log(f"❌ Store update failed for ID {item_id}: {exc}")
            return self._mark_failed(item_id)
        except Exception as exc:
            self.log(f"💥 Unexpected error updating ID {item_id}: {exc!r}")
            return self._mark_failed(item_id)

        if self.stats is not None:
            self.stats.record_db_update()
        self.outcomes[item_id] = True
        return True

    async def apply(self, pairs: list[tuple[str, dict]]) -> int:
        """
        Issue the updates group by group.

        Args:
            pairs: ``(item_id, field_updates)`` tuples.

        Returns:
            Count of rows written successfully (no-op rows included).
        """
        written = 0
        for group in chunked(list(pairs), self.group_size):
            results = await asyncio.gather(
                *(self._write_one(item_id, updates) for item_id, updates in group)
            )
            written += sum(1 for ok in results if ok)
        return written
