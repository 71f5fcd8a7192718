"""
Run-level counters and the end-of-run summary report.

A single RunStatistics instance is created per run and passed into every
component that records outcomes.  Derived rates are computed only when
:meth:`RunStatistics.summary` is called.
"""

from __future__ import annotations

import threading
import time

import pandas as pd

from .audit import LogSink
from .credentials import CredentialPool

COUNTERS: tuple[str, ...] = (
    "total_items",
    "processed",
    "succeeded",
    "failed",
    "skipped",
    "retry_success",
    "api_errors",
    "db_updates",
    "db_failures",
    "reclassified",
    "invalid_input",
    "unexpected_errors",
)


class RunStatistics:
    """Lock-guarded counters plus call-latency samples."""

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self.start_time = clock()
        self.latencies: list[float] = []
        for name in COUNTERS:
            setattr(self, name, 0)

    def increment(self, name: str, amount: int = 1) -> None:
        if name not in COUNTERS:
            raise ValueError(f"Unknown counter '{name}'.")
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)

    # Named shortcuts used by the pipeline components.

    def add_items(self, count: int) -> None:
        self.increment("total_items", count)

    def record_api_error(self) -> None:
        self.increment("api_errors")

    def record_db_update(self) -> None:
        self.increment("db_updates")

    def record_db_failure(self) -> None:
        self.increment("db_failures")

    def record_latency(self, seconds: float) -> None:
        with self._lock:
            self.latencies.append(float(seconds))

    def record_outcome(
        self,
        succeeded: bool,
        retried: bool = False,
        skipped: bool = False,
        reclassified: bool = False,
    ) -> None:
        """Account for one finished work item."""
        with self._lock:
            self.processed += 1
            if succeeded:
                self.succeeded += 1
                if retried:
                    self.retry_success += 1
                if skipped:
                    self.skipped += 1
                if reclassified:
                    self.reclassified += 1
            else:
                self.failed += 1

    def summary(self) -> dict:
        """
        Snapshot of all counters plus derived rates.

        Returns:
            Dict with every counter and ``duration_seconds``,
            ``percent_processed``, ``average_latency_seconds`` and
            ``throughput_per_second``.
        """
        with self._lock:
            data = {name: getattr(self, name) for name in COUNTERS}
            latencies = list(self.latencies)
        duration = max(self._clock() - self.start_time, 0.0)

        data["duration_seconds"] = round(duration, 1)
        data["percent_processed"] = (
            round(data["processed"] / data["total_items"] * 100, 1)
            if data["total_items"] else 0.0
        )
        data["average_latency_seconds"] = (
            round(sum(latencies) / len(latencies), 3) if latencies else 0.0
        )
        data["throughput_per_second"] = (
            round(data["processed"] / duration, 2) if duration > 0 else 0.0
        )
        return data

    def print_summary(self, log: LogSink, pool: CredentialPool | None = None) -> dict:
        """Write the summary report through ``log`` and return it."""
        s = self.summary()
        log("📊 CURATION RUN SUMMARY:")
        log(f"   Duration: {s['duration_seconds']}s")
        log(f"   Items seen: {s['total_items']} | processed: {s['processed']} "
            f"({s['percent_processed']}%)")
        log(f"   Succeeded: {s['succeeded']} (after retry: {s['retry_success']}, "
            f"no changes: {s['skipped']})")
        log(f"   Failed: {s['failed']} (invalid input: {s['invalid_input']}, "
            f"unexpected: {s['unexpected_errors']})")
        log(f"   API errors (per attempt): {s['api_errors']}")
        log(f"   Store updates: {s['db_updates']} | store failures: {s['db_failures']}")
        log(f"   Reclassified: {s['reclassified']}")
        log(f"   Average latency: {s['average_latency_seconds']}s | "
            f"throughput: {s['throughput_per_second']} items/s")

        if pool is not None:
            log("🔑 CREDENTIAL USAGE:")
            for row in pool.snapshot():
                log(f"   Key #{row['index']} ({row['label']}): {row['calls']} calls, "
                    f"{row['errors']} errors ({row['error_rate']}%)")
        return s


def credential_frame(pool: CredentialPool) -> pd.DataFrame:
    """Per-credential usage as a DataFrame (one row per credential)."""
    return pd.DataFrame(
        pool.snapshot(),
        columns=["index", "label", "calls", "errors", "error_rate"],
    )
