"""
Curation workflow: per-item processing, per-topic batch loop, run loop.

Data flow for one topic:
  fetch rows → WorkItems → fixed-size batches → ConcurrencyLimiter →
  DegradingRetryStrategy → queued updates → BatchUpdater flush

Error policy:
- Invalid input is rejected before any remote call and counted as failed.
- Remote-call failures are absorbed by the retry ladder.
- Store write failures are counted separately ("API ok, DB failed").
- Anything unexpected is caught at the per-item boundary.
- Only a failed fetch (or a missing system instruction) skips a topic; the
  run continues with the next one.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import httpx
import pandas as pd

from .audit import LogSink
from .caller import RemoteCaller
from .config import (
    CREDENTIAL_USAGE_PATH,
    INVALID_TOPICS_PATH,
    RUN_RESULTS_PATH,
    CurationSettings,
)
from .credentials import CredentialPool
from .errors import StoreError
from .limiter import ConcurrencyLimiter, chunked
from .models import RESULT_COLUMNS, CurationOutput, ProcessResult, WorkItem
from .prompts import load_system_instruction
from .retry import AttemptRung, DegradingRetryStrategy
from .stats import RunStatistics, credential_frame
from .store import QuestionStore
from .updater import BatchUpdater


# ---------------------------------------------------------------------------
# Item-level helpers
# ---------------------------------------------------------------------------

def validate_work_item(item: WorkItem) -> str | None:
    """
    Check that an item can be sent to the model.

    Returns:
        ``None`` when usable, otherwise a short reason.
    """
    if not item.statement or not item.statement.strip():
        return "statement is empty"
    if not item.options:
        return "no options"
    if any(not isinstance(opt, str) or not opt.strip() for opt in item.options):
        return "options must be non-empty strings"

    index = item.correct_option_index
    if isinstance(index, bool) or not isinstance(index, int):
        return f"correct option index is not an integer: {index!r}"
    if not 0 <= index < len(item.options):
        return f"correct option index {index} out of range for {len(item.options)} options"
    return None


def build_updates(item: WorkItem, output: CurationOutput) -> dict:
    """
    Store columns to write for a correction, omitting unchanged fields.

    Returns:
        Partial row dict; empty when the model changed nothing.
    """
    proposed = {
        "topic": (output.corrected_topic, item.topic),
        "statement_md": (output.statement, item.statement),
        "options": (list(output.options), list(item.options)),
        "correct_option": (output.correct_option_index, item.correct_option_index),
        "solution_md": (output.hint, item.solution),
    }
    return {
        column: new
        for column, (new, current) in proposed.items()
        if new != current
    }


# ---------------------------------------------------------------------------
# Context and report
# ---------------------------------------------------------------------------

@dataclass
class PipelineContext:
    """Components shared by every item of a run."""

    store: object
    strategy: DegradingRetryStrategy
    limiter: ConcurrencyLimiter
    updater: BatchUpdater
    stats: RunStatistics
    log: LogSink
    batch_size: int = 10
    instruction_loader: Callable[[str], str] = load_system_instruction


@dataclass
class RunReport:
    results: list[ProcessResult] = field(default_factory=list)
    summary: dict = field(default_factory=dict)
    dead_letters: list[dict] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    skipped_topics: list[str] = field(default_factory=list)

    @property
    def unrecovered(self) -> int:
        return sum(1 for r in self.results if r.unrecovered)

    @property
    def all_topics_skipped(self) -> bool:
        return bool(self.topics) and len(self.skipped_topics) == len(self.topics)

    @property
    def exit_code(self) -> int:
        return 1 if self.unrecovered or self.all_topics_skipped else 0


# ---------------------------------------------------------------------------
# Per-item processing
# ---------------------------------------------------------------------------

def _failure(item: WorkItem, error: str) -> ProcessResult:
    return ProcessResult(
        item_id=item.id,
        original_topic=item.topic,
        api_success=False,
        error=error,
    )


async def process_single_question(
    item: WorkItem,
    topic: str,
    instruction: str,
    ctx: PipelineContext,
) -> ProcessResult:
    """
    Curate one item: validate, run the retry ladder, queue the write.

    Never raises; every outcome is a ProcessResult.  The store write itself
    happens at the next flush, so ``db_success`` is filled in later.
    """
    log = ctx.log
    stats = ctx.stats
    try:
        log(f"⚙️ Processing ID {item.id} (stored topic: {item.topic}, curating as {topic})")

        reason = validate_work_item(item)
        if reason is not None:
            log(f"❌ Invalid input for ID {item.id}: {reason}. Skipping without a remote call.")
            stats.increment("invalid_input")
            stats.record_outcome(succeeded=False)
            return _failure(item, f"invalid input: {reason}")

        task = await ctx.strategy.run(item, topic, instruction)
        if not task.succeeded:
            log(f"❌ ID {item.id} failed after {task.attempts} attempts: {task.error}")
            stats.record_outcome(succeeded=False)
            result = _failure(item, task.error or "all attempts failed")
            result.attempts = task.attempts
            return result

        output = task.output
        reclassified = output.corrected_topic != topic
        if reclassified:
            log(f"↪️ ID {item.id} reclassified from \"{topic}\" to \"{output.corrected_topic}\".")

        updates = build_updates(item, output)
        skipped = not updates
        if skipped:
            log(f"ℹ️ ID {item.id}: model returned no changes.")
        else:
            ctx.updater.add(item.id, updates)

        stats.record_outcome(
            succeeded=True,
            retried=task.retried,
            skipped=skipped,
            reclassified=reclassified,
        )
        log(f"✅ ID {item.id} curated on attempt {task.attempts} ({task.rung}, key {task.credential})")
        return ProcessResult(
            item_id=item.id,
            original_topic=item.topic,
            api_success=True,
            new_topic=output.corrected_topic,
            db_success=True if skipped else None,
            skipped=skipped,
            reclassified=reclassified,
            attempts=task.attempts,
            rung=task.rung,
            credential=task.credential,
        )
    except Exception as exc:
        log(f"💥 Unexpected error processing ID {item.id}: {exc!r}\n{traceback.format_exc()}")
        stats.increment("unexpected_errors")
        stats.record_outcome(succeeded=False)
        return _failure(item, f"unexpected error: {exc!r}")


# ---------------------------------------------------------------------------
# Topic and run loops
# ---------------------------------------------------------------------------

async def curate_topic(
    topic: str,
    ctx: PipelineContext,
    max_items: int = 0,
) -> list[ProcessResult] | None:
    """
    Curate every stored item of one topic.

    Returns:
        The topic's results, or ``None`` when the topic could not be
        started (fetch failure or missing instruction).
    """
    log = ctx.log
    log(f"🚧 Starting topic: {topic}")

    try:
        instruction = ctx.instruction_loader(topic)
    except (FileNotFoundError, ValueError) as exc:
        log(f"❌ No usable system instruction for {topic}: {exc}. Skipping topic.")
        return None

    log(f"🔍 Fetching questions for topic {topic}" + (f" (limit {max_items})" if max_items else ""))
    try:
        rows = await ctx.store.fetch(topic, max_items)
    except StoreError as exc:
        log(f"❌ Fetch failed for {topic}: {exc}. Skipping topic.")
        return None

    items = []
    for row in rows:
        if row.get("id") is None:
            log(f"⚠️ Row without id in topic {topic} ignored.")
            continue
        items.append(WorkItem.from_row(row))

    if not items:
        log(f"🏁 No questions to process for {topic}.")
        return []

    ctx.stats.add_items(len(items))
    batches = chunked(items, ctx.batch_size)
    log(f"📦 {len(items)} questions for {topic} split into {len(batches)} batches of up to {ctx.batch_size}")

    def on_error(item: WorkItem, exc: BaseException) -> ProcessResult:
        log(f"💥 Unhandled error escaped item {item.id}: {exc!r}")
        ctx.stats.increment("unexpected_errors")
        ctx.stats.record_outcome(succeeded=False)
        return _failure(item, f"unexpected error: {exc!r}")

    topic_results: list[ProcessResult] = []
    for i, batch in enumerate(batches, start=1):
        log(f"🔄 Batch {i}/{len(batches)} of {topic} ({len(batch)} questions)")
        batch_results = await ctx.limiter.run(
            batch,
            lambda item: process_single_question(item, topic, instruction, ctx),
            on_error=on_error,
        )
        topic_results.extend(batch_results)

        if ctx.updater.should_flush(is_last_batch=(i == len(batches))):
            await ctx.updater.flush()

        api_ok = sum(1 for r in batch_results if r.api_success)
        log(f"📊 Batch {i} done: {len(batch)} questions, {api_ok} curated, "
            f"{len(batch) - api_ok} failed")

    for result in topic_results:
        if result.api_success and result.db_success is None:
            result.db_success = ctx.updater.outcomes.get(result.item_id)

    api_ok = sum(1 for r in topic_results if r.api_success)
    db_ok = sum(1 for r in topic_results if r.db_success)
    log(f"✅ Topic {topic} done. Processed: {len(topic_results)}, "
        f"curated: {api_ok}, stored: {db_ok}")
    return topic_results


async def run_topics(
    topics: list[str],
    ctx: PipelineContext,
    max_items: int = 0,
) -> RunReport:
    """Curate each topic in order; a skipped topic never aborts the run."""
    report = RunReport(topics=list(topics))
    for topic in topics:
        results = await curate_topic(topic, ctx, max_items)
        if results is None:
            report.skipped_topics.append(topic)
            continue
        report.results.extend(results)
    report.dead_letters = list(ctx.updater.dead_letters)
    return report


# ---------------------------------------------------------------------------
# Exports
# ---------------------------------------------------------------------------

def export_run_results(results: list[ProcessResult], path: Path = RUN_RESULTS_PATH) -> Path:
    """Write one CSV row per processed item."""
    path.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame([r.to_record() for r in results], columns=RESULT_COLUMNS)
    df.to_csv(path, index=False)
    return path


def export_dead_letters(dead_letters: list[dict], path: Path = INVALID_TOPICS_PATH) -> Path | None:
    """Write rejected topic suggestions for manual review (nothing when empty)."""
    if not dead_letters:
        return None
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(dead_letters, columns=["item_id", "rejected_topic"]).to_csv(path, index=False)
    return path


# ---------------------------------------------------------------------------
# Run entry point
# ---------------------------------------------------------------------------

async def run_pipeline(
    settings: CurationSettings,
    topics: list[str],
    log: LogSink,
    max_items: int = 0,
    ladder: list[AttemptRung] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    export_dir: Path | None = None,
) -> RunReport:
    """
    Build every component from ``settings`` and curate ``topics``.

    Args:
        settings: Run settings from :func:`config.load_settings`.
        topics: Topic labels, processed in order.
        log: Audit sink.
        max_items: Per-topic item cap (0 = no cap).
        ladder: Retry ladder override.
        transport: httpx transport override (tests use ``MockTransport``).
        export_dir: Directory for CSV exports; defaults to ``logs/``.

    Returns:
        RunReport with per-item results, summary and exit code.
    """
    stats = RunStatistics()
    pool = CredentialPool(settings.api_keys)
    concurrency = settings.effective_concurrency

    log("🚀 Starting question curation pipeline")
    log(f"⚙️ {len(pool)} credentials, concurrency {concurrency}, batch size {settings.batch_size}")
    log(f"🏷️ Topics: {' → '.join(topics)}")

    async with httpx.AsyncClient(transport=transport, timeout=settings.request_timeout) as model_client, \
            httpx.AsyncClient(transport=transport, timeout=settings.store_timeout) as store_client:
        caller = RemoteCaller(
            model_client,
            endpoint=settings.endpoint,
            model_id=settings.model_id,
            timeout=settings.request_timeout,
        )
        store = QuestionStore(store_client, settings.store_url, settings.store_key)
        ctx = PipelineContext(
            store=store,
            strategy=DegradingRetryStrategy(caller, pool, stats, ladder=ladder, log=log),
            limiter=ConcurrencyLimiter(concurrency),
            updater=BatchUpdater(
                store,
                settings.valid_topics,
                group_size=settings.update_group_size,
                flush_threshold=settings.flush_threshold,
                stats=stats,
                log=log,
            ),
            stats=stats,
            log=log,
            batch_size=settings.batch_size,
        )
        report = await run_topics(topics, ctx, max_items)

    log("🏁 Curation pipeline finished")
    report.summary = stats.print_summary(log, pool)

    results_path = RUN_RESULTS_PATH if export_dir is None else Path(export_dir) / RUN_RESULTS_PATH.name
    export_run_results(report.results, results_path)

    usage_path = CREDENTIAL_USAGE_PATH if export_dir is None else Path(export_dir) / CREDENTIAL_USAGE_PATH.name
    usage_path.parent.mkdir(parents=True, exist_ok=True)
    credential_frame(pool).to_csv(usage_path, index=False)

    dead_path = INVALID_TOPICS_PATH if export_dir is None else Path(export_dir) / INVALID_TOPICS_PATH.name
    if export_dead_letters(report.dead_letters, dead_path):
        log(f"⚠️ {len(report.dead_letters)} invalid topic suggestions written to {dead_path}")

    if report.unrecovered:
        log(f"❌ {report.unrecovered} items ended in unrecovered failure")
    if report.all_topics_skipped:
        log("❌ Every requested topic was skipped; nothing was curated")
    return report
