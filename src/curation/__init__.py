"""
src/curation — question curation pipeline.

Module layout
-------------
config.py       — path constants, env-driven CurationSettings
errors.py       — attempt failure taxonomy, StoreError
models.py       — WorkItem, CurationOutput, TaskResult, ProcessResult
audit.py        — timestamped append-only audit log
credentials.py  — CredentialPool (error-aware least-recently-used keys)
parser.py       — completion extraction, JSON recovery, schema validation
caller.py       — RemoteCaller (one chat completion exchange)
retry.py        — DegradingRetryStrategy and the rung ladder
limiter.py      — ConcurrencyLimiter, chunked
store.py        — QuestionStore (Supabase REST client)
updater.py      — BatchUpdater (grouped write-back)
stats.py        — RunStatistics and summary report
prompts.py      — per-topic system instruction loading
pipeline.py     — item/topic/run loops and CSV exports
cli.py          — command line entry point

Public interface
----------------
Run a full curation pass:
    await run_pipeline(settings, topics, log)

Drive the components directly:
    pool = CredentialPool(keys)
    strategy = DegradingRetryStrategy(caller, pool, stats)
    results = await ConcurrencyLimiter(5).run(items, operation)
"""

from .credentials import Credential, CredentialPool
from .errors import (
    AttemptError,
    EmptyResponse,
    MalformedOutput,
    SchemaViolation,
    StoreError,
    TransportError,
)
from .limiter import ConcurrencyLimiter, chunked
from .models import CurationOutput, ProcessResult, TaskResult, WorkItem
from .pipeline import run_pipeline, run_topics
from .retry import AttemptRung, DegradingRetryStrategy
from .stats import RunStatistics
from .updater import BatchUpdater

__all__ = [
    # Components
    "CredentialPool",
    "Credential",
    "DegradingRetryStrategy",
    "AttemptRung",
    "ConcurrencyLimiter",
    "chunked",
    "BatchUpdater",
    "RunStatistics",
    # Records
    "WorkItem",
    "CurationOutput",
    "TaskResult",
    "ProcessResult",
    # Failures
    "AttemptError",
    "EmptyResponse",
    "MalformedOutput",
    "SchemaViolation",
    "TransportError",
    "StoreError",
    # Entry points
    "run_pipeline",
    "run_topics",
]
