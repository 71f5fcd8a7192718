"""
Shared fixtures and fakes for the curation pipeline tests.

The fakes stand in for the two network collaborators:
  ScriptedCaller — RemoteCaller replacement driven by a per-statement script
  FakeStore      — QuestionStore replacement recording fetches and updates

Both record a concurrency high-water mark so bounds can be asserted.
"""

from __future__ import annotations

import asyncio

import pytest

from src.curation.audit import null_log
from src.curation.caller import CallResult
from src.curation.credentials import CredentialPool
from src.curation.errors import StoreError
from src.curation.limiter import ConcurrencyLimiter
from src.curation.models import WorkItem
from src.curation.parser import validate_curation_output
from src.curation.pipeline import PipelineContext
from src.curation.retry import AttemptRung, DegradingRetryStrategy
from src.curation.stats import RunStatistics
from src.curation.updater import BatchUpdater

TOPICS = [
    "monomios",
    "binomios",
    "trinomios",
    "fatoracao",
    "produtos_notaveis",
    "polinomios_grau_maior_que_3",
]

# Default ladder with the waits removed so tests never sleep.
FAST_LADDER = [
    AttemptRung(name="full", credential_rule="acquire", temperature=0.0),
    AttemptRung(
        name="reduced",
        statement_budget=500,
        option_budget=100,
        solution_budget=500,
        credential_rule="alternate",
        temperature=0.0,
        instruction_suffix="\nRECOVERY",
    ),
    AttemptRung(
        name="minimal",
        statement_budget=250,
        option_budget=60,
        solution_budget=200,
        strip_non_ascii=True,
        credential_rule="alternate",
        temperature=0.3,
        instruction_suffix="\nSTRICT",
    ),
]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def make_row(
    item_id: str = "q1",
    statement: str = "Multiply 3a^2 by -2a^3.",
    options: list[str] | None = None,
    correct: int = 0,
    solution: str | None = "Add the exponents.",
    topic: str = "monomios",
) -> dict:
    """Build a store row using the question table's column names."""
    return {
        "id": item_id,
        "statement_md": statement,
        "options": options if options is not None else ["-6a^5", "6a^5", "-6a^6"],
        "correct_option": correct,
        "solution_md": solution,
        "topic": topic,
        "difficulty": "easy",
    }


def make_item(**kwargs) -> WorkItem:
    return WorkItem.from_row(make_row(**kwargs))


def model_reply(
    topic: str = "monomios",
    statement: str = "Multiply $3a^2$ by $-2a^3$.",
    options: list[str] | None = None,
    index: int = 0,
    hint: str = "Multiply coefficients and add exponents.",
    **extra,
) -> dict:
    """A structured model reply that passes validation."""
    reply = {
        "corrected_topic": topic,
        "statement_latex": statement,
        "options_latex": options if options is not None else ["$-6a^5$", "$6a^5$", "$-6a^6$"],
        "correct_option_index": index,
        "hint": hint,
    }
    reply.update(extra)
    return reply


def completion(content: str | None) -> dict:
    """OpenAI-compatible response body carrying ``content``."""
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


async def no_sleep(seconds: float) -> None:  # noqa: ARG001
    return None


def run(coro):
    """Run a coroutine to completion in a fresh event loop."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class ScriptedCaller:
    """
    RemoteCaller stand-in.

    ``script`` maps a payload statement to a list of outcomes, one per
    attempt for that statement: a reply dict (success) or an exception
    instance (raised).  Statements without a script, or attempts past the
    end of their list, return ``default``.
    """

    def __init__(self, script: dict | None = None, default: dict | None = None,
                 delay: float = 0.0):
        self.script = script or {}
        self.default = default if default is not None else model_reply()
        self.delay = delay
        self.calls: list[dict] = []
        self.in_flight = 0
        self.high_water = 0

    def calls_for(self, statement: str) -> list[dict]:
        return [c for c in self.calls if c["payload"]["statement"] == statement]

    async def call(self, credential, instruction, payload, temperature):
        statement = payload["statement"]
        attempt = len(self.calls_for(statement))
        self.calls.append({
            "key": credential.key,
            "instruction": instruction,
            "payload": payload,
            "temperature": temperature,
        })
        self.in_flight += 1
        self.high_water = max(self.high_water, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            outcomes = self.script.get(statement, [])
            outcome = outcomes[attempt] if attempt < len(outcomes) else self.default
            if isinstance(outcome, BaseException):
                raise outcome
            return CallResult(output=validate_curation_output(outcome), latency_seconds=0.01)
        finally:
            self.in_flight -= 1


class FakeStore:
    """QuestionStore stand-in with injectable failures."""

    def __init__(self, rows_by_topic: dict | None = None, fail_ids=(),
                 fetch_errors=(), delay: float = 0.0):
        self.rows_by_topic = rows_by_topic or {}
        self.fail_ids = set(fail_ids)
        self.fetch_errors = set(fetch_errors)
        self.delay = delay
        self.fetches: list[tuple[str, int]] = []
        self.updates: list[tuple[str, dict]] = []
        self.in_flight = 0
        self.high_water = 0

    async def fetch(self, topic, limit=0):
        self.fetches.append((topic, limit))
        if topic in self.fetch_errors:
            raise StoreError(f"fetch failed for {topic}", status_code=500)
        rows = list(self.rows_by_topic.get(topic, []))
        return rows[:limit] if limit else rows

    async def update(self, item_id, updates):
        self.in_flight += 1
        self.high_water = max(self.high_water, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if item_id in self.fail_ids:
                raise StoreError(f"update rejected for {item_id}", status_code=500)
            self.updates.append((item_id, dict(updates)))
        finally:
            self.in_flight -= 1


class BrokenDriverStore(FakeStore):
    """Store whose update raises a non-store error for selected ids."""

    def __init__(self, broken_ids, **kwargs):
        super().__init__(**kwargs)
        self.broken_ids = set(broken_ids)

    async def update(self, item_id, updates):
        if item_id in self.broken_ids:
            raise RuntimeError("driver bug")
        await super().update(item_id, updates)


class ListLog:
    """Log sink that keeps lines in memory."""

    def __init__(self):
        self.lines: list[str] = []

    def __call__(self, line: str) -> None:
        self.lines.append(line)

    def contains(self, fragment: str) -> bool:
        return any(fragment in line for line in self.lines)


def make_context(
    caller,
    store,
    keys: list[str] | None = None,
    concurrency: int = 3,
    batch_size: int = 10,
    group_size: int = 10,
    flush_threshold: int = 50,
    log=null_log,
    instruction: str = "Curate the question.",
) -> PipelineContext:
    """Wire a PipelineContext around the given fakes."""
    stats = RunStatistics()
    pool = CredentialPool(keys or ["sk-test-key-0001"])
    return PipelineContext(
        store=store,
        strategy=DegradingRetryStrategy(
            caller, pool, stats, ladder=FAST_LADDER, log=log, sleep=no_sleep
        ),
        limiter=ConcurrencyLimiter(concurrency),
        updater=BatchUpdater(
            store,
            TOPICS,
            group_size=group_size,
            flush_threshold=flush_threshold,
            stats=stats,
            log=log,
        ),
        stats=stats,
        log=log,
        batch_size=batch_size,
        instruction_loader=lambda topic: instruction,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def stats():
    return RunStatistics()


@pytest.fixture
def three_key_pool():
    return CredentialPool(["sk-alpha-000001", "sk-bravo-000002", "sk-charlie-0003"])


@pytest.fixture
def list_log():
    return ListLog()
