"""
Degrading retry ladder for a single work item.

Each rung is an :class:`AttemptRung` holding the payload budgets and the
call settings for one attempt.  The strategy walks the rungs in order until
one produces a validated output.

Default ladder (``config.model_params.RETRY_LADDER``):
  full    → untruncated payload, best credential, temperature 0
  reduced → truncated payload, untried credential, recovery notice
  minimal → shorter ASCII-only payload, untried credential, temperature 0.3
"""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass

from .audit import LogSink, null_log
from .config import RETRY_LADDER
from .credentials import Credential, CredentialPool
from .errors import AttemptError
from .models import FAILED, SUCCESS, TaskResult, WorkItem
from .stats import RunStatistics

ACQUIRE = "acquire"
ALTERNATE = "alternate"

_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E]+")
_SPACES_RE = re.compile(r" {2,}")


@dataclass(frozen=True)
class AttemptRung:
    """Configuration of one attempt in the ladder."""

    name: str
    statement_budget: int | None = None
    option_budget: int | None = None
    solution_budget: int | None = None
    strip_non_ascii: bool = False
    credential_rule: str = ACQUIRE
    temperature: float = 0.0
    instruction_suffix: str = ""
    delay_seconds: float = 0.0

    def __post_init__(self):
        if self.credential_rule not in (ACQUIRE, ALTERNATE):
            raise ValueError(
                f"Unknown credential_rule '{self.credential_rule}' for rung '{self.name}'."
            )


def ladder_from_config(rungs: list[dict] = RETRY_LADDER) -> list[AttemptRung]:
    """Build the rung list from plain config dicts."""
    return [AttemptRung(**rung) for rung in rungs]


DEFAULT_LADDER: list[AttemptRung] = ladder_from_config()


# ---------------------------------------------------------------------------
# Payload degradation
# ---------------------------------------------------------------------------

def strip_to_ascii(text: str) -> str:
    """Replace control and non-ASCII runs with a space and collapse spaces."""
    return _SPACES_RE.sub(" ", _NON_PRINTABLE_RE.sub(" ", text)).strip()


def degrade_text(text: str | None, budget: int | None, strip_non_ascii: bool) -> str:
    text = text or ""
    if strip_non_ascii:
        text = strip_to_ascii(text)
    if budget is not None:
        text = text[:budget]
    return text


def build_item_payload(item: WorkItem, topic: str, rung: AttemptRung) -> dict:
    """
    User-message payload for one rung.

    Args:
        item: Work item being curated.
        topic: Topic the item is being curated under.
        rung: Rung whose budgets apply.

    Returns:
        JSON-serializable dict sent as the user message.
    """
    strip = rung.strip_non_ascii
    return {
        "statement": degrade_text(item.statement, rung.statement_budget, strip),
        "options": [
            degrade_text(str(opt), rung.option_budget, strip) for opt in item.options
        ],
        "correct_option": item.correct_option_index,
        "solution": degrade_text(item.solution, rung.solution_budget, strip),
        "current_topic_being_processed": topic,
    }


def rung_delay(rung: AttemptRung, attempt: int) -> float:
    """Seconds to wait before ``attempt`` (1-based); rung 1 never waits."""
    if attempt <= 1:
        return 0.0
    return max(rung.delay_seconds, 0.0)


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------

class DegradingRetryStrategy:
    """Walks the ladder for one item; at most ``len(ladder)`` remote calls."""

    def __init__(
        self,
        caller,
        pool: CredentialPool,
        stats: RunStatistics,
        ladder: list[AttemptRung] | None = None,
        log: LogSink = null_log,
        sleep=asyncio.sleep,
    ):
        self.caller = caller
        self.pool = pool
        self.stats = stats
        self.ladder = list(ladder) if ladder is not None else list(DEFAULT_LADDER)
        if not self.ladder:
            raise ValueError("Retry ladder must contain at least one rung.")
        self.log = log
        self.sleep = sleep

    @property
    def max_attempts(self) -> int:
        return len(self.ladder)

    def _select_credential(self, rung: AttemptRung, tried: set[str]) -> Credential:
        if rung.credential_rule == ALTERNATE:
            return self.pool.acquire_alternate(tried)
        return self.pool.acquire()

    async def run(self, item: WorkItem, topic: str, instruction: str) -> TaskResult:
        """
        Curate one work item through the ladder.

        Classified failures (:class:`AttemptError`) count against the
        credential and move to the next rung.  Any other exception
        propagates to the per-item boundary.

        Returns:
            Exactly one TaskResult: success with the first valid output, or
            failure carrying every rung's reason.
        """
        tried: set[str] = set()
        reasons: list[str] = []

        for attempt, rung in enumerate(self.ladder, start=1):
            delay = rung_delay(rung, attempt)
            if delay:
                await self.sleep(delay)

            credential = self._select_credential(rung, tried)
            tried.add(credential.key)
            payload = build_item_payload(item, topic, rung)

            if attempt > 1:
                self.log(
                    f"🔁 Retry {attempt}/{self.max_attempts} ({rung.name}) for ID {item.id} "
                    f"(key {credential.label}, temperature {rung.temperature})"
                )

            start = time.monotonic()
            try:
                result = await self.caller.call(
                    credential,
                    instruction + rung.instruction_suffix,
                    payload,
                    rung.temperature,
                )
            except AttemptError as exc:
                self.stats.record_latency(time.monotonic() - start)
                self.pool.record_error(credential)
                self.stats.record_api_error()
                reasons.append(f"{rung.name}: {exc}")
                self.log(
                    f"❌ Attempt {attempt}/{self.max_attempts} ({rung.name}) failed for "
                    f"ID {item.id} (key {credential.label}): {str(exc)[:200]}"
                )
                continue

            self.stats.record_latency(result.latency_seconds)
            return TaskResult(
                item_id=item.id,
                status=SUCCESS,
                output=result.output,
                attempts=attempt,
                rung=rung.name,
                credential=credential.label,
                retried=attempt > 1,
                errors=reasons,
            )

        return TaskResult(
            item_id=item.id,
            status=FAILED,
            attempts=self.max_attempts,
            error="; ".join(reasons),
            errors=reasons,
        )
