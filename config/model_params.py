"""
Sampling parameters, retry ladder budgets, and execution constants.

This is the AUTHORITATIVE source for all parameter and execution constants.
src/curation/config.py imports from here — do not maintain parallel copies.

Design rationale:
- Temperature 0 on the first two rungs keeps corrections deterministic; the
  last rung raises it slightly so a repeated bad completion is not replayed.
- Budgets are character counts applied per field before JSON encoding.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Topics
# ---------------------------------------------------------------------------

# Processing order when every topic is curated in one run.
TOPIC_SEQUENCE: list[str] = [
    "monomios",
    "binomios",
    "trinomios",
    "fatoracao",
    "produtos_notaveis",
    "polinomios_grau_maior_que_3",
]

DEFAULT_TOPIC: str = "monomios"

# ---------------------------------------------------------------------------
# Retry ladder (one dict per rung, most generous first)
# ---------------------------------------------------------------------------
# Budgets of None leave the field untruncated.
# credential_rule: 'acquire'   → least-errored / least-recently-used
#                  'alternate' → prefer a credential not yet tried for the item

RECOVERY_NOTICE: str = (
    "\n\nNOTE: this is a recovery attempt after a failed response. "
    "Respond with a single JSON object only."
)
STRICT_NOTICE: str = (
    "\n\nSTRICT MODE: output exactly one JSON object and nothing else. "
    "No prose, no markdown, no code fences, ASCII characters only."
)

RETRY_LADDER: list[dict] = [
    {
        "name": "full",
        "statement_budget": None,
        "option_budget": None,
        "solution_budget": None,
        "strip_non_ascii": False,
        "credential_rule": "acquire",
        "temperature": 0.0,
        "instruction_suffix": "",
        "delay_seconds": 0.0,
    },
    {
        "name": "reduced",
        "statement_budget": 500,
        "option_budget": 100,
        "solution_budget": 500,
        "strip_non_ascii": False,
        "credential_rule": "alternate",
        "temperature": 0.0,
        "instruction_suffix": RECOVERY_NOTICE,
        "delay_seconds": 0.25,
    },
    {
        "name": "minimal",
        "statement_budget": 250,
        "option_budget": 60,
        "solution_budget": 200,
        "strip_non_ascii": True,
        "credential_rule": "alternate",
        "temperature": 0.3,
        "instruction_suffix": STRICT_NOTICE,
        "delay_seconds": 0.5,
    },
]

# ---------------------------------------------------------------------------
# Execution parameters
# ---------------------------------------------------------------------------

BATCH_SIZE: int = 10               # work items handed to the limiter at once
MAX_CONCURRENCY: int = 5           # in-flight items across the run
CONCURRENCY_PER_KEY: int = 3       # concurrency is capped at keys × this
UPDATE_GROUP_SIZE: int = 10        # store writes issued together
FLUSH_THRESHOLD: int = 50          # pending updates that force a flush
REQUEST_TIMEOUT_SECONDS: float = 120.0
STORE_TIMEOUT_SECONDS: float = 30.0
