"""
Path constants and environment-driven settings for the curation pipeline.

Endpoint and parameter constants live in the root ``config`` package; this
module re-exports the ones the pipeline needs and resolves everything that
depends on the environment (credentials, store location, overrides).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from config.api_config import MODEL_SERVICE, RESPONSE_FORMAT, STORE
from config.model_params import (
    BATCH_SIZE,
    CONCURRENCY_PER_KEY,
    DEFAULT_TOPIC,
    FLUSH_THRESHOLD,
    MAX_CONCURRENCY,
    REQUEST_TIMEOUT_SECONDS,
    RETRY_LADDER,
    STORE_TIMEOUT_SECONDS,
    TOPIC_SEQUENCE,
    UPDATE_GROUP_SIZE,
)

# ---------------------------------------------------------------------------
# Project paths
# ---------------------------------------------------------------------------

# Resolve from this file: src/curation/config.py → src/curation → src → root
PROJECT_ROOT = Path(__file__).resolve().parents[2]

LOGS_DIR = PROJECT_ROOT / "logs"
CONFIG_DIR = PROJECT_ROOT / "config"
PROMPTS_DIR = CONFIG_DIR / "prompts"

AUDIT_LOG_PATH = LOGS_DIR / "curation-pipeline.log"
RUN_RESULTS_PATH = LOGS_DIR / "run_results.csv"
INVALID_TOPICS_PATH = LOGS_DIR / "invalid_topics.csv"
CREDENTIAL_USAGE_PATH = LOGS_DIR / "credential_usage.csv"

__all__ = [
    "AUDIT_LOG_PATH",
    "BATCH_SIZE",
    "CREDENTIAL_USAGE_PATH",
    "CurationSettings",
    "DEFAULT_TOPIC",
    "FLUSH_THRESHOLD",
    "INVALID_TOPICS_PATH",
    "LOGS_DIR",
    "MODEL_SERVICE",
    "PROMPTS_DIR",
    "RESPONSE_FORMAT",
    "RETRY_LADDER",
    "RUN_RESULTS_PATH",
    "STORE",
    "TOPIC_SEQUENCE",
    "UPDATE_GROUP_SIZE",
    "load_settings",
]


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------

def _env_int(key: str, default: int) -> int:
    """Convert an environment variable to int."""
    val = os.environ.get(key)
    if val is None or val.strip() == "":
        return default
    try:
        return int(val)
    except ValueError:
        raise ValueError(
            f"The value '{val}' of environment variable '{key}' "
            "cannot be converted to an integer."
        )


def _env_float(key: str, default: float) -> float:
    """Convert an environment variable to float."""
    val = os.environ.get(key)
    if val is None or val.strip() == "":
        return default
    try:
        return float(val)
    except ValueError:
        raise ValueError(
            f"The value '{val}' of environment variable '{key}' "
            "cannot be converted to a number."
        )


def _require_env(key: str) -> str:
    value = os.environ.get(key, "").strip()
    if not value:
        raise ValueError(
            f"Required configuration missing. Set the '{key}' environment "
            "variable before running the pipeline."
        )
    return value


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@dataclass
class CurationSettings:
    """Everything a run needs that comes from the environment."""

    store_url: str
    store_key: str
    api_keys: list[str]
    endpoint: str = str(MODEL_SERVICE["endpoint"])
    model_id: str = str(MODEL_SERVICE["model_id"])
    batch_size: int = BATCH_SIZE
    max_concurrency: int = MAX_CONCURRENCY
    update_group_size: int = UPDATE_GROUP_SIZE
    flush_threshold: int = FLUSH_THRESHOLD
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    store_timeout: float = STORE_TIMEOUT_SECONDS
    valid_topics: list[str] = field(default_factory=lambda: list(TOPIC_SEQUENCE))

    @property
    def effective_concurrency(self) -> int:
        """Concurrency capped at ``CONCURRENCY_PER_KEY`` per credential."""
        cap = max(1, len(self.api_keys) * CONCURRENCY_PER_KEY)
        return max(1, min(self.max_concurrency, cap))


def load_api_keys(env_names: list[str] | None = None) -> list[str]:
    """
    Collect model-service credentials from the environment.

    Unset or blank variables are skipped; order follows ``env_names``.

    Args:
        env_names: Variable names to read (defaults to ``MODEL_SERVICE``).

    Returns:
        List of non-empty key strings (may be empty).
    """
    names = env_names or list(MODEL_SERVICE["api_key_envs"])
    keys: list[str] = []
    for name in names:
        value = os.environ.get(name, "").strip()
        if value:
            keys.append(value)
    return keys


def load_settings() -> CurationSettings:
    """
    Load run settings from environment variables.

    Returns:
        CurationSettings

    Raises:
        ValueError: If the store location, store key, or every model-service
                    credential is missing, or a numeric override is invalid.
    """
    store_url = _require_env(STORE["url_env"]).rstrip("/")
    store_key = _require_env(STORE["key_env"])

    api_keys = load_api_keys()
    if not api_keys:
        first = list(MODEL_SERVICE["api_key_envs"])[0]
        raise ValueError(
            f"No model-service credentials found. Set at least '{first}'."
        )

    return CurationSettings(
        store_url=store_url,
        store_key=store_key,
        api_keys=api_keys,
        batch_size=_env_int("BATCH_SIZE", BATCH_SIZE),
        max_concurrency=_env_int("MAX_CONCURRENCY", MAX_CONCURRENCY),
        request_timeout=_env_float("REQUEST_TIMEOUT_SECONDS", REQUEST_TIMEOUT_SECONDS),
    )
