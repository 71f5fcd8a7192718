"""
Model service and relational store configuration.

This is the AUTHORITATIVE source for endpoint configuration.
src/curation/config.py imports from here — do not maintain parallel copies.

ENVIRONMENT VARIABLES REQUIRED:
    SUPABASE_URL          — base URL of the hosted store (https://<ref>.supabase.co)
    SUPABASE_SERVICE_KEY  — service-role key used for reads and partial updates
    DEEPSEEK_API_KEY      — first model-service credential (at least one required)

OPTIONAL:
    DEEPSEEK_API_KEY_2 … DEEPSEEK_API_KEY_5 — extra credentials for rotation
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Model service
# ---------------------------------------------------------------------------
#
# Fields:
#   endpoint      — full URL of the OpenAI-compatible chat completion API
#   model_id      — provider-specific model identifier string
#   auth_type     — 'bearer' → Authorization: Bearer <key> header
#   api_key_envs  — env vars holding interchangeable credentials, in order

MODEL_SERVICE: dict[str, object] = {
    "endpoint": "https://api.deepseek.com/v1/chat/completions",
    "model_id": "deepseek-reasoner",
    "auth_type": "bearer",
    "api_key_envs": [
        "DEEPSEEK_API_KEY",
        "DEEPSEEK_API_KEY_2",
        "DEEPSEEK_API_KEY_3",
        "DEEPSEEK_API_KEY_4",
        "DEEPSEEK_API_KEY_5",
    ],
}

# Ask the service for a bare JSON object; providers that ignore the hint are
# still handled by the embedded-object extraction in the parser.
RESPONSE_FORMAT: dict[str, str] = {"type": "json_object"}

# ---------------------------------------------------------------------------
# Relational store (Supabase / PostgREST)
# ---------------------------------------------------------------------------

STORE: dict[str, str] = {
    "url_env": "SUPABASE_URL",
    "key_env": "SUPABASE_SERVICE_KEY",
    "rest_path": "/rest/v1",
    "table": "questions",
}
