"""
One request/response exchange with the chat completion service.

Request construction follows the OpenAI-compatible wire format; the reply is
handed to :mod:`parser` and either a validated :class:`CurationOutput` comes
back or one of the typed :mod:`errors` is raised.  Nothing here touches
shared state.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass

import httpx

from .config import MODEL_SERVICE, REQUEST_TIMEOUT_SECONDS, RESPONSE_FORMAT
from .credentials import Credential
from .errors import MalformedOutput, TransportError
from .models import CurationOutput
from .parser import parse_curation_response


@dataclass
class CallResult:
    output: CurationOutput
    latency_seconds: float


def build_request_headers(credential: Credential) -> dict:
    """Bearer-auth JSON headers for one credential."""
    return {
        "Authorization": f"Bearer {credential.key}",
        "Content-Type": "application/json",
    }


def build_request_payload(
    model_id: str,
    instruction: str,
    payload: dict,
    temperature: float,
    response_format: dict | None = RESPONSE_FORMAT,
) -> dict:
    """
    Construct the chat completion request body.

    The work item travels as the JSON-encoded user message; the system
    instruction is opaque text supplied by the caller.
    """
    body: dict = {
        "model": model_id,
        "temperature": temperature,
        "messages": [
            {"role": "system", "content": instruction},
            {"role": "user", "content": json.dumps(payload, ensure_ascii=False)},
        ],
    }
    if response_format:
        body["response_format"] = dict(response_format)
    return body


class RemoteCaller:
    """Performs a single chat completion call and validates its output."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoint: str = str(MODEL_SERVICE["endpoint"]),
        model_id: str = str(MODEL_SERVICE["model_id"]),
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.client = client
        self.endpoint = endpoint
        self.model_id = model_id
        self.timeout = timeout

    async def call(
        self,
        credential: Credential,
        instruction: str,
        payload: dict,
        temperature: float,
    ) -> CallResult:
        """
        Send one request and return the validated output.

        Args:
            credential: Credential whose key authenticates the request.
            instruction: System instruction text.
            payload: JSON-serializable work item payload.
            temperature: Sampling temperature for this attempt.

        Returns:
            CallResult with the parsed output and the call latency.

        Raises:
            TransportError: Timeout, connection failure or non-2xx status.
            EmptyResponse: The completion had no content.
            MalformedOutput: No JSON object could be recovered.
            SchemaViolation: Required fields missing or invalid.
        """
        body = build_request_payload(self.model_id, instruction, payload, temperature)

        start = time.monotonic()
        try:
            response = await self.client.post(
                self.endpoint,
                headers=build_request_headers(credential),
                json=body,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"request timed out after {self.timeout}s: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc
        latency = round(time.monotonic() - start, 3)

        if response.status_code >= 400:
            raise TransportError(
                f"service returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            response_json = response.json()
        except ValueError as exc:
            raise MalformedOutput(f"response body is not JSON: {exc}") from exc

        output = parse_curation_response(response_json)
        return CallResult(output=output, latency_seconds=latency)
