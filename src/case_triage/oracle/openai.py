"""Decision oracle backed by an OpenAI-compatible chat completions API."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Iterable, Mapping

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..core.errors import OracleError
from ..core.logging import get_logger
from ..models import CaseState, Command, FailureEvent
from .base import DecisionOracle

_SYSTEM_PROMPT = """You triage failure events for a case-processing workflow.
Reply with a single JSON object and nothing else:
{"intent": "CALL_TOOL", "capability": "<name>", "args": {...}, "stop": true|false}
Set "stop" to false only when another step is required after this one.
Only these capabilities exist:
"""


def _strip_fences(content: str) -> str:
    stripped = content.strip()
    if stripped.startswith("```"):
        stripped = stripped.split("\n", 1)[1] if "\n" in stripped else ""
        if stripped.rstrip().endswith("```"):
            stripped = stripped.rstrip()[:-3]
    return stripped.strip()


class OpenAIOracle(DecisionOracle):
    """Ask a chat model for the next command.

    The prompt lists the allow-listed capabilities so the model can produce
    well-formed arguments, and carries the event plus the case state so it can
    take earlier steps into account.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        api_key: str,
        model: str,
        capabilities: Iterable[Mapping[str, Any]] = (),
        timeout: float = 30.0,
        retry_max: int = 1,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = endpoint.rstrip("/") + "/chat/completions"
        self._api_key = api_key
        self._model = model
        self._capabilities = [dict(item) for item in capabilities]
        self._timeout = timeout
        self._retry_max = max(0, retry_max)
        self._client = client or httpx.AsyncClient()
        self._logger = get_logger(__name__).bind(component="OpenAIOracle", model=model)

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _build_request(self, event: FailureEvent, state: CaseState) -> dict[str, Any]:
        system_prompt = _SYSTEM_PROMPT + json.dumps(self._capabilities, indent=2)
        user_message = "Event: " + json.dumps(dict(event), default=str) + "\nState: " + json.dumps(
            state.as_payload(), default=str
        )
        return {
            "model": self._model,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
        }

    async def decide_next(self, event: FailureEvent, state: CaseState) -> Command:
        body = await self._post_with_retries(self._build_request(event, state))
        return self._parse_command(body)

    async def _post_with_retries(self, payload: dict[str, Any]) -> dict[str, Any]:
        last_error: Exception | None = None
        for attempt in range(self._retry_max + 1):
            try:
                response = await self._client.post(
                    self._url, headers=self._headers(), json=payload, timeout=self._timeout
                )
                response.raise_for_status()
                return response.json()
            except (httpx.HTTPError, ValueError) as exc:
                last_error = exc
                self._logger.warning("oracle.request.failed", attempt=attempt + 1, error=str(exc))
                if attempt >= self._retry_max:
                    break
                await asyncio.sleep(0.5 * (attempt + 1))
        if isinstance(last_error, httpx.HTTPStatusError):
            raise OracleError(
                f"Oracle HTTP error {last_error.response.status_code}: {last_error.response.text}",
                details={"status_code": last_error.response.status_code},
            ) from last_error
        raise OracleError(f"Oracle request failed: {last_error}") from last_error

    def _parse_command(self, body: Mapping[str, Any]) -> Command:
        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise OracleError("Oracle response did not contain a message") from exc
        try:
            data = json.loads(_strip_fences(str(content)))
        except json.JSONDecodeError as exc:
            raise OracleError(f"Oracle returned non-JSON content: {exc.msg}") from exc
        if not isinstance(data, dict):
            raise OracleError("Oracle command must be a JSON object")
        try:
            return Command.model_validate(data)
        except PydanticValidationError as exc:
            raise OracleError(f"Oracle command is malformed: {exc.error_count()} error(s)") from exc

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["OpenAIOracle"]
