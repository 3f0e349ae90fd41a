from __future__ import annotations

import asyncio
import json
import re
import time
from typing import Any

import httpx

from fleet_ledger.core.config import settings
from fleet_ledger.core.logging import get_logger, log_event, monotonic_ms

logger = get_logger(__name__)


class InferenceError(RuntimeError):
    pass


def inference_available() -> bool:
    return bool(settings.receipt_ai_enabled and settings.openai_api_key)


def _timeout_seconds() -> float:
    return float(settings.receipt_ai_timeout_seconds or 30.0)


def _completions_url() -> str:
    return settings.openai_base_url.rstrip("/") + "/chat/completions"


def _headers() -> dict[str, str]:
    return {
        "Authorization": f"Bearer {settings.openai_api_key}",
        "Content-Type": "application/json",
    }


def _payload(messages: list[dict[str, Any]], *, max_tokens: int | None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model": settings.openai_model,
        "temperature": 0,
        "response_format": {"type": "json_object"},
        "messages": messages,
    }
    if max_tokens:
        payload["max_tokens"] = max_tokens
    return payload


def _message_content(resp: httpx.Response) -> str:
    try:
        raw = resp.json()
        msg = raw["choices"][0]["message"]
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise InferenceError("Malformed response from inference service") from e
    if not isinstance(msg, dict):
        raise InferenceError("Malformed response from inference service")
    if msg.get("refusal"):
        raise InferenceError("Inference service refused the request")
    content = msg.get("content")
    if not isinstance(content, str) or not content.strip():
        raise InferenceError("Empty response from inference service")
    return content


def chat_completion(messages: list[dict[str, Any]], *, max_tokens: int | None = None) -> str:
    """Blocking JSON-mode chat completion; returns the raw message content."""
    if not inference_available():
        raise InferenceError("Inference service is not configured")
    start = time.monotonic()
    try:
        resp = httpx.post(
            _completions_url(),
            headers=_headers(),
            json=_payload(messages, max_tokens=max_tokens),
            timeout=_timeout_seconds(),
            follow_redirects=True,
        )
        resp.raise_for_status()
    except httpx.HTTPError as e:
        raise InferenceError(f"Inference request failed: {type(e).__name__}") from e
    log_event(
        logger,
        "inference.call.success",
        model=settings.openai_model,
        duration_ms=monotonic_ms(start),
    )
    return _message_content(resp)


async def chat_completion_async(
    messages: list[dict[str, Any]],
    *,
    max_tokens: int | None = None,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Async variant, bounded by a wall-clock deadline on top of httpx's per-phase timeouts."""
    if not inference_available():
        raise InferenceError("Inference service is not configured")
    timeout = _timeout_seconds()
    payload = _payload(messages, max_tokens=max_tokens)
    start = time.monotonic()

    async def _post(http: httpx.AsyncClient) -> httpx.Response:
        resp = await http.post(_completions_url(), headers=_headers(), json=payload)
        resp.raise_for_status()
        return resp

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned:
                resp = await asyncio.wait_for(_post(owned), timeout=timeout)
        else:
            resp = await asyncio.wait_for(_post(client), timeout=timeout)
    except TimeoutError as e:
        raise InferenceError(f"Inference request timed out after {timeout:g}s") from e
    except httpx.HTTPError as e:
        raise InferenceError(f"Inference request failed: {type(e).__name__}") from e
    log_event(
        logger,
        "inference.call.success",
        model=settings.openai_model,
        duration_ms=monotonic_ms(start),
    )
    return _message_content(resp)


def parse_json_object(content: str) -> Any:
    c = (content or "").strip()
    if not c:
        return None
    try:
        return json.loads(c)
    except ValueError:
        pass

    # Fallback: extract the first {...} block.
    m = re.search(r"\{.*\}", c, re.S)
    if not m:
        return None
    try:
        return json.loads(m.group(0))
    except ValueError:
        return None
