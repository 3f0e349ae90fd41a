from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from fleet_ledger.core.inference import (
    InferenceError,
    chat_completion_async,
    parse_json_object,
)


def _completion_body(content, **message):
    return {"choices": [{"message": {"role": "assistant", "content": content, **message}}]}


def _run_with_transport(handler, **kwargs):
    async def _run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await chat_completion_async(
                [{"role": "user", "content": "hi"}], client=client, **kwargs
            )

    return asyncio.run(_run())


def test_chat_completion_sends_json_mode_request():
    from fleet_ledger.core.config import settings

    seen: dict = {}

    def _handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion_body('{"ok": true}'))

    content = _run_with_transport(_handler, max_tokens=1000)

    assert content == '{"ok": true}'
    assert seen["url"].endswith("/chat/completions")
    assert seen["auth"] == f"Bearer {settings.openai_api_key}"
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert seen["body"]["max_tokens"] == 1000
    assert seen["body"]["model"] == settings.openai_model


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "upstream"}),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json=_completion_body(None, refusal="I can't help with that")),
        httpx.Response(200, json=_completion_body("   ")),
    ],
)
def test_chat_completion_failures_raise_inference_error(response):
    with pytest.raises(InferenceError):
        _run_with_transport(lambda request: response)


def test_chat_completion_enforces_deadline(monkeypatch):
    from fleet_ledger.core.config import settings

    monkeypatch.setattr(settings, "receipt_ai_timeout_seconds", 0.05)

    async def _slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json=_completion_body("{}"))

    with pytest.raises(InferenceError, match="timed out"):
        _run_with_transport(_slow)


def test_chat_completion_requires_api_key(monkeypatch):
    from fleet_ledger.core.config import settings

    monkeypatch.setattr(settings, "openai_api_key", None)

    with pytest.raises(InferenceError, match="not configured"):
        _run_with_transport(lambda request: httpx.Response(200, json=_completion_body("{}")))


def test_parse_json_object_extracts_embedded_block():
    assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_object("") is None
    assert parse_json_object("{broken") is None
