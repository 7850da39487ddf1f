import json

import httpx
import pytest

from trip_importer.services.llm_client import (
    ChatCompletionsGenerator,
    LLMError,
    parse_json_response,
    strip_code_fences,
)


def _generator(handler, api_key="sk-test"):
    return ChatCompletionsGenerator(
        "gpt-4o-mini",
        api_key=api_key,
        base_url="https://llm.example.com/v1/",
        timeout=5,
        temperature=0.1,
        transport=httpx.MockTransport(handler),
    )


def _completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.mark.asyncio
async def test_generate_posts_chat_completion_and_returns_content():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion('{"places": []}'))

    text = await _generator(handler).generate("find places", system_prompt="be precise")

    assert text == '{"places": []}'
    assert seen["url"] == "https://llm.example.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "gpt-4o-mini"
    assert seen["body"]["response_format"] == {"type": "json_object"}
    assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]


@pytest.mark.asyncio
async def test_generate_without_json_mode_omits_response_format():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_completion("plain text"))

    await _generator(handler).generate("hello", json_mode=False)

    assert "response_format" not in seen["body"]
    assert len(seen["body"]["messages"]) == 1


@pytest.mark.asyncio
async def test_http_error_status_raises_llm_error():
    def handler(request):
        return httpx.Response(429, json={"error": {"message": "rate limited"}})

    with pytest.raises(LLMError, match="429"):
        await _generator(handler).generate("hi")


@pytest.mark.asyncio
async def test_timeout_raises_llm_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(LLMError):
        await _generator(handler).generate("hi")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [_completion(""), _completion("   "), {"choices": []}, {"unexpected": True}],
)
async def test_empty_or_malformed_completion_raises_llm_error(body):
    def handler(request):
        return httpx.Response(200, json=body)

    with pytest.raises(LLMError):
        await _generator(handler).generate("hi")


@pytest.mark.asyncio
async def test_non_json_body_raises_llm_error():
    def handler(request):
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(LLMError):
        await _generator(handler).generate("hi")


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json=_completion("{}"))

    with pytest.raises(LLMError, match="not configured"):
        await _generator(handler, api_key="").generate("hi")
    assert calls == []


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('```\n[1, 2]\n```') == "[1, 2]"
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


def test_parse_json_response():
    assert parse_json_response('```json\n{"places": [{"name": "Afuri"}]}\n```') == {
        "places": [{"name": "Afuri"}]
    }
    with pytest.raises(ValueError):
        parse_json_response("Sure! Here are the places:")


def test_parse_json_response_with_prose_before_fence():
    text = 'Here are the places I found:\n```json\n{"places": [{"name": "Afuri"}]}\n```'

    assert parse_json_response(text) == {"places": [{"name": "Afuri"}]}


def test_parse_json_response_with_prose_after_fence():
    text = '```json\n{"is_duplicate": true, "matched_index": 1}\n```\nLet me know if you need more!'

    assert parse_json_response(text) == {"is_duplicate": True, "matched_index": 1}


def test_parse_json_response_with_unfenced_object_in_prose():
    assert parse_json_response('Verdict: {"is_duplicate": false} (no match)') == {"is_duplicate": False}
