from contextlib import asynccontextmanager
from typing import Any, List

import pytest
import tiktoken
from aiohttp import web
from aiohttp.test_utils import TestServer

from core.exceptions import (
    CredentialError,
    MalformedResponseError,
    NoCandidateError,
    ServiceError,
    TokenBudgetError,
    TransportFailure,
    TransportSetupError,
)
from providers.openai_provider import (
    CandidatePolicy,
    OpenaiCompletionProvider,
    sanitize_openai_endpoint,
)


class WordEncoding:
    """One token per whitespace separated word."""

    def encode(self, text: str) -> List[str]:
        return text.split()


@asynccontextmanager
async def completion_server(handler):
    app = web.Application()
    app.router.add_post("/v1/completions", handler)
    server = TestServer(app)
    await server.start_server()
    try:
        yield str(server.make_url("/v1"))
    finally:
        await server.close()


def reply_with(payload: Any, status: int = 200, seen: list = None):
    async def handler(request: web.Request) -> web.Response:
        if seen is not None:
            seen.append((request.headers.get("Authorization"), await request.json()))
        return web.json_response(payload, status=status)
    return handler


def make_provider(endpoint: str, **config) -> OpenaiCompletionProvider:
    settings = {
        "api_key": "sk-test",
        "endpoint": endpoint,
        "model": "gpt-3.5-turbo-instruct",
        "context_window": 100,
        "encoding": WordEncoding(),
    }
    settings.update(config)
    return OpenaiCompletionProvider(settings)


# ─────────────────────────────────────────────────────────────────────────────
# Construction
# ─────────────────────────────────────────────────────────────────────────────
def test_endpoint_is_sanitized():
    assert sanitize_openai_endpoint("https://api.openai.com/v1/completions") == "https://api.openai.com/v1"
    assert sanitize_openai_endpoint("http://localhost:8080/") == "http://localhost:8080"


@pytest.mark.parametrize("api_key", [None, "", "sk test", "sk-\ttab", "sk-ünicode"])
def test_malformed_credentials_are_rejected(api_key):
    with pytest.raises(CredentialError):
        OpenaiCompletionProvider({"api_key": api_key})


def test_token_budget_is_context_minus_prompt():
    provider = make_provider("http://localhost/v1")
    assert provider.token_budget("translate these four") == 97


def test_token_budget_exhausted():
    provider = make_provider("http://localhost/v1", context_window=3)
    with pytest.raises(TokenBudgetError):
        provider.token_budget("one two three four")


@pytest.mark.asyncio
async def test_tokenizer_failure_is_a_setup_error(monkeypatch):
    def offline(model):
        raise RuntimeError("offline")

    monkeypatch.setattr(tiktoken, "encoding_for_model", offline)
    provider = make_provider("http://localhost/v1", encoding=None)
    with pytest.raises(TransportSetupError):
        await provider.open()


# ─────────────────────────────────────────────────────────────────────────────
# Requests
# ─────────────────────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_request_body_and_last_candidate():
    seen = []
    payload = {"choices": [{"text": " Bună "}, {"text": "\n\nSalut\n"}]}
    async with completion_server(reply_with(payload, seen=seen)) as url:
        async with make_provider(url) as provider:
            text = await provider.complete("Translate this into Romanian:\nHello\n\nRomanian:\n")

    assert text == "Salut"
    authorization, body = seen[0]
    assert authorization == "Bearer sk-test"
    assert body["model"] == "gpt-3.5-turbo-instruct"
    assert body["temperature"] == 0.0
    assert body["max_tokens"] == 100 - 6
    assert body["prompt"].startswith("Translate this into Romanian:")


@pytest.mark.asyncio
async def test_first_candidate_policy():
    payload = {"choices": [{"text": "Bună"}, {"text": "Salut"}]}
    async with completion_server(reply_with(payload)) as url:
        async with make_provider(url, candidate_policy=CandidatePolicy.FIRST) as provider:
            assert await provider.complete("Hello") == "Bună"


@pytest.mark.asyncio
async def test_error_payload_becomes_service_error():
    payload = {"error": {"message": "rate limited", "type": "requests"}}
    async with completion_server(reply_with(payload, status=429)) as url:
        async with make_provider(url) as provider:
            with pytest.raises(ServiceError) as excinfo:
                await provider.complete("Hello")

    assert str(excinfo.value) == "rate limited"
    assert excinfo.value.kind == "service_error"


@pytest.mark.asyncio
async def test_empty_choices():
    async with completion_server(reply_with({"choices": []})) as url:
        async with make_provider(url) as provider:
            with pytest.raises(NoCandidateError):
                await provider.complete("Hello")


@pytest.mark.asyncio
async def test_unknown_shape_is_malformed():
    async with completion_server(reply_with({"result": "Salut"})) as url:
        async with make_provider(url) as provider:
            with pytest.raises(MalformedResponseError):
                await provider.complete("Hello")


@pytest.mark.asyncio
async def test_non_json_body_is_a_transport_failure():
    async def handler(request):
        return web.Response(text="<html>Bad gateway</html>", status=502)

    async with completion_server(handler) as url:
        async with make_provider(url) as provider:
            with pytest.raises(TransportFailure):
                await provider.complete("Hello")


@pytest.mark.asyncio
async def test_unreachable_service_is_a_transport_failure():
    async with completion_server(reply_with({})) as url:
        pass

    async with make_provider(url) as provider:
        with pytest.raises(TransportFailure):
            await provider.complete("Hello")
