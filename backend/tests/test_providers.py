"""
Tests for the provider adapters.

Perplexity runs against httpx.MockTransport; the OpenAI and Gemini SDK
clients are replaced with mocks at the _get_client boundary.
"""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from google.api_core import exceptions as google_exceptions
from openai import APITimeoutError, AuthenticationError, InternalServerError

from config import RuntimeConfig
from errors import (
    ErrorCode,
    NotFoundError,
    ProviderAuthError,
    ProviderUnavailableError,
    StreamInterruptedError,
    ValidationError,
)
from providers import build_provider_chain, get_provider
from providers.gemini import GeminiProvider
from providers.openai_compat import OpenAIProvider
from providers.perplexity import PerplexityProvider


async def _collect(agen):
    return [chunk async for chunk in agen]


def _sse(*events, done=True) -> bytes:
    lines = [f"data: {json.dumps(e)}\n\n" for e in events]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def _delta(text, finish=None):
    return {"choices": [{"delta": {"content": text}, "finish_reason": finish}]}


class TestProviderBase:
    def test_missing_key_rejected_at_construction(self):
        with pytest.raises(ProviderAuthError) as exc:
            PerplexityProvider(api_key="")
        assert exc.value.provider == "Perplexity"

    def test_empty_prompt_rejected(self):
        provider = PerplexityProvider(api_key="k")
        with pytest.raises(ValidationError):
            asyncio.run(provider.ask("   "))


class TestPerplexityProvider:
    """Raw HTTPS adapter."""

    def _provider(self, handler):
        return PerplexityProvider(
            api_key="pplx-test",
            model="sonar-test",
            base_url="https://pplx.test",
            transport=httpx.MockTransport(handler),
        )

    def test_ask_sends_bearer_and_system_message(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["auth"] = request.headers["Authorization"]
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "Paris"}}]})

        answer = asyncio.run(self._provider(handler).ask("Capital of France?", "Be brief"))

        assert answer == "Paris"
        assert seen["auth"] == "Bearer pplx-test"
        assert seen["url"] == "https://pplx.test/chat/completions"
        assert seen["body"]["model"] == "sonar-test"
        assert seen["body"]["stream"] is False
        assert seen["body"]["messages"][0] == {"role": "system", "content": "Be brief"}
        assert seen["body"]["messages"][1] == {"role": "user", "content": "Capital of France?"}

    def test_server_error_is_bad_status(self):
        provider = self._provider(lambda request: httpx.Response(502, text="bad gateway"))
        with pytest.raises(ProviderUnavailableError) as exc:
            asyncio.run(provider.ask("hi"))
        assert exc.value.code == ErrorCode.PROVIDER_BAD_STATUS
        assert exc.value.context["status_code"] == 502

    def test_unauthorized_is_auth_error(self):
        provider = self._provider(lambda request: httpx.Response(401, text="invalid key"))
        with pytest.raises(ProviderAuthError):
            asyncio.run(provider.ask("hi"))

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProviderUnavailableError) as exc:
            asyncio.run(self._provider(handler).ask("hi"))
        assert exc.value.code == ErrorCode.PROVIDER_TIMEOUT

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderUnavailableError) as exc:
            asyncio.run(self._provider(handler).ask("hi"))
        assert exc.value.code == ErrorCode.PROVIDER_UNAVAILABLE

    def test_malformed_body(self):
        provider = self._provider(lambda request: httpx.Response(200, json={"unexpected": True}))
        with pytest.raises(ProviderUnavailableError):
            asyncio.run(provider.ask("hi"))

    def test_stream_yields_deltas_until_done(self):
        def handler(request):
            assert json.loads(request.content)["stream"] is True
            return httpx.Response(200, content=_sse(_delta("Hel"), _delta("lo"), _delta("!", finish="stop")))

        chunks = asyncio.run(_collect(self._provider(handler).stream("hi")))
        assert chunks == ["Hel", "lo", "!"]

    def test_stream_without_completion_is_interrupted(self):
        def handler(request):
            return httpx.Response(200, content=_sse(_delta("partial"), done=False))

        async def run():
            received = []
            with pytest.raises(StreamInterruptedError):
                async for chunk in self._provider(handler).stream("hi"):
                    received.append(chunk)
            return received

        assert asyncio.run(run()) == ["partial"]

    def test_stream_error_status(self):
        provider = self._provider(lambda request: httpx.Response(500, text="oops"))
        with pytest.raises(ProviderUnavailableError):
            asyncio.run(_collect(provider.stream("hi")))


def _openai_client(create):
    client = MagicMock()
    client.chat.completions.create = create
    return client


def _openai_request():
    return httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class TestOpenAIProvider:
    def test_ask_returns_message_content(self):
        response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="42"))])
        create = AsyncMock(return_value=response)
        provider = OpenAIProvider(api_key="sk-test", model="gpt-test")

        with patch.object(OpenAIProvider, "_get_client", return_value=_openai_client(create)):
            assert asyncio.run(provider.ask("6 x 7?", "Answer with a number")) == "42"

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["messages"][0] == {"role": "system", "content": "Answer with a number"}

    def test_authentication_error(self):
        err = AuthenticationError(
            "bad key", response=httpx.Response(401, request=_openai_request()), body=None
        )
        provider = OpenAIProvider(api_key="sk-test")
        with patch.object(OpenAIProvider, "_get_client", return_value=_openai_client(AsyncMock(side_effect=err))):
            with pytest.raises(ProviderAuthError):
                asyncio.run(provider.ask("hi"))

    def test_server_error(self):
        err = InternalServerError(
            "boom", response=httpx.Response(500, request=_openai_request()), body=None
        )
        provider = OpenAIProvider(api_key="sk-test")
        with patch.object(OpenAIProvider, "_get_client", return_value=_openai_client(AsyncMock(side_effect=err))):
            with pytest.raises(ProviderUnavailableError) as exc:
                asyncio.run(provider.ask("hi"))
        assert exc.value.code == ErrorCode.PROVIDER_BAD_STATUS

    def test_timeout(self):
        err = APITimeoutError(request=_openai_request())
        provider = OpenAIProvider(api_key="sk-test")
        with patch.object(OpenAIProvider, "_get_client", return_value=_openai_client(AsyncMock(side_effect=err))):
            with pytest.raises(ProviderUnavailableError) as exc:
                asyncio.run(provider.ask("hi"))
        assert exc.value.code == ErrorCode.PROVIDER_TIMEOUT

    def test_stream_closes_response(self):
        class FakeStream:
            def __init__(self, texts):
                self._chunks = [
                    SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=t))]) for t in texts
                ]
                self.closed = False

            def __aiter__(self):
                return self._iter()

            async def _iter(self):
                for chunk in self._chunks:
                    yield chunk

            async def close(self):
                self.closed = True

        fake = FakeStream(["a", None, "b"])
        provider = OpenAIProvider(api_key="sk-test")
        with patch.object(OpenAIProvider, "_get_client", return_value=_openai_client(AsyncMock(return_value=fake))):
            assert asyncio.run(_collect(provider.stream("hi"))) == ["a", "b"]
        assert fake.closed is True


class TestGeminiProvider:
    def _model(self, *send_results):
        chat = MagicMock()
        chat.send_message_async = AsyncMock(side_effect=list(send_results))
        model = MagicMock()
        model.start_chat.return_value = chat
        return model, chat

    def test_system_instruction_primes_the_chat(self):
        model, chat = self._model(SimpleNamespace(text="Understood"), SimpleNamespace(text="F = ma"))
        provider = GeminiProvider(api_key="g-test")

        with patch.object(GeminiProvider, "_get_client", return_value=model):
            answer = asyncio.run(provider.ask("Newton's second law?", "You are a physics tutor"))

        assert answer == "F = ma"
        model.start_chat.assert_called_once_with(history=[])
        first, second = chat.send_message_async.call_args_list
        assert first.args[0] == "You are a physics tutor"
        assert second.args[0] == "Newton's second law?"

    def test_no_instruction_sends_prompt_only(self):
        model, chat = self._model(SimpleNamespace(text="hello"))
        provider = GeminiProvider(api_key="g-test")

        with patch.object(GeminiProvider, "_get_client", return_value=model):
            assert asyncio.run(provider.ask("hi")) == "hello"
        assert chat.send_message_async.await_count == 1

    def test_deadline_is_timeout(self):
        model, _ = self._model(google_exceptions.DeadlineExceeded("too slow"))
        provider = GeminiProvider(api_key="g-test")

        with patch.object(GeminiProvider, "_get_client", return_value=model):
            with pytest.raises(ProviderUnavailableError) as exc:
                asyncio.run(provider.ask("hi"))
        assert exc.value.code == ErrorCode.PROVIDER_TIMEOUT

    def test_permission_denied_is_auth_error(self):
        model, _ = self._model(google_exceptions.PermissionDenied("no access"))
        provider = GeminiProvider(api_key="g-test")

        with patch.object(GeminiProvider, "_get_client", return_value=model):
            with pytest.raises(ProviderAuthError):
                asyncio.run(provider.ask("hi"))

    def test_blocked_response_is_unavailable(self):
        class Blocked:
            @property
            def text(self):
                raise ValueError("response was blocked")

        model, _ = self._model(Blocked())
        provider = GeminiProvider(api_key="g-test")

        with patch.object(GeminiProvider, "_get_client", return_value=model):
            with pytest.raises(ProviderUnavailableError):
                asyncio.run(provider.ask("hi"))


class TestProviderFactory:
    def _config(self, **keys):
        defaults = {"openai_api_key": "", "perplexity_api_key": "", "gemini_api_key": ""}
        defaults.update(keys)
        return RuntimeConfig(**defaults)

    def test_get_provider_case_insensitive(self):
        config = self._config(perplexity_api_key="k")
        provider = get_provider("perplexity", config)
        assert provider.provider_name == "Perplexity"
        assert provider.model == config.model_perplexity

    def test_get_provider_uses_per_provider_settings(self):
        config = self._config(gemini_api_key="g", gemini_timeout_s=7, model_gemini="gemini-test")
        provider = get_provider("GEMINI", config)
        assert provider.timeout == 7
        assert provider.model == "gemini-test"

    def test_unknown_provider(self):
        with pytest.raises(NotFoundError) as exc:
            get_provider("claude", self._config())
        assert exc.value.code == ErrorCode.NOT_FOUND_PROVIDER

    def test_chain_skips_providers_without_keys(self):
        config = self._config(openai_api_key="sk", perplexity_api_key="k", provider_order="Gemini,Perplexity,OpenAI")
        chain = build_provider_chain(config)
        assert [p.provider_name for p in chain] == ["Perplexity", "OpenAI"]

    def test_chain_follows_configured_order(self):
        config = self._config(
            openai_api_key="sk", perplexity_api_key="k", gemini_api_key="g", provider_order="OpenAI,Gemini,Perplexity"
        )
        assert [p.provider_name for p in build_provider_chain(config)] == ["OpenAI", "Gemini", "Perplexity"]

    def test_empty_chain(self):
        assert build_provider_chain(self._config()) == []
