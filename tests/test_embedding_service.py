import json

import httpx
import pytest

from proposal_cache.config import EmbeddingConfig, EmbeddingProviderKind, Settings
from proposal_cache.errors import ConfigurationError, EmbeddingProviderError
from proposal_cache.services.embedding_service import (
    DEFAULT_LOCAL_MODEL,
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
    SentenceTransformerProvider,
    build_embedding_provider,
)


def make_provider(handler, **kwargs) -> OpenAIEmbeddingProvider:
    return OpenAIEmbeddingProvider(transport=httpx.MockTransport(handler), **kwargs)


async def test_embed_returns_vector_and_sends_credentials() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]})

    provider = make_provider(handler, api_key="sk-test", model="embed-small")
    try:
        vector = await provider.embed("skate ramp")
    finally:
        await provider.close()

    assert vector == pytest.approx([0.1, 0.2, 0.3])
    assert seen[0].headers["Authorization"] == "Bearer sk-test"
    assert json.loads(seen[0].content) == {"model": "embed-small", "input": "skate ramp"}


async def test_no_authorization_header_without_key() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

    provider = make_provider(handler, endpoint="http://localhost:11434/v1/embeddings")
    try:
        await provider.embed("hello")
    finally:
        await provider.close()

    assert "Authorization" not in seen[0].headers
    assert str(seen[0].url) == "http://localhost:11434/v1/embeddings"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(401, json={"error": "bad key"}),
        httpx.Response(200, json={"data": []}),
        httpx.Response(200, json={"data": [{"embedding": []}]}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_unusable_responses_raise(response) -> None:
    provider = make_provider(lambda request: response, api_key="sk-test")
    try:
        with pytest.raises(EmbeddingProviderError):
            await provider.embed("skate ramp")
    finally:
        await provider.close()


async def test_transport_error_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    provider = make_provider(handler, api_key="sk-test")
    try:
        with pytest.raises(EmbeddingProviderError):
            await provider.embed("skate ramp")
    finally:
        await provider.close()


@pytest.mark.parametrize("text", ["", "   "])
async def test_empty_text_rejected_without_request(text) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    provider = make_provider(handler, api_key="sk-test")
    with pytest.raises(EmbeddingProviderError):
        await provider.embed(text)


def test_openai_provider_requires_key_for_default_endpoint() -> None:
    config = Settings(embedding=EmbeddingConfig(api_key=None))

    with pytest.raises(ConfigurationError):
        build_embedding_provider(config)


def test_openai_provider_from_config() -> None:
    config = Settings(embedding=EmbeddingConfig(api_key="sk-test", model="embed-large"))

    provider = build_embedding_provider(config)

    assert isinstance(provider, OpenAIEmbeddingProvider)
    assert isinstance(provider, EmbeddingProvider)
    assert provider.model == "embed-large"


def test_local_provider_is_lazy() -> None:
    config = Settings(embedding=EmbeddingConfig(provider=EmbeddingProviderKind.LOCAL, api_key=None))

    provider = build_embedding_provider(config)

    assert isinstance(provider, SentenceTransformerProvider)
    assert provider.model_name == DEFAULT_LOCAL_MODEL
    assert provider._model is None
