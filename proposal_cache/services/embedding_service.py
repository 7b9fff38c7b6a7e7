"""
Services responsible for generating text embeddings.

Two providers share one interface: an OpenAI-compatible HTTP endpoint
(OpenAI, Ollama, LM Studio) and a local sentence-transformers model.
Unlike a best-effort enrichment step, callers here need a vector or a
clear failure, so providers raise ``EmbeddingProviderError`` instead of
returning nothing.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

import httpx

from ..config import EmbeddingConfig, EmbeddingProviderKind, Settings, settings
from ..errors import ConfigurationError, EmbeddingProviderError

if TYPE_CHECKING:  # pragma: no cover
    from sentence_transformers import SentenceTransformer

DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_ENDPOINT = "https://api.openai.com/v1/embeddings"
DEFAULT_LOCAL_MODEL = "sentence-transformers/all-MiniLM-L6-v2"

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns a text into a fixed-size vector."""

    async def embed(self, text: str) -> List[float]:
        ...

    async def close(self) -> None:
        ...


class OpenAIEmbeddingProvider:
    """Generate embeddings through an OpenAI-compatible ``/embeddings`` endpoint."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_config(cls, config: EmbeddingConfig, **kwargs) -> "OpenAIEmbeddingProvider":
        if not config.api_key and config.endpoint == DEFAULT_ENDPOINT:
            raise ConfigurationError(
                "EMBEDDING_API_KEY (or OPENAI_API_KEY) is required for the OpenAI endpoint"
            )
        return cls(
            api_key=config.api_key,
            model=config.model,
            endpoint=config.endpoint,
            timeout=config.timeout_seconds,
            **kwargs,
        )

    async def _client_instance(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Cleanup underlying HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingProviderError: on HTTP failure or an unusable payload
        """
        if not text or not text.strip():
            raise EmbeddingProviderError("Cannot embed empty text")

        client = await self._client_instance()
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {"model": self.model, "input": text}

        try:
            response = await client.post(self.endpoint, headers=headers, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Embedding API error (%s): %s",
                exc.response.status_code,
                exc.response.text[:200],
            )
            raise EmbeddingProviderError(
                f"Embedding API returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Embedding API request failed: %s", exc)
            raise EmbeddingProviderError(f"Embedding API request failed: {exc}") from exc

        try:
            data = response.json().get("data") or []
        except (ValueError, AttributeError) as exc:
            raise EmbeddingProviderError("Embedding API returned a malformed body") from exc

        vector = data[0].get("embedding") if data and isinstance(data[0], dict) else None
        if not isinstance(vector, list) or not vector:
            raise EmbeddingProviderError("Embedding API returned no vector")
        return [float(value) for value in vector]


class SentenceTransformerProvider:
    """
    Local embeddings via sentence-transformers.

    The model is loaded on first use; encoding runs in a worker thread so
    the event loop is not blocked.
    """

    def __init__(self, model_name: str = DEFAULT_LOCAL_MODEL) -> None:
        self.model_name = model_name
        self._model: Optional["SentenceTransformer"] = None

    @property
    def model(self) -> "SentenceTransformer":
        """Lazy loader for the SentenceTransformer model."""
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError as exc:
                raise ConfigurationError(
                    "The local embedding provider needs the 'local' extra: "
                    "pip install 'proposal-cache[local]'"
                ) from exc
            logger.info(f"Loading embedding model {self.model_name} (first use)...")
            self._model = SentenceTransformer(self.model_name)
        return self._model

    async def embed(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise EmbeddingProviderError("Cannot embed empty text")
        try:
            vector = await asyncio.to_thread(
                self.model.encode, text, normalize_embeddings=True
            )
        except ConfigurationError:
            raise
        except Exception as exc:
            raise EmbeddingProviderError(f"Local embedding failed: {exc}") from exc
        return vector.tolist()

    async def close(self) -> None:
        self._model = None


def build_embedding_provider(config: Optional[Settings] = None) -> EmbeddingProvider:
    """Pick the provider named by ``EMBEDDING_PROVIDER``."""
    embedding = (config or settings).embedding
    if embedding.provider == EmbeddingProviderKind.LOCAL:
        model_name = embedding.model
        if model_name == DEFAULT_MODEL:
            model_name = DEFAULT_LOCAL_MODEL
        return SentenceTransformerProvider(model_name)
    return OpenAIEmbeddingProvider.from_config(embedding)
