"""
Embedding Service for Keihyo RAG

Thin gateway over an external embedding provider. The provider client is
built lazily on first use and reused for the lifetime of the service, which
callers construct once and inject into the vector store.

Architecture:
    BaseEmbeddingService      -- lazy client, embed_documents, embed_query, error wrapping
        OpenAIEmbeddingService    -- OpenAI text-embedding-3-large (default)
        VoyageEmbeddingService    -- Voyage AI voyage-multilingual-2

Failures are raised as EmbeddingError and never retried here.
"""

import os
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .exceptions import EmbeddingError

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding service."""
    provider: str = "openai"  # "openai" or "voyage"
    model: str = "text-embedding-3-large"
    dimensions: int = 3072
    # Falls back to the provider's environment variable
    api_key: Optional[str] = None


class BaseEmbeddingService:
    """
    Base class for API-based embedding services.

    Provides shared functionality:
    - Lazily constructed, reused provider client (thread-safe)
    - Order-preserving batch embedding in a single provider call
    - Document vs query input type distinction
    - Wrapping of provider failures in EmbeddingError

    Subclasses implement:
    - _create_client(api_key): build the provider-specific API client
    - _call_provider(client, texts, input_type): return one vector per text
    """

    # Subclasses must override these
    _provider_name: str = "Base"
    _env_var_name: str = ""
    _doc_input_type: str = "document"
    _query_input_type: str = "query"

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        self._client = None
        self._client_lock = threading.Lock()

    def _create_client(self, api_key: str):
        raise NotImplementedError("Subclasses must implement _create_client()")

    def _call_provider(self, client, texts: list[str], input_type: str) -> list[list[float]]:
        raise NotImplementedError("Subclasses must implement _call_provider()")

    def _get_client(self):
        """Return the provider client, building it on first use."""
        if self._client is not None:
            return self._client

        with self._client_lock:
            if self._client is None:
                api_key = self.config.api_key or os.getenv(self._env_var_name)
                if not api_key:
                    raise EmbeddingError(
                        f"{self._env_var_name} not set; cannot create {self._provider_name} client",
                        "create_client",
                    )
                try:
                    self._client = self._create_client(api_key)
                except Exception as e:
                    logger.error(f"{self._provider_name} client creation failed: {e}")
                    raise EmbeddingError(
                        f"Failed to create {self._provider_name} client: {e}",
                        "create_client",
                        e,
                    ) from e
                logger.info(f"{self._provider_name} client initialized with model {self.config.model}")

        return self._client

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for document chunks in one provider call.

        Args:
            texts: List of text strings to embed

        Returns:
            One embedding vector per input text, in input order
        """
        if not texts:
            return []

        logger.info(f"Embedding {len(texts)} documents with {self._provider_name}")
        vectors = self._embed(texts, self._doc_input_type, "embed_documents")

        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"Mismatch: {len(texts)} texts, {len(vectors)} embeddings",
                "embed_documents",
            )
        return vectors

    def embed_query(self, query: str) -> list[float]:
        """
        Generate the embedding for a search query.

        Args:
            query: Search query string

        Returns:
            Embedding vector
        """
        vectors = self._embed([query], self._query_input_type, "embed_query")
        if len(vectors) != 1:
            raise EmbeddingError(
                f"Expected 1 embedding for query, got {len(vectors)}",
                "embed_query",
            )
        return vectors[0]

    def _embed(self, texts: list[str], input_type: str, operation: str) -> list[list[float]]:
        client = self._get_client()
        try:
            return self._call_provider(client, texts, input_type)
        except Exception as e:
            logger.error(f"{self._provider_name} embedding failed: {e}")
            raise EmbeddingError(
                f"{self._provider_name} embedding failed: {e}",
                operation,
                e,
            ) from e

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self.config.dimensions


class OpenAIEmbeddingService(BaseEmbeddingService):
    """
    Embedding service using OpenAI's text-embedding-3 models.

    text-embedding-3-large provides:
    - Up to 3072-dimensional embeddings (reducible via ``dimensions``)
    - Strong Japanese coverage
    - No document/query input type distinction
    """

    _provider_name = "OpenAI"
    _env_var_name = "OPENAI_API_KEY"

    def _create_client(self, api_key: str):
        from openai import OpenAI
        return OpenAI(api_key=api_key)

    def _call_provider(self, client, texts: list[str], input_type: str) -> list[list[float]]:
        response = client.embeddings.create(
            model=self.config.model,
            input=texts,
            dimensions=self.config.dimensions,
        )
        # The API tags each vector with its input index
        data = sorted(response.data, key=lambda d: d.index)
        return [list(d.embedding) for d in data]


class VoyageEmbeddingService(BaseEmbeddingService):
    """
    Embedding service using Voyage AI.

    voyage-multilingual-2 provides:
    - 1024-dimensional embeddings
    - Multilingual (Japanese) retrieval quality
    - Different input types for documents vs queries
    """

    _provider_name = "Voyage AI"
    _env_var_name = "VOYAGE_API_KEY"
    _doc_input_type = "document"
    _query_input_type = "query"

    def _create_client(self, api_key: str):
        import voyageai
        return voyageai.Client(api_key=api_key)

    def _call_provider(self, client, texts: list[str], input_type: str) -> list[list[float]]:
        response = client.embed(
            texts=texts,
            model=self.config.model,
            input_type=input_type,
        )
        return [list(e) for e in response.embeddings]


def get_embedding_service(
    provider: Optional[str] = None,
    api_key: Optional[str] = None,
) -> BaseEmbeddingService:
    """
    Factory function to get the configured embedding service.

    Args:
        provider: "openai" (default) or "voyage"; falls back to EMBEDDING_PROVIDER
        api_key: Optional explicit key instead of the provider's env var

    Returns:
        Configured embedding service (client not yet built)
    """
    provider = (provider or os.getenv("EMBEDDING_PROVIDER") or "openai").lower()

    if provider == "voyage":
        return VoyageEmbeddingService(EmbeddingConfig(
            provider="voyage",
            model="voyage-multilingual-2",
            dimensions=1024,
            api_key=api_key,
        ))

    if provider != "openai":
        raise ValueError(f"Unknown embedding provider: {provider}. Use 'openai' or 'voyage'")

    return OpenAIEmbeddingService(EmbeddingConfig(api_key=api_key))
