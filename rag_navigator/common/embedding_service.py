"""
Embedding Service

Turns prompt text into fixed-length vectors through an OpenAI-compatible
embeddings API (Azure OpenAI deployment or OpenAI directly).
"""

import logging
from typing import List

from .errors import InvalidInput, ProviderError

logger = logging.getLogger("rag_navigator.common.embedding_service")


class EmbeddingService:
    """
    Embedding adapter for the knowledge base pipeline.

    Every returned vector is checked against the configured dimensionality;
    a mismatch is a provider error, never silently padded or truncated.
    No caching: each call re-embeds.
    """

    def __init__(
        self,
        client=None,
        model: str = "text-embedding-3-large",
        dimensions: int = 3072,
    ):
        """
        Initialize embedding service.

        Args:
            client: openai.OpenAI / openai.AzureOpenAI instance (or compatible)
            model: Embedding model or Azure deployment name
            dimensions: Expected vector length
        """
        self._client = client
        self._model = model
        self._dimensions = dimensions

    @classmethod
    def from_config(cls, embedding_config, dimensions: int) -> "EmbeddingService":
        """Build the service for the provider named in EmbeddingConfig."""
        client = None
        provider = (embedding_config.provider or "azure").lower()
        try:
            if provider == "azure" and embedding_config.api_key and embedding_config.endpoint:
                from openai import AzureOpenAI
                client = AzureOpenAI(
                    api_key=embedding_config.api_key,
                    azure_endpoint=embedding_config.endpoint,
                    api_version=embedding_config.api_version,
                )
            elif provider == "openai" and embedding_config.api_key:
                from openai import OpenAI
                client = OpenAI(api_key=embedding_config.api_key)
            else:
                logger.info("Embedding provider %s not configured", provider)
        except ImportError:
            logger.warning("openai package not installed")

        return cls(client=client, model=embedding_config.model, dimensions=dimensions)

    @property
    def is_available(self) -> bool:
        """Check if embedding service is available"""
        return self._client is not None

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for a list of texts.

        Args:
            texts: List of strings to embed

        Returns:
            List of embedding vectors, one per input text

        Raises:
            ProviderError: provider unavailable, call failed, or a vector
                has the wrong length
        """
        if not self._client:
            raise ProviderError("Embedding provider not configured")

        if not texts:
            return []

        try:
            response = self._client.embeddings.create(
                input=texts,
                model=self._model,
                dimensions=self._dimensions,
            )
        except Exception as e:
            raise ProviderError(f"Embedding request failed: {e}") from e

        vectors = [list(map(float, d.embedding)) for d in response.data]
        if len(vectors) != len(texts):
            raise ProviderError(
                f"Embedding provider returned {len(vectors)} vectors for {len(texts)} texts"
            )
        for vec in vectors:
            if len(vec) != self._dimensions:
                raise ProviderError(
                    f"Embedding dimension mismatch: expected {self._dimensions}, got {len(vec)}"
                )
        return vectors

    def embed_single(self, text: str) -> List[float]:
        """
        Generate embedding for a single text.

        Args:
            text: String to embed

        Returns:
            Embedding vector of length ``dimensions``
        """
        if not text or not text.strip():
            raise InvalidInput("Cannot embed empty text")

        return self.embed([text])[0]
