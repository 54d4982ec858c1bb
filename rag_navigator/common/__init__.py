"""
RAG Navigator Common Module

Shared infrastructure: configuration, provider clients, store client, schemas.
"""

from .config import NavigatorConfig, PipelineConfig, load_config
from .embedding_service import EmbeddingService
from .envector_client import EnVectorClient
from .errors import NavigatorError, InvalidInput, ProviderError, StoreError, Cancelled
from .llm_client import LLMClient

__all__ = [
    "NavigatorConfig",
    "PipelineConfig",
    "load_config",
    "EmbeddingService",
    "EnVectorClient",
    "LLMClient",
    "NavigatorError",
    "InvalidInput",
    "ProviderError",
    "StoreError",
    "Cancelled",
]
