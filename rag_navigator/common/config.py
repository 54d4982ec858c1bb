"""
Configuration Management for RAG Navigator

Loads configuration from ~/.rag-navigator/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger("rag_navigator.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".rag-navigator"
CONFIG_PATH = CONFIG_DIR / "config.json"
KEYS_DIR = CONFIG_DIR / "keys"


@dataclass
class StoreConfig:
    """enVector vector store configuration"""
    endpoint: str = "localhost:50050"
    api_key: str = ""
    index_name: str = "secrag"
    key_id: str = "navigator_key"
    key_path: str = str(KEYS_DIR)


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration"""
    provider: str = "azure"  # "azure" or "openai"
    model: str = "text-embedding-3-large"
    api_key: str = ""
    endpoint: str = ""
    api_version: str = "2024-06-01"


@dataclass
class LLMConfig:
    """Completion provider configuration"""
    provider: str = "azure"
    max_tokens: int = 1024
    azure_api_key: str = ""
    azure_endpoint: str = ""
    azure_api_version: str = "2024-06-01"
    azure_deployment: str = "gpt-4o"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash-exp"


@dataclass
class PipelineConfig:
    """Knowledge base completion pipeline settings"""
    embedding_dimensions: int = 3072
    max_results: int = 10
    default_similarity_threshold: float = 0.7
    max_workers: int = 4  # concurrent per-item completions; 1 = sequential
    oversample: int = 4  # store candidates fetched per result slot
    cache_similarity_score: Optional[float] = None  # None disables the response cache
    cache_max_entries: int = 256


@dataclass
class ScopeConfig:
    """Default tenant/user/category used by the CLI"""
    tenant_id: str = "1234"
    user_id: str = "5678"
    category_id: Optional[str] = "Document"


@dataclass
class NavigatorConfig:
    """Main RAG Navigator configuration"""
    store: StoreConfig = field(default_factory=StoreConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retriever: PipelineConfig = field(default_factory=PipelineConfig)
    scope: ScopeConfig = field(default_factory=ScopeConfig)


def _parse_store_config(data: dict) -> StoreConfig:
    store_data = data.get("store", {})
    return StoreConfig(
        endpoint=store_data.get("endpoint", "localhost:50050"),
        api_key=store_data.get("api_key", ""),
        index_name=store_data.get("index_name", "secrag"),
        key_id=store_data.get("key_id", "navigator_key"),
        key_path=store_data.get("key_path", str(KEYS_DIR)),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        provider=embedding_data.get("provider", "azure"),
        model=embedding_data.get("model", "text-embedding-3-large"),
        api_key=embedding_data.get("api_key", ""),
        endpoint=embedding_data.get("endpoint", ""),
        api_version=embedding_data.get("api_version", "2024-06-01"),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(**{
        name: llm_data.get(name, getattr(defaults, name))
        for name in defaults.__dataclass_fields__
    })


def _parse_pipeline_config(data: dict) -> PipelineConfig:
    """Parse retriever section (pipeline settings)"""
    retriever_data = data.get("retriever", {})
    return PipelineConfig(
        embedding_dimensions=retriever_data.get("embedding_dimensions", 3072),
        max_results=retriever_data.get("max_results", 10),
        default_similarity_threshold=retriever_data.get("default_similarity_threshold", 0.7),
        max_workers=retriever_data.get("max_workers", 4),
        oversample=retriever_data.get("oversample", 4),
        cache_similarity_score=retriever_data.get("cache_similarity_score"),
        cache_max_entries=retriever_data.get("cache_max_entries", 256),
    )


def _parse_scope_config(data: dict) -> ScopeConfig:
    scope_data = data.get("scope", {})
    return ScopeConfig(
        tenant_id=scope_data.get("tenant_id", "1234"),
        user_id=scope_data.get("user_id", "5678"),
        category_id=scope_data.get("category_id", "Document"),
    )


def load_config() -> NavigatorConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.rag-navigator/config.json)
    3. Default values
    """
    config = NavigatorConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.store = _parse_store_config(data)
            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.retriever = _parse_pipeline_config(data)
            config.scope = _parse_scope_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    if os.getenv("ENVECTOR_ENDPOINT"):
        config.store.endpoint = os.getenv("ENVECTOR_ENDPOINT")
    if os.getenv("ENVECTOR_API_KEY"):
        config.store.api_key = os.getenv("ENVECTOR_API_KEY")
    if os.getenv("NAVIGATOR_INDEX_NAME"):
        config.store.index_name = os.getenv("NAVIGATOR_INDEX_NAME")

    # Azure OpenAI serves both embeddings and completions in the default setup
    if os.getenv("AZURE_OPENAI_ENDPOINT"):
        config.embedding.endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
        config.llm.azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
    if os.getenv("AZURE_OPENAI_KEY"):
        config.embedding.api_key = os.getenv("AZURE_OPENAI_KEY")
        config.llm.azure_api_key = os.getenv("AZURE_OPENAI_KEY")
    if os.getenv("AZURE_OPENAI_API_VERSION"):
        config.embedding.api_version = os.getenv("AZURE_OPENAI_API_VERSION")
        config.llm.azure_api_version = os.getenv("AZURE_OPENAI_API_VERSION")
    if os.getenv("AZURE_OPENAI_EMBEDDING_DEPLOYMENT_NAME"):
        config.embedding.model = os.getenv("AZURE_OPENAI_EMBEDDING_DEPLOYMENT_NAME")
    if os.getenv("AZURE_OPENAI_COMPLETION_DEPLOYMENT_NAME"):
        config.llm.azure_deployment = os.getenv("AZURE_OPENAI_COMPLETION_DEPLOYMENT_NAME")
    if os.getenv("NAVIGATOR_EMBEDDING_PROVIDER"):
        config.embedding.provider = os.getenv("NAVIGATOR_EMBEDDING_PROVIDER")

    _env_llm_map = {
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "NAVIGATOR_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)

    # OpenAI embeddings reuse the OpenAI key unless one was configured explicitly
    if config.embedding.provider == "openai" and not config.embedding.api_key:
        config.embedding.api_key = config.llm.openai_api_key

    if os.getenv("NAVIGATOR_MAX_RESULTS"):
        config.retriever.max_results = int(os.getenv("NAVIGATOR_MAX_RESULTS"))
    if os.getenv("NAVIGATOR_SIMILARITY_THRESHOLD"):
        config.retriever.default_similarity_threshold = float(os.getenv("NAVIGATOR_SIMILARITY_THRESHOLD"))
    if os.getenv("NAVIGATOR_CACHE_SIMILARITY"):
        config.retriever.cache_similarity_score = float(os.getenv("NAVIGATOR_CACHE_SIMILARITY"))
    if os.getenv("NAVIGATOR_MAX_WORKERS"):
        config.retriever.max_workers = int(os.getenv("NAVIGATOR_MAX_WORKERS"))

    return config
