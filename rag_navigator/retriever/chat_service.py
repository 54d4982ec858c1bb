"""
Knowledge Base Chat Service

Runs the retrieval-augmented completion pipeline for one query:

1. Validate the query and extract search terms
2. Embed the prompt
3. Hybrid search scoped to tenant/user/category
4. One completion per retrieved item, joined in ranked order

Stages run strictly in sequence. A cancel event is checked after every
awaited stage; once set, no later stage runs and Cancelled is raised.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..common.config import PipelineConfig
from ..common.embedding_service import EmbeddingService
from ..common.errors import Cancelled, NavigatorError
from ..common.schemas import Query
from .query_processor import extract_keywords
from .response_cache import ResponseCache
from .searcher import Searcher
from .synthesizer import Synthesizer, SynthesizedAnswer

logger = logging.getLogger("rag_navigator.retriever.chat_service")


@dataclass
class CompletionOutcome:
    """Tagged result of one pipeline run"""
    ok: bool
    answer: Optional[SynthesizedAnswer] = None
    error: Optional[NavigatorError] = None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    @classmethod
    def success(cls, answer: SynthesizedAnswer) -> "CompletionOutcome":
        return cls(ok=True, answer=answer)

    @classmethod
    def failure(cls, error: NavigatorError) -> "CompletionOutcome":
        return cls(ok=False, error=error)


class KnowledgeBaseChatService:
    """
    Knowledge base completion pipeline.

    Holds no per-query state; concurrent invocations are independent
    except for the optional response cache.
    """

    def __init__(
        self,
        embedding_service: EmbeddingService,
        searcher: Searcher,
        synthesizer: Synthesizer,
        config: PipelineConfig,
        cache: Optional[ResponseCache] = None,
    ):
        self._embedding = embedding_service
        self._searcher = searcher
        self._synthesizer = synthesizer
        self._config = config
        self._cache = cache

    @classmethod
    def from_components(
        cls,
        embedding_service: EmbeddingService,
        searcher: Searcher,
        synthesizer: Synthesizer,
        config: PipelineConfig,
    ) -> "KnowledgeBaseChatService":
        """Wire the service, enabling the response cache when configured."""
        cache = None
        if config.cache_similarity_score:
            cache = ResponseCache(
                similarity_threshold=config.cache_similarity_score,
                max_entries=config.cache_max_entries,
            )
        return cls(embedding_service, searcher, synthesizer, config, cache=cache)

    @staticmethod
    def _checkpoint(cancel_event: Optional[asyncio.Event], stage: str) -> None:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Knowledge base completion cancelled after %s", stage)
            raise Cancelled(f"Cancelled after {stage}")

    async def get_knowledge_base_completion(
        self,
        query: Query,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SynthesizedAnswer:
        """
        Answer a query from the knowledge base.

        Returns:
            SynthesizedAnswer; empty text and no title when nothing matched

        Raises:
            InvalidInput, ProviderError, StoreError, Cancelled
        """
        query.validate()
        self._checkpoint(cancel_event, "start")

        terms = extract_keywords(query.prompt_text)

        vector = await asyncio.to_thread(self._embedding.embed_single, query.prompt_text)
        logger.info("Embeddings generated for the prompt.")
        self._checkpoint(cancel_event, "embedding")

        if self._cache is not None:
            cached = self._cache.get(query.cache_key, vector)
            if cached is not None:
                return cached

        results = await self._searcher.retrieve(query, vector, terms)
        self._checkpoint(cancel_event, "retrieval")

        if not results:
            logger.info("No similar knowledge base items found.")
            return SynthesizedAnswer(text="", title=None)

        answer = await self._synthesizer.synthesize(query, results, cancel_event)
        self._checkpoint(cancel_event, "synthesis")

        if self._cache is not None:
            self._cache.put(query.cache_key, query.prompt_text, vector, answer)

        return answer

    async def run(
        self,
        query: Query,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> CompletionOutcome:
        """Run the pipeline and report errors as a tagged outcome."""
        try:
            answer = await self.get_knowledge_base_completion(query, cancel_event)
        except NavigatorError as e:
            logger.error("Error generating knowledge base completion: %s", e)
            return CompletionOutcome.failure(e)
        return CompletionOutcome.success(answer)
