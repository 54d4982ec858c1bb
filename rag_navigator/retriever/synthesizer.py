"""
Synthesizer

Per-item answer synthesis from search results.

Each retrieved item gets its own completion call grounded on that item
alone; calls share no conversation history. The per-item answers are
joined in ranked order, and the top-ranked item supplies the title.
"""

import asyncio
import logging
from typing import List, Optional
from dataclasses import dataclass, field

from ..common.errors import Cancelled, ProviderError
from ..common.llm_client import LLMClient
from ..common.schemas import KnowledgeBaseItem, Query
from .searcher import SearchResult

logger = logging.getLogger("rag_navigator.retriever.synthesizer")

ANSWER_SEPARATOR = "\n\n"


@dataclass
class SynthesizedAnswer:
    """Combined answer for one knowledge base query"""
    text: str
    title: Optional[str] = None
    sources: List[str] = field(default_factory=list)  # item ids, ranked order
    token_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.sources


SYSTEM_PROMPT = """You are an analyst answering questions about a company's SEC filing.
Answer ONLY from the document excerpt you are given. If the excerpt does not
contain the answer, say so briefly. Be concise and factual."""

# Completion prompt template
COMPLETION_PROMPT = """Document excerpt:
{context}

Question: {prompt}

Answer:"""


class Synthesizer:
    """
    Synthesizes one answer from ranked search results.

    Completions may run concurrently, bounded by max_workers; the combined
    text always follows the ranked order of the results.
    """

    def __init__(
        self,
        llm_client: LLMClient,
        max_workers: int = 4,
        max_tokens: int = 1024,
    ):
        """
        Initialize synthesizer.

        Args:
            llm_client: Completion provider
            max_workers: Maximum concurrent completion calls (1 = sequential)
            max_tokens: Token limit per completion
        """
        self._llm = llm_client
        self._max_workers = max(1, max_workers)
        self._max_tokens = max_tokens

    async def synthesize(
        self,
        query: Query,
        results: List[SearchResult],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> SynthesizedAnswer:
        """
        Synthesize an answer from search results.

        Args:
            query: The original query
            results: Ranked search results from Searcher
            cancel_event: Once set, no further completion calls start

        Returns:
            SynthesizedAnswer; empty text and no title when results is empty

        Raises:
            ProviderError: any completion failed (no partial answer)
            Cancelled: cancel_event was set before all completions started
        """
        if not results:
            return SynthesizedAnswer(text="", title=None)

        semaphore = asyncio.Semaphore(self._max_workers)

        async def _bounded(item: KnowledgeBaseItem):
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    raise Cancelled(f"Cancelled before completing item {item.id}")
                return await self._complete_item(query.prompt_text, item)

        tasks = [asyncio.ensure_future(_bounded(r.item)) for r in results]
        try:
            # gather() returns in argument order regardless of completion order
            completions = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        texts = [text for text, _ in completions]
        tokens = sum(count for _, count in completions)

        logger.info("Completion generated for all %d knowledge base items", len(results))

        return SynthesizedAnswer(
            text=ANSWER_SEPARATOR.join(texts),
            title=results[0].item.title,
            sources=[r.item.id for r in results],
            token_count=tokens,
        )

    async def _complete_item(self, prompt_text: str, item: KnowledgeBaseItem):
        """One independent completion grounded on a single item."""
        logger.info("Processing item: %s", item.title)

        prompt = COMPLETION_PROMPT.format(context=item.as_context(), prompt=prompt_text)
        try:
            text, tokens = await asyncio.to_thread(
                self._llm.generate,
                prompt,
                system=SYSTEM_PROMPT,
                max_tokens=self._max_tokens,
            )
        except ProviderError:
            logger.error("Completion failed for item %s", item.id)
            raise
        except Exception as e:
            logger.error("Completion failed for item %s", item.id)
            raise ProviderError(f"Completion failed for item {item.id}: {e}") from e

        logger.debug("Intermediate completion for %s: %s", item.title, text)
        return text, tokens


def format_answer_for_display(answer: SynthesizedAnswer) -> str:
    """Format synthesized answer for CLI display"""
    lines = [
        f"Completion Title: {answer.title or 'No Title'}",
        "Completion Text:",
        answer.text,
    ]
    return "\n".join(lines)
