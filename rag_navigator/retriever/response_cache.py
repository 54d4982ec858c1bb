"""
Response Cache

In-process cache of synthesized answers keyed by query partition and prompt
embedding. A lookup hits when a cached prompt in the same partition has cosine
similarity >= similarity_threshold with the new prompt.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

import numpy as np

from .synthesizer import SynthesizedAnswer

logger = logging.getLogger("rag_navigator.retriever.response_cache")


@dataclass
class CacheEntry:
    """A cached answer with the prompt it was produced for"""
    prompt_text: str
    embedding: np.ndarray  # L2-normalised
    answer: SynthesizedAnswer


class ResponseCache:
    """
    Similarity cache for knowledge base answers.

    Entries are partitioned by Query.cache_key (tenant, user, category and
    retrieval threshold); an answer is never served across partitions. The
    oldest entry of a partition is evicted once it holds max_entries answers.
    """

    def __init__(self, similarity_threshold: float, max_entries: int = 256):
        if not 0.0 < similarity_threshold <= 1.0:
            raise ValueError(f"similarity_threshold must be in (0, 1], got {similarity_threshold}")
        self.similarity_threshold = similarity_threshold
        self.max_entries = max_entries
        self._entries: "dict[tuple, OrderedDict[str, CacheEntry]]" = {}

    @staticmethod
    def _normalise(vector: List[float]) -> Optional[np.ndarray]:
        vec = np.asarray(vector, dtype=float)
        norm = np.linalg.norm(vec)
        if norm == 0:
            return None
        return vec / norm

    def get(self, key: tuple, vector: List[float]) -> Optional[SynthesizedAnswer]:
        """Return the best cached answer above threshold, or None."""
        entries = self._entries.get(key)
        query = self._normalise(vector)
        if not entries or query is None:
            return None

        best: Tuple[float, Optional[CacheEntry]] = (0.0, None)
        for entry in entries.values():
            if entry.embedding.shape != query.shape:
                continue
            similarity = float(np.dot(entry.embedding, query))
            if similarity > best[0]:
                best = (similarity, entry)

        similarity, entry = best
        if entry is None or similarity < self.similarity_threshold:
            return None

        logger.info("Response cache hit (similarity %.3f) for prompt: %s", similarity, entry.prompt_text)
        return replace(entry.answer, sources=list(entry.answer.sources))

    def put(self, key: tuple, prompt_text: str, vector: List[float], answer: SynthesizedAnswer) -> None:
        """Cache a non-empty answer for the prompt."""
        if answer.is_empty:
            return
        embedding = self._normalise(vector)
        if embedding is None:
            return

        entries = self._entries.setdefault(key, OrderedDict())
        entries[prompt_text] = CacheEntry(
            prompt_text=prompt_text,
            embedding=embedding,
            answer=replace(answer, sources=list(answer.sources)),
        )
        entries.move_to_end(prompt_text)
        while len(entries) > self.max_entries:
            entries.popitem(last=False)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())
