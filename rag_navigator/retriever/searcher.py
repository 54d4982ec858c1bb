"""
Searcher

Hybrid knowledge base search over enVector.

The store ranks by vector similarity only, so the searcher over-fetches
candidates and applies the rest of the hybrid query itself:
scope filter → similarity threshold → keyword ranking → result cap.

Keyword policy: search terms are a secondary ranking signal, never a hard
filter. Results are ordered by similarity score descending; equal scores
are ordered by keyword hits, then by store order.
"""

import asyncio
import logging
from typing import List, Dict, Any, Set
from dataclasses import dataclass

from pydantic import ValidationError

from ..common.envector_client import EnVectorClient
from ..common.errors import StoreError
from ..common.schemas import KnowledgeBaseItem, Query
from .query_processor import count_keyword_hits

logger = logging.getLogger("rag_navigator.retriever.searcher")


@dataclass
class SearchResult:
    """A single knowledge base hit"""
    item: KnowledgeBaseItem
    score: float
    keyword_hits: int = 0


class Searcher:
    """
    Searches the knowledge base index for items relevant to a query.

    Features:
    - Tenant/user/category scoping
    - Similarity threshold
    - Keyword tie-break ranking
    - Result cap
    """

    def __init__(
        self,
        envector_client: EnVectorClient,
        index_name: str,
        max_results: int = 10,
        oversample: int = 4,
    ):
        """
        Initialize searcher.

        Args:
            envector_client: EnVector client for vector search
            index_name: Knowledge base index name
            max_results: Maximum items returned per query
            oversample: Candidates fetched from the store per result slot,
                to leave room for scope and threshold filtering
        """
        self._client = envector_client
        self._index_name = index_name
        self._max_results = max_results
        self._oversample = max(1, oversample)

    async def retrieve(
        self,
        query: Query,
        vector: List[float],
        terms: Set[str],
    ) -> List[SearchResult]:
        """
        Find knowledge base items matching the query.

        Args:
            query: Validated query (scope and threshold)
            vector: Prompt embedding
            terms: Search terms extracted from the prompt

        Returns:
            Ranked results, empty when nothing matches

        Raises:
            StoreError: the store request failed
        """
        candidates = await asyncio.to_thread(
            self._search_store, vector, self._max_results * self._oversample
        )

        results = []
        seen_ids = set()
        skipped_scope = 0

        for raw in candidates:
            item = self._to_item(raw)
            if item is None or item.id in seen_ids:
                continue
            seen_ids.add(item.id)

            if not item.in_scope(query.tenant_id, query.user_id, query.category_id):
                skipped_scope += 1
                continue

            score = raw["score"]
            if score < query.similarity_threshold:
                continue

            results.append(SearchResult(
                item=item,
                score=score,
                keyword_hits=count_keyword_hits(terms, item.title, item.text),
            ))

        # sort() is stable: full ties keep store order
        results.sort(key=lambda r: (r.score, r.keyword_hits), reverse=True)
        results = results[:self._max_results]

        logger.info(
            "Retrieved %d of %d candidates (%d out of scope, threshold %.2f)",
            len(results), len(candidates), skipped_scope, query.similarity_threshold,
        )
        return results

    def _search_store(self, vector: List[float], topk: int) -> List[Dict[str, Any]]:
        """Run the vector search and unwrap the store envelope."""
        try:
            raw_result = self._client.search(
                index_name=self._index_name,
                query_vector=vector,
                topk=topk,
            )
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Knowledge base search failed: {e}") from e

        if not raw_result.get("ok"):
            raise StoreError(f"Knowledge base search failed: {raw_result.get('error', 'unknown error')}")

        return self._client.parse_search_results(raw_result)

    def _to_item(self, raw: Dict[str, Any]):
        """Convert a parsed store hit to a KnowledgeBaseItem, or None if malformed."""
        metadata = dict(raw.get("metadata") or {})
        metadata.setdefault("id", raw.get("id"))
        if metadata.get("id") is None:
            logger.warning("Skipping search hit without an id")
            return None
        metadata["id"] = str(metadata["id"])

        try:
            return KnowledgeBaseItem.model_validate(metadata)
        except ValidationError as e:
            logger.warning("Skipping malformed knowledge base item %s: %s", metadata["id"], e)
            return None
