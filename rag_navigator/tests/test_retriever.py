"""
Tests for Retriever components

Tests hybrid searching and per-item synthesis.
"""

import asyncio
import threading
import time

import pytest
from unittest.mock import Mock

from rag_navigator.common.envector_client import EnVectorClient
from rag_navigator.common.errors import Cancelled, ProviderError, StoreError
from rag_navigator.common.schemas import KnowledgeBaseItem, Query


def _query(**overrides):
    fields = dict(
        tenant_id="1234",
        user_id="5678",
        category_id="Document",
        prompt_text="What are the risk factors?",
        similarity_threshold=0.7,
    )
    fields.update(overrides)
    return Query(**fields)


def _hit(item_id, score, title=None, text="", tenant="1234", user="5678", category="Document"):
    return {
        "id": item_id,
        "score": score,
        "metadata": {
            "id": item_id,
            "tenantId": tenant,
            "userId": user,
            "categoryId": category,
            "title": title or f"Item {item_id}",
            "text": text or f"Content of {item_id}",
        },
    }


class TestSearcher:
    """Tests for Searcher"""

    @pytest.fixture
    def mock_client(self):
        client = Mock()
        client.search.return_value = {"ok": True, "results": []}
        client.parse_search_results.side_effect = EnVectorClient().parse_search_results
        return client

    @pytest.fixture
    def searcher(self, mock_client):
        from rag_navigator.retriever.searcher import Searcher
        return Searcher(mock_client, "secrag", max_results=10, oversample=4)

    @pytest.mark.asyncio
    async def test_returns_scoped_results_above_threshold(self, searcher, mock_client):
        mock_client.search.return_value = {"ok": True, "results": [
            _hit("a", 0.95),
            _hit("other-tenant", 0.93, tenant="9999"),
            _hit("other-user", 0.92, user="0000"),
            _hit("other-category", 0.91, category="Earnings"),
            _hit("below", 0.5),
        ]}

        results = await searcher.retrieve(_query(), [0.1] * 8, {"risk"})

        assert [r.item.id for r in results] == ["a"]
        assert results[0].score == 0.95

    @pytest.mark.asyncio
    async def test_unscoped_items_match_any_category(self, searcher, mock_client):
        mock_client.search.return_value = {"ok": True, "results": [
            _hit("scoped", 0.9),
            _hit("unscoped", 0.85, category=None),
        ]}

        results = await searcher.retrieve(_query(), [0.1] * 8, set())

        assert [r.item.id for r in results] == ["scoped", "unscoped"]

    @pytest.mark.asyncio
    async def test_unscoped_query_matches_every_category(self, searcher, mock_client):
        mock_client.search.return_value = {"ok": True, "results": [
            _hit("doc", 0.9),
            _hit("earnings", 0.8, category="Earnings"),
        ]}

        results = await searcher.retrieve(_query(category_id=None), [0.1] * 8, set())

        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_ranked_by_score_descending(self, searcher, mock_client):
        mock_client.search.return_value = {"ok": True, "results": [
            _hit("low", 0.75),
            _hit("high", 0.99),
            _hit("mid", 0.85),
        ]}

        results = await searcher.retrieve(_query(), [0.1] * 8, set())

        assert [r.item.id for r in results] == ["high", "mid", "low"]

    @pytest.mark.asyncio
    async def test_keyword_hits_break_score_ties(self, searcher, mock_client):
        mock_client.search.return_value = {"ok": True, "results": [
            _hit("plain", 0.8, text="Quarterly deliveries"),
            _hit("keyword", 0.8, text="Risk factors include supply"),
            _hit("better", 0.9, text="nothing relevant"),
        ]}

        results = await searcher.retrieve(_query(), [0.1] * 8, {"risk", "factors"})

        assert [r.item.id for r in results] == ["better", "keyword", "plain"]
        assert results[1].keyword_hits == 2

    @pytest.mark.asyncio
    async def test_full_ties_keep_store_order(self, searcher, mock_client):
        mock_client.search.return_value = {"ok": True, "results": [
            _hit("first", 0.8),
            _hit("second", 0.8),
            _hit("third", 0.8),
        ]}

        results = await searcher.retrieve(_query(), [0.1] * 8, set())

        assert [r.item.id for r in results] == ["first", "second", "third"]

    @pytest.mark.asyncio
    async def test_keywords_are_not_a_hard_filter(self, searcher, mock_client):
        mock_client.search.return_value = {"ok": True, "results": [_hit("a", 0.9, text="deliveries")]}

        results = await searcher.retrieve(_query(), [0.1] * 8, {"risk"})

        assert len(results) == 1
        assert results[0].keyword_hits == 0

    @pytest.mark.asyncio
    async def test_caps_results_and_oversamples_store(self, mock_client):
        from rag_navigator.retriever.searcher import Searcher
        searcher = Searcher(mock_client, "secrag", max_results=2, oversample=3)
        mock_client.search.return_value = {"ok": True, "results": [
            _hit(str(i), 0.99 - i * 0.01) for i in range(6)
        ]}

        results = await searcher.retrieve(_query(), [0.1] * 8, set())

        assert [r.item.id for r in results] == ["0", "1"]
        assert mock_client.search.call_args.kwargs["topk"] == 6

    @pytest.mark.asyncio
    async def test_empty_store_result_is_not_an_error(self, searcher):
        assert await searcher.retrieve(_query(), [0.1] * 8, {"risk"}) == []

    @pytest.mark.asyncio
    async def test_duplicate_and_malformed_hits_are_skipped(self, searcher, mock_client):
        mock_client.search.return_value = {"ok": True, "results": [
            _hit("a", 0.9),
            _hit("a", 0.9),
            {"id": None, "score": 0.95, "metadata": {}},
        ]}

        results = await searcher.retrieve(_query(), [0.1] * 8, set())

        assert [r.item.id for r in results] == ["a"]

    @pytest.mark.asyncio
    async def test_store_error_envelope_raises(self, searcher, mock_client):
        mock_client.search.return_value = {"ok": False, "error": "index not found"}

        with pytest.raises(StoreError, match="index not found"):
            await searcher.retrieve(_query(), [0.1] * 8, set())

    @pytest.mark.asyncio
    async def test_store_exception_raises_store_error(self, searcher, mock_client):
        mock_client.search.side_effect = ConnectionError("unreachable")

        with pytest.raises(StoreError, match="unreachable"):
            await searcher.retrieve(_query(), [0.1] * 8, set())


def _result(item_id, title, score=0.9):
    from rag_navigator.retriever.searcher import SearchResult
    item = KnowledgeBaseItem(
        id=item_id, tenant_id="1234", user_id="5678", category_id="Document",
        title=title, text=f"Content of {title}",
    )
    return SearchResult(item=item, score=score)


class TestSynthesizer:
    """Tests for Synthesizer"""

    @pytest.fixture
    def llm(self):
        llm = Mock()
        llm.generate.return_value = ("An answer.", 10)
        return llm

    @pytest.mark.asyncio
    async def test_empty_results_make_no_provider_calls(self, llm):
        from rag_navigator.retriever.synthesizer import Synthesizer

        answer = await Synthesizer(llm).synthesize(_query(), [])

        assert answer.text == ""
        assert answer.title is None
        llm.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_one_call_per_item_joined_in_order(self, llm):
        from rag_navigator.retriever.synthesizer import Synthesizer
        llm.generate.side_effect = [("Risks include X.", 5), ("Risks include Y.", 7)]
        results = [_result("a", "Item A"), _result("b", "Item B")]

        answer = await Synthesizer(llm, max_workers=1).synthesize(_query(), results)

        assert answer.text == "Risks include X.\n\nRisks include Y."
        assert answer.title == "Item A"
        assert answer.sources == ["a", "b"]
        assert answer.token_count == 12
        assert llm.generate.call_count == 2

    @pytest.mark.asyncio
    async def test_each_prompt_is_grounded_on_a_single_item(self, llm):
        from rag_navigator.retriever.synthesizer import Synthesizer
        results = [_result("a", "Item A"), _result("b", "Item B")]

        await Synthesizer(llm, max_workers=1).synthesize(_query(), results)

        prompts = [c.args[0] for c in llm.generate.call_args_list]
        assert "Item A" in prompts[0] and "Item B" not in prompts[0]
        assert "Item B" in prompts[1] and "Item A" not in prompts[1]
        assert all("What are the risk factors?" in p for p in prompts)

    @pytest.mark.asyncio
    async def test_concurrent_completions_keep_ranked_order(self):
        from rag_navigator.retriever.synthesizer import Synthesizer

        delays = {"Item A": 0.2, "Item B": 0.1, "Item C": 0.0}

        def generate(prompt, **kwargs):
            title = next(t for t in delays if t in prompt)
            time.sleep(delays[title])
            return (f"Answer from {title}", 1)

        llm = Mock()
        llm.generate.side_effect = generate
        results = [_result("a", "Item A"), _result("b", "Item B"), _result("c", "Item C")]

        answer = await Synthesizer(llm, max_workers=3).synthesize(_query(), results)

        assert answer.text.split("\n\n") == [
            "Answer from Item A", "Answer from Item B", "Answer from Item C",
        ]
        assert answer.title == "Item A"

    @pytest.mark.asyncio
    async def test_worker_limit_bounds_concurrency(self):
        from rag_navigator.retriever.synthesizer import Synthesizer

        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def generate(prompt, **kwargs):
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.02)
            with lock:
                state["active"] -= 1
            return ("ok", 1)

        llm = Mock()
        llm.generate.side_effect = generate
        results = [_result(str(i), f"Item {i}") for i in range(8)]

        await Synthesizer(llm, max_workers=2).synthesize(_query(), results)

        assert state["peak"] <= 2
        assert llm.generate.call_count == 8

    @pytest.mark.asyncio
    async def test_title_comes_from_top_ranked_item(self, llm):
        from rag_navigator.retriever.synthesizer import Synthesizer
        llm.generate.side_effect = [("Short.", 1), ("A much longer and more detailed answer.", 1)]
        results = [_result("a", "Item A", 0.95), _result("b", "Item B", 0.80)]

        answer = await Synthesizer(llm).synthesize(_query(), results)

        assert answer.title == "Item A"

    @pytest.mark.asyncio
    async def test_failure_on_second_item_fails_whole_answer(self, llm):
        from rag_navigator.retriever.synthesizer import Synthesizer
        llm.generate.side_effect = [("Risks include X.", 5), ProviderError("rate limited")]
        results = [_result("a", "Item A"), _result("b", "Item B")]

        with pytest.raises(ProviderError, match="rate limited"):
            await Synthesizer(llm, max_workers=1).synthesize(_query(), results)

    @pytest.mark.asyncio
    async def test_cancel_stops_remaining_completions(self, llm):
        from rag_navigator.retriever.synthesizer import Synthesizer
        cancel_event = asyncio.Event()

        def generate_then_cancel(prompt, **kwargs):
            cancel_event.set()
            return ("Risks include X.", 5)

        llm.generate.side_effect = generate_then_cancel
        results = [_result("a", "Item A"), _result("b", "Item B"), _result("c", "Item C")]

        with pytest.raises(Cancelled):
            await Synthesizer(llm, max_workers=1).synthesize(_query(), results, cancel_event)

        assert llm.generate.call_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_client_error_becomes_provider_error(self, llm):
        from rag_navigator.retriever.synthesizer import Synthesizer
        llm.generate.side_effect = TimeoutError("read timeout")

        with pytest.raises(ProviderError, match="read timeout"):
            await Synthesizer(llm).synthesize(_query(), [_result("a", "Item A")])


class TestFormatAnswer:
    def test_format_with_title(self):
        from rag_navigator.retriever.synthesizer import SynthesizedAnswer, format_answer_for_display
        text = format_answer_for_display(SynthesizedAnswer(text="Body", title="Item A", sources=["a"]))
        assert text == "Completion Title: Item A\nCompletion Text:\nBody"

    def test_format_without_title(self):
        from rag_navigator.retriever.synthesizer import SynthesizedAnswer, format_answer_for_display
        text = format_answer_for_display(SynthesizedAnswer(text=""))
        assert text.startswith("Completion Title: No Title")
