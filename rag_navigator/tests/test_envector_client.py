"""Tests for EnVectorClient result handling."""

import json

import pytest
from unittest.mock import Mock, patch

from rag_navigator.common.config import StoreConfig
from rag_navigator.common.envector_client import EnVectorClient
from rag_navigator.common.errors import StoreError


class TestParseSearchResults:
    @pytest.fixture
    def client(self):
        return EnVectorClient()

    def test_failed_envelope_parses_empty(self, client):
        assert client.parse_search_results({"ok": False, "error": "boom"}) == []

    def test_flattens_single_query_batch(self, client):
        result = {"ok": True, "results": [[
            {"id": 1, "score": 0.9, "metadata": {"title": "A"}},
            {"id": 2, "score": 0.8, "metadata": {"title": "B"}},
        ]]}

        parsed = client.parse_search_results(result)

        assert [p["id"] for p in parsed] == [1, 2]
        assert parsed[0]["metadata"] == {"title": "A"}

    def test_decodes_json_metadata(self, client):
        metadata = {"tenantId": "1234", "title": "Risk Factors"}
        result = {"ok": True, "results": [{"id": "a", "score": 0.9, "metadata": json.dumps(metadata)}]}

        assert client.parse_search_results(result)[0]["metadata"] == metadata

    def test_undecodable_metadata_kept_raw(self, client):
        result = {"ok": True, "results": [{"id": "a", "score": 0.9, "metadata": "not json"}]}

        assert client.parse_search_results(result)[0]["metadata"] == {"raw": "not json"}

    def test_distance_converted_to_similarity(self, client):
        result = {"ok": True, "results": [{"id": "a", "distance": 0.25, "metadata": {}}]}

        assert client.parse_search_results(result)[0]["score"] == pytest.approx(0.75)

    def test_preserves_store_order(self, client):
        result = {"ok": True, "results": [
            {"id": "low", "score": 0.1},
            {"id": "high", "score": 0.9},
        ]}

        assert [p["id"] for p in client.parse_search_results(result)] == ["low", "high"]


class TestSearch:
    def test_search_wraps_sdk_errors_in_envelope(self):
        client = EnVectorClient()
        sdk = Mock()
        sdk.Index.return_value.search.side_effect = RuntimeError("index missing")
        client._sdk = sdk

        result = client.search("secrag", [0.1] * 4, topk=5)

        assert result["ok"] is False
        assert "index missing" in result["error"]

    def test_search_returns_results(self):
        client = EnVectorClient()
        sdk = Mock()
        sdk.Index.return_value.search.return_value = [[{"id": "a", "score": 0.9, "metadata": "{}"}]]
        client._sdk = sdk

        result = client.search("secrag", [0.1] * 4, topk=5)

        assert result == {"ok": True, "results": [[{"id": "a", "score": 0.9, "metadata": "{}"}]]}
        sdk.Index.assert_called_once_with("secrag")
        sdk.Index.return_value.search.assert_called_once_with(
            [0.1] * 4, top_k=5, output_fields=["metadata"],
        )

    def test_missing_sdk_is_store_error(self):
        client = EnVectorClient()
        with patch.dict("sys.modules", {"pyenvector": None}):
            with pytest.raises(StoreError, match="pyenvector"):
                client.search("secrag", [0.1] * 4)

    def test_from_config(self, tmp_path):
        cfg = StoreConfig(endpoint="envector.local:50050", api_key="token", key_path=str(tmp_path))
        client = EnVectorClient.from_config(cfg)

        assert client._address == "envector.local:50050"
        assert client._access_token == "token"
