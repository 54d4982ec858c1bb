"""
EnVector Client

Thin wrapper over the pyenvector SDK for knowledge base search.
Every call returns the envelope used throughout the store layer:

{
    "ok": bool,
    "results": Any,   # Present if ok is True
    "error": str      # Present if ok is False
}
"""

import json
import logging
from pathlib import Path
from typing import List, Dict, Any, Optional

from .errors import StoreError

logger = logging.getLogger("rag_navigator.common.envector_client")


class EnVectorClient:
    """
    Direct client to enVector operations.

    The SDK is imported and initialised lazily on first use so that
    configuration problems surface at query time as StoreError.
    """

    def __init__(
        self,
        address: str = "localhost:50050",
        key_path: str = "~/.rag-navigator/keys",
        key_id: str = "navigator_key",
        access_token: Optional[str] = None,
        eval_mode: str = "rmp",
        auto_key_setup: bool = True,
    ):
        """
        Initialize EnVector client.

        Args:
            address: enVector server address (host:port or cloud URL)
            key_path: Path to store/load encryption keys
            key_id: Key identifier
            access_token: Cloud access token (for enVector Cloud)
            eval_mode: SDK evaluation mode
            auto_key_setup: Auto-generate keys if not found
        """
        self._address = address
        self._key_path = Path(key_path).expanduser()
        self._key_id = key_id
        self._access_token = access_token
        self._eval_mode = eval_mode
        self._auto_key_setup = auto_key_setup
        self._sdk = None

    @classmethod
    def from_config(cls, store_config) -> "EnVectorClient":
        return cls(
            address=store_config.endpoint,
            key_path=store_config.key_path,
            key_id=store_config.key_id,
            access_token=store_config.api_key or None,
        )

    def _ensure_initialized(self):
        """Lazily import and initialise the SDK"""
        if self._sdk is not None:
            return self._sdk

        try:
            import pyenvector as ev
        except ImportError as e:
            raise StoreError(f"pyenvector SDK not available: {e}") from e

        try:
            self._key_path.mkdir(parents=True, exist_ok=True)
            ev.init(
                address=self._address,
                key_path=str(self._key_path),
                key_id=self._key_id,
                eval_mode=self._eval_mode,
                auto_key_setup=self._auto_key_setup,
                access_token=self._access_token,
            )
        except Exception as e:
            raise StoreError(f"Failed to connect to enVector at {self._address}: {e}") from e

        logger.info("Connected to enVector at %s", self._address)
        self._sdk = ev
        return self._sdk

    def search(
        self,
        index_name: str,
        query_vector: List[float],
        topk: int = 10
    ) -> Dict[str, Any]:
        """
        Search for similar vectors.

        Args:
            index_name: Index to search
            query_vector: Query embedding vector
            topk: Number of results to return

        Returns:
            Result envelope with results list
        """
        ev = self._ensure_initialized()

        try:
            index = ev.Index(index_name)
            results = index.search(query_vector, top_k=topk, output_fields=["metadata"])
            return {"ok": True, "results": self._to_json_available(results)}
        except Exception as e:
            return {"ok": False, "error": repr(e)}

    def parse_search_results(self, result: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Parse search results into a cleaner format.

        Args:
            result: Raw result envelope from search()

        Returns:
            List of parsed results with id, score and decoded metadata,
            in the order the store returned them
        """
        if not result.get("ok"):
            return []

        raw_results = result.get("results", [])
        if not isinstance(raw_results, list):
            return []

        # Single-query searches come back as a one-element batch
        if raw_results and all(isinstance(r, list) for r in raw_results):
            raw_results = [item for batch in raw_results for item in batch]

        parsed = []
        for item in raw_results:
            if not isinstance(item, dict):
                continue

            metadata = item.get("metadata", {})
            if isinstance(metadata, str):
                try:
                    metadata = json.loads(metadata)
                except json.JSONDecodeError:
                    metadata = {"raw": metadata}

            if "score" in item:
                score = float(item["score"])
            else:
                # Convert distance to similarity
                score = 1.0 - float(item.get("distance", 0))

            parsed.append({
                "id": item.get("id"),
                "score": score,
                "metadata": metadata,
            })

        return parsed

    @staticmethod
    def _to_json_available(obj: Any) -> Any:
        """Converts SDK objects to a JSON-serializable format where possible."""
        if obj is None or isinstance(obj, (str, int, float, bool)):
            return obj
        if isinstance(obj, dict):
            return {str(k): EnVectorClient._to_json_available(v) for k, v in obj.items()}
        if isinstance(obj, (list, tuple, set)):
            return [EnVectorClient._to_json_available(item) for item in obj]
        for attr in ("model_dump", "dict", "to_dict"):
            if hasattr(obj, attr):
                try:
                    return EnVectorClient._to_json_available(getattr(obj, attr)())
                except Exception:
                    pass
        if hasattr(obj, "__dict__"):
            return {
                k: EnVectorClient._to_json_available(v)
                for k, v in obj.__dict__.items() if not k.startswith("_")
            }
        return repr(obj)
