"""
Semantic (vector) search over a user's history.
"""

from typing import Protocol

from .http import JsonHttpClient


class SemanticSearch(Protocol):
    def query(self, user_id: str, text: str, top_k: int = 8, min_score: float = 0.7) -> list[dict]: ...

    def upsert(self, user_id: str, record_id: str, text: str, metadata: dict) -> str: ...


class HttpSemanticSearch(JsonHttpClient):
    service_name = "semantic_search"

    def query(self, user_id: str, text: str, top_k: int = 8, min_score: float = 0.7) -> list[dict]:
        data = self._request(
            "POST",
            f"users/{user_id}/query",
            payload={"text": text, "top_k": top_k, "min_score": min_score},
        )
        return (data or {}).get("matches", [])

    def upsert(self, user_id: str, record_id: str, text: str, metadata: dict) -> str:
        data = self._request(
            "PUT",
            f"users/{user_id}/records/{record_id}",
            payload={"text": text, "metadata": metadata},
        )
        return (data or {}).get("id", record_id)
