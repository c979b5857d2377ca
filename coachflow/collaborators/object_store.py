"""
Object storage for large JSON artifacts (analytics documents, program details).
"""

from typing import Protocol

from .http import JsonHttpClient


class ObjectStore(Protocol):
    def put_json(self, prefix: str, payload: dict, metadata: dict) -> str:
        """Store payload and return its object key."""
        ...


class HttpObjectStore(JsonHttpClient):
    service_name = "object_store"

    def put_json(self, prefix: str, payload: dict, metadata: dict) -> str:
        data = self._request(
            "POST",
            prefix,
            payload={"body": payload, "metadata": metadata},
        )
        return (data or {}).get("key", "")
