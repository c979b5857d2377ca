"""
Clients for the services tools depend on.
"""

from .record_store import RecordStore, HttpRecordStore
from .object_store import ObjectStore, HttpObjectStore
from .semantic_search import SemanticSearch, HttpSemanticSearch
from .completion import CompletionClient, parse_json_with_fallbacks

__all__ = [
    "RecordStore",
    "HttpRecordStore",
    "ObjectStore",
    "HttpObjectStore",
    "SemanticSearch",
    "HttpSemanticSearch",
    "CompletionClient",
    "parse_json_with_fallbacks",
]
