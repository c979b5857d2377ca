"""
Per-run result store.

Holds the most recent result of every executed tool, addressed by a storage
key derived from (tool, logical target). The coordinator writes it, blocking
policies and the result assembler read it. A store lives for exactly one run
attempt and is cleared before a retry.
"""

import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from .types import ResultStatus

logger = logging.getLogger(__name__)


@dataclass
class StoredResult:
    """A single tool result kept in the store."""

    key: str
    tool_name: str
    tool_use_id: str
    status: ResultStatus
    value: Any
    revision: int = field(default=1)

    @property
    def succeeded(self) -> bool:
        return self.status is ResultStatus.SUCCESS


class ResultStore:
    """
    Mapping of storage key to the latest tool result for one run.

    Parallel invocations write disjoint keys, so the lock only protects the
    underlying dict rather than enforcing any ordering between writers.
    """

    def __init__(self) -> None:
        self._storage: dict[str, StoredResult] = {}
        self._lock = threading.Lock()

    def put(
        self,
        key: str,
        tool_name: str,
        tool_use_id: str,
        status: ResultStatus,
        value: Any,
    ) -> StoredResult:
        """
        Store a tool result under key, overwriting any previous result.

        Returns:
            The stored record.
        """
        with self._lock:
            previous = self._storage.get(key)
            stored = StoredResult(
                key=key,
                tool_name=tool_name,
                tool_use_id=tool_use_id,
                status=status,
                value=value,
                revision=previous.revision + 1 if previous else 1,
            )
            self._storage[key] = stored

        logger.debug(f"Stored {status.value} result from {tool_name} under '{key}' (rev {stored.revision})")
        return stored

    def replace(self, key: str, value: Any) -> StoredResult:
        """
        Overwrite the value of an existing entry, keeping its provenance.

        Used when a later tool (e.g. pruning) rewrites results an earlier tool
        produced. Raises KeyError if nothing is stored under key, so a rewrite
        can never introduce a result no tool produced.
        """
        with self._lock:
            previous = self._storage[key]
            stored = StoredResult(
                key=key,
                tool_name=previous.tool_name,
                tool_use_id=previous.tool_use_id,
                status=previous.status,
                value=value,
                revision=previous.revision + 1,
            )
            self._storage[key] = stored

        logger.debug(f"Replaced value under '{key}' (rev {stored.revision})")
        return stored

    def get(self, key: str) -> Optional[StoredResult]:
        """Return the stored record for key, or None."""
        with self._lock:
            return self._storage.get(key)

    def value(self, key: str, default: Any = None) -> Any:
        """Return only the stored value for key."""
        stored = self.get(key)
        return stored.value if stored is not None else default

    def with_prefix(self, prefix: str) -> list[StoredResult]:
        """All records whose key starts with prefix, in insertion order."""
        with self._lock:
            return [r for k, r in self._storage.items() if k.startswith(prefix)]

    def successful(self) -> list[StoredResult]:
        with self._lock:
            return [r for r in self._storage.values() if r.succeeded]

    def snapshot(self) -> dict[str, StoredResult]:
        """A deep copy of the current contents."""
        with self._lock:
            return copy.deepcopy(self._storage)

    def clear(self) -> None:
        """Remove every stored result."""
        with self._lock:
            count = len(self._storage)
            self._storage.clear()
        logger.debug(f"Cleared {count} results from result store")

    def __len__(self) -> int:
        return len(self._storage)

    def __contains__(self, key: str) -> bool:
        return key in self._storage

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._storage))
