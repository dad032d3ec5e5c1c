"""Collaborator interfaces and in-memory reference implementations.

Persistence, broadcast, embedding and document storage live outside this
package. The pipeline only depends on the protocols below; the embedder and
document store are optional and may be ``None`` at every call site.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import (
    Any,
    Deque,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    runtime_checkable,
)

from .logging_utils import get_logger
from .models import MarketSentimentSnapshot

log = get_logger("interfaces")

TOPIC_NEWS_UPDATE = "news.update"
TOPIC_SENTIMENT_UPDATE = "sentiment.update"
TOPIC_TRADING_SIGNALS = "trading.signals"
TOPIC_EMERGENCY_HALT = "news.emergency.halt"


@runtime_checkable
class SnapshotRepo(Protocol):
    def save(self, snapshot: MarketSentimentSnapshot) -> MarketSentimentSnapshot:
        ...

    def find_latest(self) -> Optional[MarketSentimentSnapshot]:
        ...


@runtime_checkable
class Stream(Protocol):
    """Fire-and-forget broadcast channel."""

    def send(self, topic: str, payload: Dict[str, Any]) -> None:
        ...


@runtime_checkable
class Embedder(Protocol):
    def embed(self, text: str) -> Optional[Sequence[float]]:
        """Return a vector, or ``None`` when the service is unavailable."""
        ...


@dataclass
class StoredDocument:
    content_hash: str
    title: str
    description: str = ""
    link: str = ""
    source: str = ""
    ts: Optional[datetime] = None
    embedding: Optional[List[float]] = None
    topic: Optional[str] = None


@runtime_checkable
class DocStore(Protocol):
    def exists_by_hash(self, content_hash: str) -> bool:
        ...

    def insert(self, doc: StoredDocument) -> None:
        ...

    def recent(self, limit: int) -> List[StoredDocument]:
        """Most recent documents first."""
        ...

    def vector_search(
        self, vector: Sequence[float], limit: int, num_candidates: int
    ) -> List[Tuple[StoredDocument, float]]:
        """Approximate top-K search returning ``(doc, similarity)`` pairs.

        Stores without a vector index raise ``NotImplementedError``.
        """
        ...


class InMemorySnapshotRepo:
    def __init__(self) -> None:
        self._snapshots: List[MarketSentimentSnapshot] = []
        self._lock = threading.Lock()

    def save(self, snapshot: MarketSentimentSnapshot) -> MarketSentimentSnapshot:
        with self._lock:
            self._snapshots.append(snapshot)
        return snapshot

    def find_latest(self) -> Optional[MarketSentimentSnapshot]:
        with self._lock:
            if not self._snapshots:
                return None
            return max(self._snapshots, key=lambda s: s.as_of)


class LoggingStream:
    """Stream that only logs what would have been broadcast."""

    def send(self, topic: str, payload: Dict[str, Any]) -> None:
        log.info("broadcast topic=%s keys=%s", topic, ",".join(sorted(payload)))


@dataclass
class InMemoryDocStore:
    """Recency-ordered store without a vector index."""

    capacity: int = 5000
    _docs: Deque[StoredDocument] = field(default_factory=deque)
    _hashes: Dict[str, int] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def exists_by_hash(self, content_hash: str) -> bool:
        with self._lock:
            return content_hash in self._hashes

    def insert(self, doc: StoredDocument) -> None:
        with self._lock:
            self._docs.appendleft(doc)
            self._hashes[doc.content_hash] = self._hashes.get(doc.content_hash, 0) + 1
            while len(self._docs) > self.capacity:
                dropped = self._docs.pop()
                remaining = self._hashes.get(dropped.content_hash, 1) - 1
                if remaining <= 0:
                    self._hashes.pop(dropped.content_hash, None)
                else:
                    self._hashes[dropped.content_hash] = remaining

    def recent(self, limit: int) -> List[StoredDocument]:
        with self._lock:
            return list(self._docs)[:limit]

    def vector_search(
        self, vector: Sequence[float], limit: int, num_candidates: int
    ) -> List[Tuple[StoredDocument, float]]:
        raise NotImplementedError("no vector index")

    def __len__(self) -> int:
        return len(self._docs)
