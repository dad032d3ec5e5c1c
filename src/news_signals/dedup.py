"""Exact and embedding-based de-duplication of ingested headlines.

Every item gets a content hash (SHA-256, base64) of its normalized title and
description. Items whose hash is already stored are dropped. When an
embedder is available the item's vector is compared against stored
documents:

1. approximate top-K search through the document store's vector index;
2. on any failure, or when the store has no index, a linear cosine scan
   over the most recent documents;
3. when neither works, the item proceeds without similarity metadata.

Near duplicates (similarity at or above the dedupe threshold) are not
stored. Others are tagged ``topic-<date>`` when close to an existing story
and ``topic-<date>-new`` otherwise. Nothing here ever raises to the caller;
de-duplication only governs storage, never the sentiment tally.
"""

from __future__ import annotations

import base64
import hashlib
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .config import Settings, get_settings
from .errors import DedupBackendUnavailable
from .interfaces import DocStore, Embedder, StoredDocument
from .logging_utils import get_logger
from .models import NewsItem
from .time_utils import Clock, now_utc

log = get_logger("dedup")

_WS_RE = re.compile(r"\s+")

STATUS_NEW = "new"
STATUS_EXACT_DUP = "exact_duplicate"
STATUS_NEAR_DUP = "near_duplicate"
STATUS_UNCHECKED = "unchecked"


def _normalize(text: Optional[str]) -> str:
    return _WS_RE.sub(" ", (text or "").lower()).strip()


def content_key(
    title: Optional[str],
    description: Optional[str],
    max_title_len: int = 400,
    max_desc_len: int = 2000,
) -> str:
    return (
        _normalize(title)[:max_title_len] + " | " + _normalize(description)[:max_desc_len]
    )


def content_hash(key: str) -> str:
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> Optional[float]:
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape or va.size == 0:
        return None
    na = np.linalg.norm(va)
    nb = np.linalg.norm(vb)
    if na == 0 or nb == 0:
        return None
    return float(np.dot(va, vb) / (na * nb))


def best_cosine(vector: Sequence[float], candidates: List[Sequence[float]]) -> Optional[float]:
    """Highest cosine similarity between ``vector`` and any candidate row."""
    query = np.asarray(vector, dtype=float)
    rows = [c for c in candidates if c is not None and len(c) == query.size]
    if not rows or query.size == 0:
        return None
    matrix = np.asarray(rows, dtype=float)
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    valid = norms > 0
    if not valid.any():
        return None
    sims = (matrix[valid] @ query) / norms[valid]
    return float(sims.max())


@dataclass(frozen=True)
class DedupOutcome:
    content_hash: str
    status: str
    similarity: Optional[float] = None
    topic: Optional[str] = None

    @property
    def stored(self) -> bool:
        return self.status == STATUS_NEW


class Deduplicator:
    """Best-effort storage de-duplication.

    ``embedder`` and ``doc_store`` are both optional. Without a store only
    the hash is computed; without an embedder only exact duplicates are
    detected.
    """

    def __init__(
        self,
        doc_store: Optional[DocStore] = None,
        embedder: Optional[Embedder] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        self.doc_store = doc_store
        self.embedder = embedder
        self.settings = settings or get_settings()
        self._clock = clock or now_utc

    def hash_item(self, item: NewsItem) -> str:
        s = self.settings
        return content_hash(
            content_key(item.title, item.description, s.max_title_len, s.max_desc_len)
        )

    def _embed(self, item: NewsItem) -> List[float]:
        text = f"{item.title} {item.description}".strip()
        try:
            vector = self.embedder.embed(text)
        except Exception as exc:
            raise DedupBackendUnavailable(f"embedder failed: {exc}") from exc
        if vector is None:
            raise DedupBackendUnavailable("embedder unavailable")
        if len(vector) != self.settings.embedding_dim:
            raise DedupBackendUnavailable(
                f"embedding dim={len(vector)} expected={self.settings.embedding_dim}"
            )
        return [float(v) for v in vector]

    def _vector_search(self, vector: Sequence[float]) -> Optional[float]:
        s = self.settings
        hits = self.doc_store.vector_search(vector, s.vector_top_k, s.vector_num_candidates)
        scores = [score for _, score in hits if score is not None]
        return max(scores) if scores else None

    def _linear_scan(self, vector: Sequence[float]) -> Optional[float]:
        recent = self.doc_store.recent(self.settings.linear_scan_limit)
        return best_cosine(vector, [d.embedding for d in recent if d.embedding])

    def nearest_similarity(self, vector: Sequence[float]) -> Optional[float]:
        """Best similarity in [-1, 1] against stored documents, or ``None``."""
        if self.doc_store is None:
            return None
        try:
            best = self._vector_search(vector)
            if best is not None:
                return best
        except Exception as exc:
            log.debug("vector_search_unavailable err=%s fallback=linear_scan", exc)
        try:
            return self._linear_scan(vector)
        except Exception as exc:
            log.debug("linear_scan_failed err=%s", exc)
            return None

    def topic_label(self, similarity: Optional[float]) -> str:
        day = self._clock().date().isoformat()
        if similarity is not None and similarity >= self.settings.embed_cluster_threshold:
            return f"topic-{day}"
        return f"topic-{day}-new"

    def process(self, item: NewsItem) -> DedupOutcome:
        digest = self.hash_item(item)
        if self.doc_store is None:
            return DedupOutcome(content_hash=digest, status=STATUS_UNCHECKED)
        try:
            return self._process(item, digest)
        except Exception as exc:
            log.debug("dedup_error title=%s err=%s", item.title[:60], exc)
            return DedupOutcome(content_hash=digest, status=STATUS_UNCHECKED)

    def _process(self, item: NewsItem, digest: str) -> DedupOutcome:
        try:
            exists = self.doc_store.exists_by_hash(digest)
        except Exception as exc:
            log.debug("hash_lookup_failed err=%s", exc)
            exists = False
        if exists:
            log.debug("dedupe_hash_dup title=%s", item.title[:60])
            return DedupOutcome(content_hash=digest, status=STATUS_EXACT_DUP)

        embedding: Optional[List[float]] = None
        if self.embedder is not None:
            try:
                embedding = self._embed(item)
            except DedupBackendUnavailable as exc:
                log.warning("embedding_skipped title=%s err=%s", item.title[:60], exc)

        similarity = self.nearest_similarity(embedding) if embedding is not None else None
        topic = self.topic_label(similarity) if embedding is not None else None

        if similarity is not None and similarity >= self.settings.embed_dedupe_threshold:
            log.debug(
                "dedupe_ann_dup title=%s score=%.3f", item.title[:60], similarity
            )
            return DedupOutcome(
                content_hash=digest,
                status=STATUS_NEAR_DUP,
                similarity=similarity,
                topic=topic,
            )

        doc = StoredDocument(
            content_hash=digest,
            title=item.title,
            description=item.description,
            link=item.link,
            source=item.source,
            ts=item.published_at or self._clock(),
            embedding=embedding,
            topic=topic,
        )
        try:
            self.doc_store.insert(doc)
        except Exception as exc:
            log.warning("doc_insert_failed title=%s err=%s", item.title[:60], exc)
            return DedupOutcome(
                content_hash=digest, status=STATUS_UNCHECKED, similarity=similarity, topic=topic
            )
        return DedupOutcome(
            content_hash=digest, status=STATUS_NEW, similarity=similarity, topic=topic
        )
