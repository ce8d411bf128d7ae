# skuMatchModel/mainModelLayer/embedding_store.py
"""
Embedding store + similarity search.

EmbeddingCache  - process-wide map: normalised text -> vector. Never holds a
                  partial or failed vector; same key always yields same vector.
EmbeddingStore  - cache-first wrapper over an EmbeddingProvider, with a batched
                  warm-up for multi-task requests (falls back to per-text calls).
VectorSearch    - nearest Services for a text: native store query first,
                  in-process cosine over the cached catalog if that errors.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Sequence, Tuple
import asyncio
import logging
import math

import numpy as np

from skuMatchModel.mainModelLayer.catalog_cache import CatalogCache
from skuMatchModel.mainModelLayer.lexical_matcher import is_vetoed, normalize_text
from skuMatchModel.mainModelLayer.skuModels import Service

# =============================
# Tunables
# =============================

MIN_SIMILARITY = 0.60
TOP_K = 5


class EmbeddingProvider(Protocol):
    async def embed(self, text: str) -> List[float]: ...

    async def embed_batch(self, texts: List[str]) -> List[List[float]]: ...


def _is_valid_vector(vec: Optional[Sequence[float]]) -> bool:
    if vec is None or len(vec) == 0:
        return False
    return all(isinstance(x, (int, float)) and math.isfinite(x) for x in vec)


class EmbeddingCache:
    def __init__(self):
        self._vectors: Dict[str, Tuple[float, ...]] = {}

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, key: str) -> bool:
        return key in self._vectors

    def get(self, key: str) -> Optional[List[float]]:
        vec = self._vectors.get(key)
        return list(vec) if vec is not None else None

    def put(self, key: str, vector: Sequence[float]) -> bool:
        if not key or not _is_valid_vector(vector):
            return False
        # last writer wins; every writer computes the same value for a key
        self._vectors[key] = tuple(float(x) for x in vector)
        return True


class EmbeddingStore:
    def __init__(self, provider: EmbeddingProvider, cache: Optional[EmbeddingCache] = None):
        self.provider = provider
        self.cache = cache if cache is not None else EmbeddingCache()

    async def embed(self, text: str) -> Optional[List[float]]:
        key = normalize_text(text)
        if not key:
            return None
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        try:
            vector = await self.provider.embed(text)
        except Exception as e:
            logging.warning(f"[embedding] Provider failed for '{text[:40]}': {e}")
            return None
        if not self.cache.put(key, vector):
            logging.warning(f"[embedding] Discarding invalid vector for '{text[:40]}'")
            return None
        return self.cache.get(key)

    async def embed_many(self, texts: List[str]) -> Dict[str, Optional[List[float]]]:
        """Warm the cache for `texts`; one batched call when more than one is missing."""
        missing: Dict[str, str] = {}
        for t in texts:
            key = normalize_text(t)
            if key and key not in self.cache and key not in missing:
                missing[key] = t

        if len(missing) > 1:
            batch_texts = list(missing.values())
            try:
                vectors = await self.provider.embed_batch(batch_texts)
                if len(vectors) != len(batch_texts):
                    raise ValueError(f"expected {len(batch_texts)} vectors, got {len(vectors)}")
                for key, vec in zip(missing.keys(), vectors):
                    self.cache.put(key, vec)
            except Exception as e:
                logging.warning(f"[embedding] Batch of {len(batch_texts)} failed ({e}); falling back to per-text calls")
                await asyncio.gather(*(self.embed(t) for t in batch_texts))
        elif missing:
            await self.embed(next(iter(missing.values())))

        return {t: self.cache.get(normalize_text(t)) for t in texts}


# =============================
# Similarity search
# =============================

@dataclass
class VectorHit:
    service: Service
    similarity: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    if va.shape != vb.shape:
        return 0.0
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denom)


def brute_force_search(vector: Sequence[float], services: List[Service]) -> List[VectorHit]:
    hits: List[VectorHit] = []
    for service in services:
        if not service.embedding:
            continue
        hits.append(VectorHit(service=service, similarity=cosine_similarity(vector, service.embedding)))
    return hits


class VectorSearch:
    def __init__(
        self,
        catalog: CatalogCache,
        embeddings: EmbeddingStore,
        min_similarity: float = MIN_SIMILARITY,
        top_k: int = TOP_K,
    ):
        self.catalog = catalog
        self.embeddings = embeddings
        self.min_similarity = min_similarity
        self.top_k = top_k

    async def _native(self, vector: List[float], k: int) -> List[VectorHit]:
        rows = await self.catalog.store.nearest(vector, k, self.min_similarity)
        return [VectorHit(service=s, similarity=float(sim)) for s, sim in rows]

    async def _fallback(self, vector: List[float]) -> List[VectorHit]:
        services = await self.catalog.get_active_services()
        return brute_force_search(vector, services)

    async def search(self, text: str) -> List[VectorHit]:
        vector = await self.embeddings.embed(text)
        if vector is None:
            return []

        try:
            # over-fetch so vetoed rows do not shrink the shortlist
            services = await self.catalog.get_active_services()
            vetoed = sum(1 for s in services if is_vetoed(s, text))
            hits = await self._native(vector, self.top_k + vetoed)
        except Exception as e:
            logging.warning(f"[embedding] Native vector search failed ({e}); using in-process cosine")
            hits = await self._fallback(vector)

        hits = [h for h in hits if h.similarity > self.min_similarity and not is_vetoed(h.service, text)]
        hits.sort(key=lambda h: h.similarity, reverse=True)
        return hits[: self.top_k]
