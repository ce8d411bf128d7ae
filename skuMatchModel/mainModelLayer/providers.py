# skuMatchModel/mainModelLayer/providers.py
"""
Concrete upstream adapters:

SentenceTransformerEmbedder - local sentence-transformers model (CPU/GPU)
OpenAIJsonClient            - chat completion in JSON mode, validated by pydantic
CsvCatalogStore             - catalog read from the seed CSV (no native vector index)
"""

from __future__ import annotations
from typing import Dict, List, Optional, Tuple, Type
import asyncio
import csv
import json
import logging

import torch
from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError
from sentence_transformers import SentenceTransformer

from skuMatchModel.pathsAndImports import BM_EMBEDDING_MODEL, BM_LLM_MODEL, BM_OPENAI_API_KEY, BM_SEED_CSV_PATH
from skuMatchModel.mainModelLayer.errors import (
    CatalogUnavailableError,
    EmbeddingError,
    LLMResponseError,
    MalformedModelOutputError,
    VectorSearchError,
)
from skuMatchModel.mainModelLayer.llm_disambiguator import T
from skuMatchModel.mainModelLayer.skuModels import Service

LLM_SEED = 7


def service_document(s: Service) -> str:
    """Text embedded for a catalog entry."""
    parts = [s.name, s.description, ", ".join(s.keywords)]
    return ". ".join(p for p in parts if p)


def split_list(cell: Optional[str]) -> List[str]:
    return [p.strip() for p in (cell or "").split(";") if p.strip()]


# =============================
# Embeddings
# =============================

class SentenceTransformerEmbedder:
    def __init__(self, model_name: str = BM_EMBEDDING_MODEL, device: Optional[str] = None):
        device = device or ("cuda" if torch.cuda.is_available() else "cpu")
        logging.info(f"[embedding] Loading {model_name} on {device}")
        self.model = SentenceTransformer(model_name, device=device)

    def _encode(self, texts: List[str]):
        return self.model.encode(texts, normalize_embeddings=True, convert_to_numpy=True, show_progress_bar=False)

    async def embed(self, text: str) -> List[float]:
        return (await self.embed_batch([text]))[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        try:
            matrix = await asyncio.to_thread(self._encode, texts)
        except Exception as e:
            raise EmbeddingError(str(e)) from e
        return [row.tolist() for row in matrix]


# =============================
# LLM
# =============================

class OpenAIJsonClient:
    def __init__(
        self,
        model: str = BM_LLM_MODEL,
        api_key: Optional[str] = BM_OPENAI_API_KEY,
        client: Optional[AsyncOpenAI] = None,
        seed: int = LLM_SEED,
    ):
        self.model = model
        self.seed = seed
        self.client = client or AsyncOpenAI(api_key=api_key)

    async def complete(self, prompt: str, response_model: Type[T], system: str = "", max_tokens: int = 300) -> T:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0,
                seed=self.seed,
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            raise LLMResponseError(str(e)) from e

        raw = response.choices[0].message.content or ""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedModelOutputError(raw, "not JSON") from e
        try:
            return response_model.model_validate(data)
        except ValidationError as e:
            raise MalformedModelOutputError(raw, f"{e.error_count()} schema error(s)") from e


# =============================
# CSV catalog
# =============================

class CsvCatalogStore:
    """
    Catalog backed by a CSV file. List columns (keywords, negative_keywords)
    are ';'-separated. The file is re-read on every load; with an embedder,
    vectors are reused for rows whose id and embedded text are unchanged.
    """

    def __init__(self, csv_path: str = BM_SEED_CSV_PATH, embedder: Optional[SentenceTransformerEmbedder] = None):
        self.csv_path = csv_path
        self.embedder = embedder
        self._vectors: Dict[Tuple[str, str], List[float]] = {}

    def _read(self) -> List[Service]:
        services: List[Service] = []
        with open(self.csv_path, newline="", encoding="utf-8") as f:
            for row in csv.DictReader(f):
                try:
                    services.append(Service(
                        id=row["id"],
                        sku_code=row["sku_code"],
                        name=row["name"],
                        description=row.get("description") or "",
                        price_pence=int(row["price_pence"]),
                        time_estimate_minutes=int(row.get("time_estimate_minutes") or 60),
                        keywords=split_list(row.get("keywords")),
                        negative_keywords=split_list(row.get("negative_keywords")),
                        category=row.get("category") or None,
                        is_active=(row.get("is_active") or "true").strip().lower() in ("true", "1", "yes"),
                    ))
                except (KeyError, ValueError, ValidationError) as e:
                    logging.warning(f"[catalog] Skipping CSV row {row.get('sku_code')}: {e}")
        return services

    async def fetch_active(self) -> List[Service]:
        try:
            services = [s for s in await asyncio.to_thread(self._read) if s.is_active]
        except OSError as e:
            raise CatalogUnavailableError(f"{self.csv_path}: {e}") from e

        if self.embedder is None:
            return services
        keys = [(s.id, service_document(s)) for s in services]
        missing = [k for k in dict.fromkeys(keys) if k not in self._vectors]
        if missing:
            logging.info(f"[catalog] Embedding {len(missing)} new or changed CSV row(s)")
            vectors = await self.embedder.embed_batch([doc for _, doc in missing])
            self._vectors.update(zip(missing, vectors))
        # drop vectors for rows no longer in the file
        self._vectors = {k: self._vectors[k] for k in keys}
        return [s.model_copy(update={"embedding": self._vectors[k]}) for s, k in zip(services, keys)]

    async def nearest(self, vector: List[float], k: int, min_similarity: float) -> List[Tuple[Service, float]]:
        raise VectorSearchError("CSV catalog has no vector index")
