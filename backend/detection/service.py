import logging
from collections import OrderedDict
from functools import lru_cache
from typing import List, Optional

from skuMatchModel.pathsAndImports import BM_DATABASE_URL
from skuMatchModel.mainModelLayer.catalog_cache import CatalogCache
from skuMatchModel.mainModelLayer.context_wrapper import ContextualDetector
from skuMatchModel.mainModelLayer.embedding_store import EmbeddingStore
from skuMatchModel.mainModelLayer.skuDetector import SkuDetector
from skuMatchModel.mainModelLayer.skuModels import DetectionContext

MAX_LIVE_INTERACTIONS = 50


@lru_cache(maxsize=1)
def get_detector() -> SkuDetector:
    from skuMatchModel.mainModelLayer.providers import CsvCatalogStore, OpenAIJsonClient, SentenceTransformerEmbedder

    embedder = SentenceTransformerEmbedder()
    if BM_DATABASE_URL:
        from backend.catalog.service import SqlCatalogStore
        store = SqlCatalogStore()
    else:
        logging.info("[catalog] DATABASE_URL not set, serving the seed CSV")
        store = CsvCatalogStore(embedder=embedder)
    return SkuDetector(CatalogCache(store), EmbeddingStore(embedder), OpenAIJsonClient())


class LiveInteractionRegistry:
    """Per-call DetectionContext, oldest evicted past the cap."""

    def __init__(self, max_interactions: int = MAX_LIVE_INTERACTIONS):
        self.max_interactions = max_interactions
        self._contexts: "OrderedDict[str, DetectionContext]" = OrderedDict()

    def get_or_create(self, interaction_id: str, lead_type: Optional[str] = None, is_elderly: bool = False) -> DetectionContext:
        ctx = self._contexts.get(interaction_id)
        if ctx is None:
            ctx = DetectionContext(lead_type=lead_type, is_elderly=is_elderly)
            self._contexts[interaction_id] = ctx
            while len(self._contexts) > self.max_interactions:
                evicted, _ = self._contexts.popitem(last=False)
                logging.info(f"[context] Evicted interaction {evicted}")
        else:
            self._contexts.move_to_end(interaction_id)
            if lead_type:
                ctx.lead_type = lead_type
            ctx.is_elderly = ctx.is_elderly or is_elderly
        return ctx

    def end(self, interaction_id: str) -> bool:
        return self._contexts.pop(interaction_id, None) is not None

    def active_ids(self) -> List[str]:
        return list(self._contexts)


@lru_cache(maxsize=1)
def get_registry() -> LiveInteractionRegistry:
    return LiveInteractionRegistry()


def get_contextual_detector(detector: SkuDetector) -> ContextualDetector:
    return ContextualDetector(detector)
