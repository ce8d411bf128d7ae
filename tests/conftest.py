import pytest

from skuMatchModel.mainModelLayer.catalog_cache import CatalogCache
from skuMatchModel.mainModelLayer.embedding_store import EmbeddingStore
from skuMatchModel.mainModelLayer.skuDetector import SkuDetector
from tests.fakes import FakeCatalogStore, FakeEmbedder, FakeLLM, no_sleep, seed_services


@pytest.fixture
def build_detector():
    def _build(services=None, store=None, embedder=None, llm=None, thresholds=None):
        store = store or FakeCatalogStore(seed_services() if services is None else services)
        embedder = embedder or FakeEmbedder()
        llm = llm or FakeLLM()
        detector = SkuDetector(CatalogCache(store, sleep=no_sleep), EmbeddingStore(embedder), llm, thresholds)
        return detector, store, embedder, llm

    return _build
