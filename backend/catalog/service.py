import asyncio
import json
import logging
from typing import Callable, List, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import text

from backend.database.core import get_session
from backend.entities.productized_service import ProductizedService
from skuMatchModel.mainModelLayer.errors import CatalogUnavailableError, VectorSearchError
from skuMatchModel.mainModelLayer.skuModels import Service

NEAREST_SQL = """
    SELECT
        id, sku_code, name, description, price_pence, time_estimate_minutes,
        keywords, negative_keywords, category, is_active,
        1 - (embedding <=> CAST(:embedding AS vector)) AS similarity
    FROM productized_services
    WHERE is_active AND embedding IS NOT NULL
      AND 1 - (embedding <=> CAST(:embedding AS vector)) > :min_similarity
    ORDER BY embedding <=> CAST(:embedding AS vector)
    LIMIT :limit
"""


def format_embedding(vector: List[float]) -> str:
    return "[" + ",".join(str(float(x)) for x in vector) + "]"


def to_service(row: ProductizedService) -> Service:
    return Service(
        id=str(row.id),
        sku_code=row.sku_code,
        name=row.name,
        description=row.description or "",
        price_pence=row.price_pence,
        time_estimate_minutes=row.time_estimate_minutes or 60,
        keywords=list(row.keywords or []),
        negative_keywords=list(row.negative_keywords or []),
        embedding=row.embedding_list(),
        category=row.category,
        is_active=bool(row.is_active),
    )


class SqlCatalogStore:
    """productized_services table; pgvector handles nearest() on Postgres."""

    def __init__(self, session_factory: Callable[[], Session] = get_session):
        self._session_factory = session_factory

    def _fetch(self) -> List[Service]:
        db = self._session_factory()
        try:
            rows = db.query(ProductizedService).filter(ProductizedService.is_active.is_(True)).all()
            return [to_service(r) for r in rows]
        except SQLAlchemyError as e:
            raise CatalogUnavailableError(str(e)) from e
        finally:
            db.close()

    def _nearest(self, vector: List[float], k: int, min_similarity: float) -> List[Tuple[Service, float]]:
        db = self._session_factory()
        try:
            if db.get_bind().dialect.name != "postgresql":
                raise VectorSearchError("pgvector needs a Postgres backend")
            rows = db.execute(
                text(NEAREST_SQL),
                {"embedding": format_embedding(vector), "min_similarity": min_similarity, "limit": k},
            ).mappings().all()
        except SQLAlchemyError as e:
            raise VectorSearchError(str(e)) from e
        finally:
            db.close()

        hits = []
        for row in rows:
            service = Service(
                id=str(row["id"]),
                sku_code=row["sku_code"],
                name=row["name"],
                description=row["description"] or "",
                price_pence=row["price_pence"],
                time_estimate_minutes=row["time_estimate_minutes"] or 60,
                keywords=list(row["keywords"] or []),
                negative_keywords=list(row["negative_keywords"] or []),
                category=row["category"],
                is_active=bool(row["is_active"]),
            )
            hits.append((service, float(row["similarity"])))
        logging.info(f"[embedding] pgvector returned {len(hits)} candidate(s)")
        return hits

    async def fetch_active(self) -> List[Service]:
        return await asyncio.to_thread(self._fetch)

    async def nearest(self, vector: List[float], k: int, min_similarity: float) -> List[Tuple[Service, float]]:
        return await asyncio.to_thread(self._nearest, vector, k, min_similarity)


def store_embedding(db: Session, sku_code: str, vector: List[float]) -> None:
    """Write both the JSON copy and (on Postgres) the native vector column."""
    db.query(ProductizedService).filter(ProductizedService.sku_code == sku_code).update(
        {ProductizedService.embedding_vector: json.dumps(vector)}
    )
    if db.get_bind().dialect.name == "postgresql":
        db.execute(
            text("UPDATE productized_services SET embedding = CAST(:embedding AS vector) WHERE sku_code = :sku_code"),
            {"embedding": format_embedding(vector), "sku_code": sku_code},
        )
