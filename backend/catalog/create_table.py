import asyncio
import csv
import logging
import sys
import uuid

from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy.orm import Session
from sqlalchemy.sql import text
from typing import List, Optional

from backend.database.core import engine, Base, get_session
from backend.entities.productized_service import ProductizedService
from backend.catalog.service import store_embedding
from skuMatchModel.pathsAndImports import BM_EMBEDDING_DIM, BM_SEED_CSV_PATH
from skuMatchModel.mainModelLayer.providers import service_document, split_list


# === Pydantic Model ===
class RegisterServiceRequest(BaseModel):
    id: Optional[str] = None
    sku_code: str
    name: str
    description: str = ""
    price_pence: int
    time_estimate_minutes: int = 60
    keywords: List[str] = []
    negative_keywords: List[str] = []
    ai_prompt_hint: Optional[str] = None
    category: Optional[str] = None
    is_active: bool = True

    @field_validator("keywords", "negative_keywords", mode="before")
    @classmethod
    def _split(cls, v):
        return split_list(v) if isinstance(v, str) else v


def prepare_schema() -> None:
    Base.metadata.create_all(bind=engine)
    if engine.dialect.name == "postgresql":
        with engine.begin() as conn:
            conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
            conn.execute(text(
                f"ALTER TABLE productized_services ADD COLUMN IF NOT EXISTS embedding vector({BM_EMBEDDING_DIM})"
            ))


# === Insert One Entry (skip existing sku_code) ===
def register_service(db: Session, request: RegisterServiceRequest) -> bool:
    if db.query(ProductizedService).filter(ProductizedService.sku_code == request.sku_code).first():
        return False
    try:
        data = request.model_dump()
        data["id"] = data["id"] or str(uuid.uuid4())
        db.add(ProductizedService(**data))
        db.commit()
        return True
    except Exception as e:
        db.rollback()
        logging.error(f"Failed to register SKU {request.sku_code}: {str(e)}")
        raise


def embed_missing(db: Session) -> int:
    """Embed every SKU that has no stored vector yet."""
    from skuMatchModel.mainModelLayer.providers import SentenceTransformerEmbedder
    from backend.catalog.service import to_service

    rows = db.query(ProductizedService).filter(ProductizedService.embedding_vector.is_(None)).all()
    if not rows:
        return 0
    embedder = SentenceTransformerEmbedder()
    vectors = asyncio.run(embedder.embed_batch([service_document(to_service(r)) for r in rows]))
    for row, vector in zip(rows, vectors):
        store_embedding(db, row.sku_code, vector)
    db.commit()
    return len(rows)


def load_csv_to_db(csv_file_path: str, with_embeddings: bool = True) -> int:
    prepare_schema()
    added = 0
    db = get_session()
    try:
        with open(csv_file_path, newline='', encoding='utf-8') as csvfile:
            for row in csv.DictReader(csvfile):
                try:
                    if register_service(db, RegisterServiceRequest(**row)):
                        added += 1
                        logging.info(f"[catalog] Added: {row.get('sku_code')}")
                except ValidationError as ve:
                    logging.warning(f"[catalog] Validation error for row {row.get('sku_code')}: {ve}")
                except Exception as e:
                    logging.error(f"[catalog] Failed to add row {row.get('sku_code')}: {e}")
        if with_embeddings:
            logging.info(f"[catalog] Embedded {embed_missing(db)} SKU(s)")
    finally:
        db.close()
    return added


# === Main Entry ===
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    load_csv_to_db(sys.argv[1] if len(sys.argv) > 1 else BM_SEED_CSV_PATH)
