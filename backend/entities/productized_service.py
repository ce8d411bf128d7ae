import json
from typing import List, Optional

from sqlalchemy import Column, String, Text, Integer, Boolean, ARRAY, JSON

from ..database.core import Base, engine

# Postgres gets native arrays; sqlite (tests, local runs) stores JSON lists
ListColumn = ARRAY(String) if engine.dialect.name == "postgresql" else JSON


class ProductizedService(Base):
    __tablename__ = 'productized_services'

    id = Column(String, primary_key=True)
    sku_code = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    price_pence = Column(Integer, nullable=False)
    time_estimate_minutes = Column(Integer, nullable=False, default=60)
    keywords = Column(ListColumn, nullable=False, default=list)
    negative_keywords = Column(ListColumn, nullable=False, default=list)
    ai_prompt_hint = Column(Text, nullable=True)
    embedding_vector = Column(Text, nullable=True)  # JSON list; native column `embedding` is added by the seeder
    category = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def embedding_list(self) -> Optional[List[float]]:
        if not self.embedding_vector:
            return None
        try:
            vec = json.loads(self.embedding_vector)
        except ValueError:
            return None
        return vec if isinstance(vec, list) else None

    def __repr__(self):
        return f"<ProductizedService(sku_code='{self.sku_code}', name='{self.name}', price_pence={self.price_pence})>"
