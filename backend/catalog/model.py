from pydantic import BaseModel
from typing import List, Optional


class ServiceResponse(BaseModel):
    id: str
    sku_code: str
    name: str
    description: str = ""
    price_pence: int
    time_estimate_minutes: int = 60
    keywords: List[str] = []
    negative_keywords: List[str] = []
    category: Optional[str] = None

    model_config = {"from_attributes": True}


class RefreshResponse(BaseModel):
    refreshed: bool
    active_count: int
