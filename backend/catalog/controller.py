from typing import List

from fastapi import APIRouter, Depends
from starlette import status

from . import model
from ..detection.service import get_detector
from skuMatchModel.mainModelLayer.skuDetector import SkuDetector

router = APIRouter(
    prefix="/sku",
    tags=["SKU catalog"]
)


@router.get("/active", response_model=List[model.ServiceResponse])
async def get_active(detector: SkuDetector = Depends(get_detector)):
    return await detector.catalog.get_active_services()


@router.post("/refresh", response_model=model.RefreshResponse, status_code=status.HTTP_200_OK)
async def refresh_catalog(detector: SkuDetector = Depends(get_detector)):
    refreshed = await detector.catalog.refresh()
    services = await detector.catalog.get_active_services()
    return model.RefreshResponse(refreshed=refreshed, active_count=len(services))
