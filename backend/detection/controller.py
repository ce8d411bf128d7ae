from fastapi import APIRouter, Depends, HTTPException
from starlette import status

from . import model
from .service import LiveInteractionRegistry, get_contextual_detector, get_detector, get_registry
from skuMatchModel.mainModelLayer.skuDetector import SkuDetector
from skuMatchModel.mainModelLayer.skuModels import AggregateResult, MatchResult

router = APIRouter(
    prefix="/sku",
    tags=["SKU detection"]
)


def _require_text(text: str) -> None:
    if not text or not text.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Text is required")


@router.post("/detect", response_model=MatchResult)
async def detect(request: model.DetectRequest, detector: SkuDetector = Depends(get_detector)):
    _require_text(request.text)
    return await detector.detect(request.text, request.options())


@router.post("/detect-multi", response_model=AggregateResult)
async def detect_multi(request: model.DetectRequest, detector: SkuDetector = Depends(get_detector)):
    _require_text(request.text)
    return await detector.detect_multi_task(request.text, request.options())


@router.post("/live/{interaction_id}", response_model=MatchResult)
async def live_utterance(
    interaction_id: str,
    request: model.LiveUtteranceRequest,
    detector: SkuDetector = Depends(get_detector),
    registry: LiveInteractionRegistry = Depends(get_registry),
):
    _require_text(request.text)
    context = registry.get_or_create(interaction_id, request.lead_type, request.is_elderly)
    return await get_contextual_detector(detector).detect_with_context(request.text, context)


@router.get("/live", response_model=model.LiveInteractionsResponse)
def list_interactions(registry: LiveInteractionRegistry = Depends(get_registry)):
    return model.LiveInteractionsResponse(interaction_ids=registry.active_ids())


@router.delete("/live/{interaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def end_interaction(interaction_id: str, registry: LiveInteractionRegistry = Depends(get_registry)):
    if not registry.end(interaction_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Interaction {interaction_id} not found")
