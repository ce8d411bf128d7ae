from pydantic import BaseModel, Field
from typing import List, Optional

from skuMatchModel.mainModelLayer.skuModels import DetectionOptions


class DetectRequest(BaseModel):
    text: str
    lead_type: Optional[str] = None
    is_elderly: bool = False
    previous_transcript: Optional[str] = None

    def options(self) -> DetectionOptions:
        return DetectionOptions(
            lead_type=self.lead_type,
            is_elderly=self.is_elderly,
            previous_transcript=self.previous_transcript,
        )


class LiveUtteranceRequest(BaseModel):
    text: str = Field(min_length=1)
    lead_type: Optional[str] = None
    is_elderly: bool = False


class LiveInteractionsResponse(BaseModel):
    interaction_ids: List[str]
