# skuMatchModel/mainModelLayer/llm_disambiguator.py
"""
LLM disambiguation over a short candidate shortlist.

The model picks one candidate index (or none) and reports a 0-100 confidence.
Output is validated against DisambiguationVerdict straight after the call; any
call failure or schema violation is a non-match for this stage.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple, Type, TypeVar
import logging

from pydantic import BaseModel, Field

from skuMatchModel.mainModelLayer.skuModels import Service

# =============================
# Tunables
# =============================

ACCEPT_CONFIDENCE = 75     # accepted only when strictly above
GREEN_CONFIDENCE = 85      # strictly above -> green/confirm, else amber/review
MAX_RESPONSE_TOKENS = 200

SYSTEM_PROMPT = "You are a helpful handyman dispatcher for a UK odd-job company."

T = TypeVar("T", bound=BaseModel)


class LLMProvider(Protocol):
    async def complete(self, prompt: str, response_model: Type[T], system: str = "", max_tokens: int = 300) -> T: ...


class DisambiguationVerdict(BaseModel):
    matched_index: Optional[int] = None
    confidence: float = Field(default=0, ge=0, le=100)
    rationale: str = "LLM decision"


@dataclass
class LLMPick:
    service: Service
    confidence: int
    rationale: str
    raw_confidence: float = 0.0


def build_prompt(text: str, candidates: List[Service]) -> str:
    lines = "\n".join(
        f"{i}. [{c.sku_code}] {c.name} - {c.description or ''}" for i, c in enumerate(candidates)
    )
    return (
        f'User request: "{text}"\n\n'
        "We are an odd-job service. Which of the following predefined services matches this request?\n"
        f"Candidates:\n{lines}\n\n"
        "Rules:\n"
        '- Return JSON {"matched_index": number | null, "confidence": number (0-100), "rationale": "string"}\n'
        '- If "Fixing a TV on wall" matches "TV Mounting", return high confidence and that index.\n'
        '- If the request is generic ("fix stuff") or none fit, return null.\n'
    )


class LLMDisambiguator:
    def __init__(self, llm: LLMProvider, accept_confidence: int = ACCEPT_CONFIDENCE):
        self.llm = llm
        self.accept_confidence = accept_confidence

    async def disambiguate(self, text: str, candidates: List[Service]) -> Tuple[Optional[LLMPick], int]:
        """Returns (accepted pick or None, reported confidence)."""
        if not candidates:
            return None, 0

        try:
            verdict = await self.llm.complete(
                build_prompt(text, candidates),
                DisambiguationVerdict,
                system=SYSTEM_PROMPT,
                max_tokens=MAX_RESPONSE_TOKENS,
            )
        except Exception as e:
            logging.warning(f"[llm] Disambiguation failed, treating as no match: {e}")
            return None, 0

        confidence = int(round(verdict.confidence))
        idx = verdict.matched_index
        if idx is None:
            logging.info(f"[llm] No candidate chosen ({verdict.rationale})")
            return None, confidence
        if not 0 <= idx < len(candidates):
            logging.warning(f"[llm] Index {idx} outside shortlist of {len(candidates)}; ignoring")
            return None, confidence
        if verdict.confidence <= self.accept_confidence:
            logging.info(f"[llm] {candidates[idx].sku_code} at {confidence} below acceptance bar")
            return None, confidence
        return LLMPick(
            service=candidates[idx],
            confidence=confidence,
            rationale=verdict.rationale,
            raw_confidence=verdict.confidence,
        ), confidence
