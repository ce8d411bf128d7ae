# skuMatchModel/mainModelLayer/context_wrapper.py
"""
Live-call wrapper around SkuDetector.

Each new utterance is checked in this order:
  1. safety gate over the whole call so far (beats everything)
  2. fast path: latest utterance alone scoring a high lexical match
  3. full detection over the trailing window of the call transcript
"""

from __future__ import annotations
from typing import Optional
import logging

from skuMatchModel.mainModelLayer import safety_gate
from skuMatchModel.mainModelLayer.skuDetector import SkuDetector, lexical_high_result
from skuMatchModel.mainModelLayer.skuModels import ROUTE_INSTANT_PRICE, ROUTE_VIDEO_QUOTE, DetectionContext, MatchResult
from skuMatchModel.pathsAndImports import BM_CONTEXT_WINDOW_CHARS

MAX_HISTORY = 50
MIN_FAST_PATH_CHARS = 4

MORE_DETAIL_SCRIPT = "Could you tell me a bit more about the job so I can point you to the right option?"


def trailing_window(text: str, max_chars: int) -> str:
    """Last `max_chars` of text, without a half word at the front."""
    if len(text) <= max_chars:
        return text
    cut = text[-max_chars:]
    if text[-max_chars - 1] != " " and " " in cut:
        cut = cut.split(" ", 1)[1]
    return cut.strip()


class ContextualDetector:
    def __init__(self, detector: SkuDetector, window_chars: int = BM_CONTEXT_WINDOW_CHARS, max_history: int = MAX_HISTORY):
        self.detector = detector
        self.window_chars = window_chars
        self.max_history = max_history

    async def _detect(self, text: str, full: str, context: DetectionContext) -> MatchResult:
        verdict = safety_gate.evaluate(full, context.lead_type, context.is_elderly)
        if verdict.fired:
            logging.info(f"[context] Safety gate fired on call history: {verdict.flags}")
            return safety_gate.site_visit_result(verdict)

        if len(text.strip()) >= MIN_FAST_PATH_CHARS:
            best = await self.detector.full_text_scan(text)
            if best is not None and best.score >= self.detector.thresholds.high_lexical:
                logging.info(f"[context] Fast path on latest phrase: {best.service.sku_code}")
                return lexical_high_result(best, rationale="Instant strong keyword match on latest phrase")

        window = trailing_window(full, self.window_chars)
        return await self.detector.detect(window, context.options())

    async def detect_with_context(self, text: str, context: Optional[DetectionContext] = None) -> MatchResult:
        context = context if context is not None else DetectionContext()
        full = " ".join([*context.history, text]).strip()

        result = await self._detect(text, full, context)
        if not result.suggested_script:
            if result.route == ROUTE_INSTANT_PRICE and result.service is not None:
                script = f"I can give you a fixed price of £{result.service.price_pounds} for that job."
            elif result.route == ROUTE_VIDEO_QUOTE and result.matched:
                script = "To be sure on the price, could you click the link I sent to upload a quick video?"
            else:
                script = MORE_DETAIL_SCRIPT
            result = result.model_copy(update={"suggested_script": script})

        context.history.append(text)
        if len(context.history) > self.max_history:
            del context.history[: len(context.history) - self.max_history]
        context.last_detection = result
        return result
