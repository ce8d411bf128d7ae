# skuMatchModel/mainModelLayer/shared_state.py
from typing import Dict, List, Optional

from skuMatchModel.mainModelLayer.skuModels import DetectionOptions, MatchDebug, Service


class MatchContext:
    """Per-call scratch state passed along the strategy chain."""

    def __init__(self, text: str, options: Optional[DetectionOptions] = None):
        self.text = text
        self.options = options or DetectionOptions()
        self.services: List[Service] = []
        self.lexical_hits = []
        self.vector_hits = []
        self.expanded_tokens: List[str] = []
        self.llm_confidence = 0
        self.logs: List[str] = []

    @property
    def best_lexical_score(self) -> float:
        return self.lexical_hits[0].score if self.lexical_hits else 0.0

    @property
    def best_similarity(self) -> float:
        return self.vector_hits[0].similarity if self.vector_hits else 0.0

    def log(self, msg: str) -> None:
        self.logs.append(msg)

    def shortlist(self) -> List[Service]:
        """Lexical then vector candidates, de-duplicated by Service id."""
        seen: Dict[str, Service] = {}
        for hit in self.lexical_hits:
            seen.setdefault(hit.service.id, hit.service)
        for hit in self.vector_hits:
            seen.setdefault(hit.service.id, hit.service)
        return list(seen.values())

    def shortlist_is_mixed(self) -> bool:
        return bool(self.lexical_hits) and bool(self.vector_hits)

    def debug(self) -> MatchDebug:
        return MatchDebug(
            lexical_score=self.best_lexical_score,
            embedding_score=self.best_similarity,
            llm_confidence=self.llm_confidence,
            expanded_tokens=list(self.expanded_tokens),
            trace=list(self.logs),
        )
