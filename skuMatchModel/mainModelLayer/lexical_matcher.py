# skuMatchModel/mainModelLayer/lexical_matcher.py
"""
Lexical matcher: synonym-expanded keyword scoring, no external calls.

Score per Service:
  +1.0  expanded token found verbatim among the Service's keyword/name tokens
  +0.5  expanded token (len > 3) found inside a keyword token (partial credit)
  -5.0  per negative keyword phrase present in the raw input

Any negative keyword hit is also a hard veto: the Service is never returned,
whatever its positive score.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Set, Tuple
import re

from skuMatchModel.mainModelLayer.skuModels import Service

# =============================
# Tunables / Public constants
# =============================

W_EXACT = 1.0
W_PARTIAL = 0.5
W_NEGATIVE = -5.0
PARTIAL_MIN_TOKEN_LEN = 3   # partial credit only for tokens longer than this
TOP_K = 5

# Bands over the raw score (empirically tuned, keep for parity)
HIGH_SCORE = 80.0
MEDIUM_SCORE = 65.0
SPECULATIVE_SCORE = 85.0

# Trades vocabulary, British phrasing. Canonical term -> synonyms.
SYNONYM_MAP: Dict[str, List[str]] = {
    # Plumbing
    "tap": ["faucet", "mixer", "spout", "taps"],
    "dripping": ["leaking", "drip", "leak", "running"],
    "toilet": ["loo", "cistern", "wc", "flush"],
    "blocked": ["clogged", "draining slow", "not draining", "overflowing"],
    "sink": ["basin", "washbasin"],
    "shower": ["mixer"],
    "bath": ["bathtub"],
    "seal": ["silicone", "sealant", "mastic", "re-seal", "reseal"],
    # Electrical
    "light": ["lamp", "bulb", "fitting", "fixture", "chandelier"],
    "socket": ["outlet", "plug", "power point"],
    "switch": ["dimmer"],
    # Mounting
    "mount": ["hang", "install", "fix", "put up"],
    "tv": ["television", "screen", "monitor"],
    "mirror": ["glass"],
    "blind": ["curtain", "shade", "roller", "venetian", "roman"],
    "shelf": ["shelves", "racking", "bookcase"],
    "picture": ["frame", "painting", "art"],
    # Flatpack
    "assemble": ["build", "put together", "construct"],
    "furniture": ["wardrobe", "bed", "table", "chair", "desk", "ikea", "pax", "malm"],
}


def _build_reverse_map(synonyms: Dict[str, List[str]]) -> Dict[str, List[str]]:
    reverse: Dict[str, List[str]] = {}
    for canonical, values in synonyms.items():
        for v in values:
            reverse.setdefault(v, []).append(canonical)
    return reverse


_REVERSE_SYNONYMS = _build_reverse_map(SYNONYM_MAP)

# =============================
# Simple NLP helpers
# =============================

_STRIP_RE = re.compile(r"[^a-z0-9\s]")


def normalize_text(s: str) -> str:
    return " ".join(_STRIP_RE.sub("", (s or "").lower()).split())


def tokenize(s: str) -> List[str]:
    return normalize_text(s).split()


def expand_with_synonyms(text: str) -> List[str]:
    """Input tokens plus their synonyms, both directions, first-seen order."""
    tokens = tokenize(text)
    expanded: Dict[str, None] = dict.fromkeys(tokens)
    for token in tokens:
        for syn in SYNONYM_MAP.get(token, []):
            expanded.setdefault(syn)
        for canonical in _REVERSE_SYNONYMS.get(token, []):
            expanded.setdefault(canonical)
    return list(expanded)


@lru_cache(maxsize=2048)
def service_tokens(service: Service) -> Tuple[str, ...]:
    toks: Dict[str, None] = {}
    for kw in service.keywords:
        phrase = (kw or "").strip().lower()
        if phrase:
            toks.setdefault(phrase)
            for w in tokenize(phrase):
                toks.setdefault(w)
    for w in service.name.lower().split():
        toks.setdefault(w)
    return tuple(toks)


def negative_hits(service: Service, text: str) -> List[str]:
    raw = (text or "").lower()
    return [neg for neg in service.negative_keywords if neg and neg.lower() in raw]


def is_vetoed(service: Service, text: str) -> bool:
    return bool(negative_hits(service, text))


def score_service(service: Service, expanded: List[str], text: str) -> float:
    toks = service_tokens(service)
    tok_set: Set[str] = set(toks)
    score = 0.0
    for token in expanded:
        if token in tok_set:
            score += W_EXACT
        elif len(token) > PARTIAL_MIN_TOKEN_LEN and any(token in kt for kt in toks):
            score += W_PARTIAL
    score += W_NEGATIVE * len(negative_hits(service, text))
    return score


@dataclass
class LexicalHit:
    service: Service
    score: float
    expanded_tokens: List[str] = field(default_factory=list)


def keyword_match(text: str, services: List[Service], top_k: int = TOP_K) -> List[LexicalHit]:
    """Top `top_k` Services by score, descending; catalog order breaks ties."""
    expanded = expand_with_synonyms(text)
    hits: List[LexicalHit] = []
    for service in services:
        score = score_service(service, expanded, text)
        # negative keywords veto outright, even when positives outweigh the penalty
        if score <= 0 or is_vetoed(service, text):
            continue
        hits.append(LexicalHit(service=service, score=score, expanded_tokens=expanded))
    hits.sort(key=lambda h: h.score, reverse=True)
    return hits[:top_k]
