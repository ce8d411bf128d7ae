# skuMatchModel/mainModelLayer/safety_gate.py
"""
Safety & complexity gate. Pure predicate over the accumulated conversation.

Fires on: commercial / managed-property clients, hazard words (gas, electrical,
structural, concealed damp), complex whole-property work, elderly callers and
callers who cannot do video. A fired gate forces a paid site visit whatever the
match score.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
import re

from skuMatchModel.mainModelLayer.skuModels import (
    ACTION_REVIEW,
    LIGHT_AMBER,
    METHOD_HEURISTIC,
    ROUTE_SITE_VISIT,
    MatchResult,
)

# =============================
# Vocabulary
# =============================

COMMERCIAL_LEAD_TYPES = {"commercial", "property manager", "managed property", "landlord agency"}

HAZARD_TERMS: Dict[str, Tuple[str, ...]] = {
    "gas": ("gas", "smell gas", "smell of gas", "fumes", "carbon monoxide"),
    "electrical": ("crackling", "sparking", "arcing", "burning smell", "burning", "smoke"),
    "structural": ("foundation", "foundations", "subsidence", "structural", "collapse", "collapsed"),
    "concealed_damp": ("mold", "mould", "damp", "leak behind wall", "leak behind the wall"),
}

COMPLEXITY_TERMS: Tuple[str, ...] = (
    "renovation", "refurbishment", "entire house", "whole house", "office floor",
    "building site", "extension", "commercial",
)

ELDERLY_TERMS: Tuple[str, ...] = ("elderly", "80 years old", "pensioner")

TECH_AVERSE_TERMS: Tuple[str, ...] = (
    "no smartphone", "landline", "can't use whatsapp", "cant use whatsapp",
    "too old for technology", "just come round", "don't do video", "dont do video",
)

FLAG_LABELS = {
    "commercial_client": "Commercial/managed-property client",
    "gas": "Gas safety risk",
    "electrical": "Electrical safety risk",
    "structural": "Structural risk",
    "concealed_damp": "Concealed damp/leak needs diagnosis",
    "complex_job": "Complex/whole-property job",
    "elderly": "Elderly client, high-touch required",
    "tech_averse": "Caller cannot do video",
}

SITE_VISIT_CONFIDENCE = 70
SITE_VISIT_SCRIPT = (
    "For a job like this we'd recommend a site visit so we can give you an accurate price. "
    "The visit fee is £39."
)


def _term_rx(terms) -> re.Pattern:
    alts = "|".join(re.escape(t) for t in sorted(terms, key=len, reverse=True))
    return re.compile(rf"(?<![a-z0-9])(?:{alts})(?![a-z0-9])", re.I)


_HAZARD_RX = {name: _term_rx(terms) for name, terms in HAZARD_TERMS.items()}
_COMPLEX_RX = _term_rx(COMPLEXITY_TERMS)
_ELDERLY_RX = _term_rx(ELDERLY_TERMS)
_TECH_RX = _term_rx(TECH_AVERSE_TERMS)


def _clean(text: str) -> str:
    return (text or "").replace("’", "'").replace("‘", "'").lower()


@dataclass
class SafetyVerdict:
    flags: List[str] = field(default_factory=list)
    evidence: Dict[str, str] = field(default_factory=dict)

    @property
    def fired(self) -> bool:
        return bool(self.flags)

    @property
    def rationale(self) -> str:
        parts = []
        for flag in self.flags:
            label = FLAG_LABELS.get(flag, flag)
            ev = self.evidence.get(flag)
            parts.append(f"{label} ('{ev}')" if ev else label)
        return "; ".join(parts) + " - Recommending Site Visit"


def evaluate(text: str, lead_type: Optional[str] = None, is_elderly: bool = False) -> SafetyVerdict:
    s = _clean(text)
    verdict = SafetyVerdict()

    if lead_type and lead_type.strip().lower() in COMMERCIAL_LEAD_TYPES:
        verdict.flags.append("commercial_client")
        verdict.evidence["commercial_client"] = lead_type

    for name, rx in _HAZARD_RX.items():
        m = rx.search(s)
        if m:
            verdict.flags.append(name)
            verdict.evidence[name] = m.group(0)

    m = _COMPLEX_RX.search(s)
    if m:
        verdict.flags.append("complex_job")
        verdict.evidence["complex_job"] = m.group(0)

    m = _ELDERLY_RX.search(s)
    if is_elderly or m:
        verdict.flags.append("elderly")
        if m:
            verdict.evidence["elderly"] = m.group(0)

    m = _TECH_RX.search(s)
    if m:
        verdict.flags.append("tech_averse")
        verdict.evidence["tech_averse"] = m.group(0)

    return verdict


def site_visit_result(verdict: SafetyVerdict) -> MatchResult:
    return MatchResult(
        matched=False,
        service=None,
        confidence=SITE_VISIT_CONFIDENCE,
        method=METHOD_HEURISTIC,
        rationale=verdict.rationale,
        route=ROUTE_SITE_VISIT,
        traffic_light=LIGHT_AMBER,
        operator_action=ACTION_REVIEW,
        suggested_script=SITE_VISIT_SCRIPT,
        safety_flags=list(verdict.flags),
    )
