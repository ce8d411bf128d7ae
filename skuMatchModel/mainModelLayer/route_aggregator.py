# skuMatchModel/mainModelLayer/route_aggregator.py
"""
Combine per-task verdicts into one routing decision.

Worst case wins: site visit > video quote > instant price.
  - any safety flag or site-visit task   -> "mixed" (visit-level handling)
  - else any unmatched or video task     -> "video_quote"
  - else                                 -> "instant_price"
Price = sum(matched price x quantity); unmatched tasks are listed separately.
"""

from __future__ import annotations
from typing import List, Optional

from skuMatchModel.mainModelLayer.skuModels import (
    ROUTE_INSTANT_PRICE,
    ROUTE_MIXED,
    ROUTE_SITE_VISIT,
    ROUTE_VIDEO_QUOTE,
    AggregateResult,
    MatchedService,
    TaskItem,
    TaskMatch,
)


def overall_route(results: List[TaskMatch], global_flags: Optional[List[str]] = None) -> str:
    has_visit = any(r.detection.route == ROUTE_SITE_VISIT or r.detection.safety_flags for r in results)
    if global_flags or has_visit:
        return ROUTE_MIXED
    has_video = any(r.detection.route == ROUTE_VIDEO_QUOTE for r in results)
    has_unmatched = any(not (r.detection.matched and r.detection.service) for r in results)
    if has_video or has_unmatched:
        return ROUTE_VIDEO_QUOTE
    return ROUTE_INSTANT_PRICE


def aggregate(
    original_text: str,
    tasks: List[TaskItem],
    results: List[TaskMatch],
    global_flags: Optional[List[str]] = None,
) -> AggregateResult:
    matched: List[MatchedService] = []
    unmatched: List[TaskItem] = []
    total = 0

    for res in results:
        det = res.detection
        if det.matched and det.service is not None:
            line_total = det.service.price_pence * res.task.quantity
            matched.append(MatchedService(task=res.task, service=det.service, confidence=det.confidence, line_total_pence=line_total))
            total += line_total
        else:
            unmatched.append(res.task)

    flags: List[str] = list(dict.fromkeys(list(global_flags or []) + [f for r in results for f in r.detection.safety_flags]))

    return AggregateResult(
        original_text=original_text,
        tasks=tasks,
        results=results,
        matched_services=matched,
        unmatched_tasks=unmatched,
        total_price_pence=total,
        has_matches=bool(matched),
        has_unmatched=bool(unmatched),
        is_partial=bool(matched) and bool(unmatched),
        safety_flags=flags,
        route=overall_route(results, global_flags),
    )
