# skuMatchModel/mainModelLayer/skuDetector.py
"""
SKU detector - the public entry points of the matcher.

  detect(text, options)        single utterance, single task
  detect_multi_task(text)      compound utterance -> itemised matches + one route

Single-task detection is an ordered list of strategies; the first one that
returns a MatchResult wins:

    safety gate -> lexical -> vector -> LLM shortlist -> default (video quote)

Every upstream failure is absorbed inside its stage, so the chain always ends
in a conservative verdict instead of an exception.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Set, Tuple
import asyncio
import logging

from skuMatchModel.mainModelLayer import safety_gate
from skuMatchModel.mainModelLayer.catalog_cache import CatalogCache
from skuMatchModel.mainModelLayer.embedding_store import MIN_SIMILARITY, EmbeddingStore, VectorSearch
from skuMatchModel.mainModelLayer.lexical_matcher import (
    HIGH_SCORE,
    MEDIUM_SCORE,
    SPECULATIVE_SCORE,
    LexicalHit,
    expand_with_synonyms,
    keyword_match,
)
from skuMatchModel.mainModelLayer.llm_disambiguator import (
    ACCEPT_CONFIDENCE,
    GREEN_CONFIDENCE,
    LLMDisambiguator,
    LLMProvider,
)
from skuMatchModel.mainModelLayer.route_aggregator import aggregate
from skuMatchModel.mainModelLayer.shared_state import MatchContext
from skuMatchModel.mainModelLayer.skuModels import (
    ACTION_CONFIRM,
    ACTION_REVIEW,
    LIGHT_AMBER,
    LIGHT_GREEN,
    METHOD_HYBRID,
    METHOD_LEXICAL,
    METHOD_LLM,
    METHOD_NONE,
    METHOD_VECTOR,
    ROUTE_INSTANT_PRICE,
    ROUTE_VIDEO_QUOTE,
    AggregateResult,
    DetectionOptions,
    MatchResult,
    TaskItem,
    TaskMatch,
)
from skuMatchModel.mainModelLayer.task_decomposer import TaskDecomposer, single_task

# =============================
# Tunables
# =============================

MIN_INPUT_CHARS = 5
HIGH_LEXICAL_CONFIDENCE = 90
MEDIUM_LEXICAL_CONFIDENCE = 80
VECTOR_ACCEPT_SIMILARITY = 0.90

VIDEO_SCRIPT = "To be sure on the price, could you send us a quick video of the job using the link I've sent?"


@dataclass
class MatchThresholds:
    """Calibration knobs. Defaults are the empirically tuned production values."""
    high_lexical: float = HIGH_SCORE
    medium_lexical: float = MEDIUM_SCORE
    speculative_lexical: float = SPECULATIVE_SCORE
    min_similarity: float = MIN_SIMILARITY
    vector_accept: float = VECTOR_ACCEPT_SIMILARITY
    llm_accept: int = ACCEPT_CONFIDENCE
    llm_green: int = GREEN_CONFIDENCE


Strategy = Callable[[MatchContext], Awaitable[Optional[MatchResult]]]


def too_short_result() -> MatchResult:
    return MatchResult(
        matched=False,
        confidence=0,
        method=METHOD_NONE,
        rationale="Too short",
        route=ROUTE_VIDEO_QUOTE,
    )


def lexical_high_result(hit: LexicalHit, rationale: str = "Strong keyword match") -> MatchResult:
    s = hit.service
    return MatchResult(
        matched=True,
        service=s,
        confidence=HIGH_LEXICAL_CONFIDENCE,
        method=METHOD_LEXICAL,
        rationale=rationale,
        route=ROUTE_INSTANT_PRICE,
        traffic_light=LIGHT_GREEN,
        operator_action=ACTION_CONFIRM,
        suggested_script=f"Great, I can give you a fixed price for {s.name} right now: £{s.price_pounds}.",
    )


class SkuDetector:
    def __init__(
        self,
        catalog: CatalogCache,
        embeddings: EmbeddingStore,
        llm: LLMProvider,
        thresholds: Optional[MatchThresholds] = None,
    ):
        self.catalog = catalog
        self.embeddings = embeddings
        self.thresholds = thresholds or MatchThresholds()
        self.vector_search = VectorSearch(catalog, embeddings, min_similarity=self.thresholds.min_similarity)
        self.disambiguator = LLMDisambiguator(llm, accept_confidence=self.thresholds.llm_accept)
        self.decomposer = TaskDecomposer(llm)
        self.strategies: List[Tuple[str, Strategy]] = [
            ("safety", self._safety_strategy),
            ("lexical", self._lexical_strategy),
            ("vector", self._vector_strategy),
            ("llm", self._llm_strategy),
            ("default", self._default_strategy),
        ]
        self._discarded: Set[asyncio.Task] = set()

    # -----------------------------
    # Strategies
    # -----------------------------

    async def _safety_strategy(self, ctx: MatchContext) -> Optional[MatchResult]:
        accumulated = " ".join(p for p in (ctx.options.previous_transcript, ctx.text) if p)
        verdict = safety_gate.evaluate(accumulated, ctx.options.lead_type, ctx.options.is_elderly)
        if not verdict.fired:
            return None
        ctx.log(f"safety gate fired: {verdict.flags}")
        return safety_gate.site_visit_result(verdict)

    async def _lexical_strategy(self, ctx: MatchContext) -> Optional[MatchResult]:
        th = self.thresholds
        ctx.services = await self.catalog.get_active_services()
        ctx.expanded_tokens = expand_with_synonyms(ctx.text)
        ctx.lexical_hits = keyword_match(ctx.text, ctx.services)
        if not ctx.lexical_hits:
            ctx.log(f"lexical: no hits over {len(ctx.services)} SKUs")
            return None

        best = ctx.lexical_hits[0]
        ctx.log(f"lexical: best {best.service.sku_code} score={best.score:.1f}")
        if best.score >= th.high_lexical:
            return lexical_high_result(best)
        if best.score >= th.medium_lexical:
            s = best.service
            # medium band is never auto-quoted
            return MatchResult(
                matched=True,
                service=s,
                confidence=MEDIUM_LEXICAL_CONFIDENCE,
                method=METHOD_LEXICAL,
                rationale="Likely keyword match, flagged for operator review",
                route=ROUTE_VIDEO_QUOTE,
                traffic_light=LIGHT_AMBER,
                operator_action=ACTION_REVIEW,
                suggested_script=f"I think this is {s.name}, but I'd like to see a quick video to be sure.",
            )
        return None

    async def _vector_strategy(self, ctx: MatchContext) -> Optional[MatchResult]:
        if not ctx.services:
            return None
        ctx.vector_hits = await self.vector_search.search(ctx.text)
        if not ctx.vector_hits:
            ctx.log("vector: no candidates above similarity floor")
            return None

        best = ctx.vector_hits[0]
        ctx.log(f"vector: best {best.service.sku_code} similarity={best.similarity:.3f}")
        if best.similarity >= self.thresholds.vector_accept:
            s = best.service
            return MatchResult(
                matched=True,
                service=s,
                confidence=int(round(best.similarity * 100)),
                method=METHOD_VECTOR,
                rationale="Close semantic match, confirm by video before quoting",
                route=ROUTE_VIDEO_QUOTE,
                traffic_light=LIGHT_AMBER,
                operator_action=ACTION_REVIEW,
                suggested_script=f"That sounds like {s.name}. Could you send a quick video so we can confirm the price?",
                candidates=[h.service for h in ctx.vector_hits],
            )
        return None

    async def _llm_strategy(self, ctx: MatchContext) -> Optional[MatchResult]:
        candidates = ctx.shortlist()
        if not candidates:
            return None

        pick, confidence = await self.disambiguator.disambiguate(ctx.text, candidates)
        ctx.llm_confidence = confidence
        if pick is None:
            ctx.log(f"llm: no accepted pick over {len(candidates)} candidates (confidence={confidence})")
            return None

        ctx.log(f"llm: picked {pick.service.sku_code} confidence={pick.confidence}")
        green = pick.raw_confidence > self.thresholds.llm_green
        return MatchResult(
            matched=True,
            service=pick.service,
            confidence=pick.confidence,
            method=METHOD_HYBRID if ctx.shortlist_is_mixed() else METHOD_LLM,
            rationale=pick.rationale,
            route=ROUTE_INSTANT_PRICE,
            traffic_light=LIGHT_GREEN if green else LIGHT_AMBER,
            operator_action=ACTION_CONFIRM if green else ACTION_REVIEW,
            suggested_script=f"I can give you a fixed price of £{pick.service.price_pounds} for that job.",
            candidates=candidates,
        )

    async def _default_strategy(self, ctx: MatchContext) -> Optional[MatchResult]:
        # vague requests are expected; the video quote is their intended path
        return MatchResult(
            matched=False,
            confidence=0,
            method=METHOD_NONE,
            rationale="Ambiguous request - defaulting to video quote to qualify",
            route=ROUTE_VIDEO_QUOTE,
            traffic_light=LIGHT_GREEN,
            operator_action=ACTION_CONFIRM,
            suggested_script=VIDEO_SCRIPT,
            candidates=ctx.shortlist(),
        )

    async def _run_chain(self, ctx: MatchContext) -> MatchResult:
        for name, strategy in self.strategies:
            try:
                result = await strategy(ctx)
            except Exception as e:
                logging.error(f"[detect] Stage '{name}' failed, continuing: {e}")
                ctx.log(f"{name}: failed ({e})")
                continue
            if result is not None:
                ctx.log(f"decided by {name}: route={result.route} confidence={result.confidence}")
                return result.model_copy(update={"debug": ctx.debug()})
        return (await self._default_strategy(ctx)).model_copy(update={"debug": ctx.debug()})

    # -----------------------------
    # Public API
    # -----------------------------

    async def detect(self, text: str, options: Optional[DetectionOptions] = None) -> MatchResult:
        if not text or len(text.strip()) < MIN_INPUT_CHARS:
            return too_short_result()
        result = await self._run_chain(MatchContext(text, options))
        logging.info(f"[detect] '{text[:60]}' -> {result.method}/{result.route} ({result.confidence})")
        return result

    async def full_text_scan(self, text: str) -> Optional[LexicalHit]:
        """Best lexical hit for the whole text; None when nothing scores."""
        services = await self.catalog.get_active_services()
        hits = keyword_match(text, services)
        return hits[0] if hits else None

    def _discard(self, task: "asyncio.Task") -> None:
        # result is dropped; the task is left to finish on its own
        self._discarded.add(task)

        def _done(t: "asyncio.Task") -> None:
            self._discarded.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logging.debug(f"[detect] Discarded branch ended with {t.exception()}")

        task.add_done_callback(_done)

    async def _warm_embeddings(self, tasks: List[TaskItem], options: Optional[DetectionOptions]) -> None:
        """One batched embedding call for the tasks that will reach the vector stage."""
        if len(tasks) < 2:
            return
        services = await self.catalog.get_active_services()
        if not services:
            return
        opts = options or DetectionOptions()
        pending = []
        for t in tasks:
            if safety_gate.evaluate(t.description, opts.lead_type, opts.is_elderly).fired:
                continue
            hits = keyword_match(t.description, services)
            if not hits or hits[0].score < self.thresholds.medium_lexical:
                pending.append(t.description)
        if len(pending) > 1:
            await self.embeddings.embed_many(pending)

    async def _detect_task(self, task: TaskItem, options: Optional[DetectionOptions]) -> TaskMatch:
        return TaskMatch(task=task, detection=await self.detect(task.description, options))

    async def detect_multi_task(self, text: str, options: Optional[DetectionOptions] = None) -> AggregateResult:
        opts = options or DetectionOptions()
        if not text or len(text.strip()) < MIN_INPUT_CHARS:
            tasks = single_task(text or "")
            return aggregate(text or "", tasks, [TaskMatch(task=tasks[0], detection=too_short_result())])

        # raw-text scan first: the splitter may sanitise hazard words away
        accumulated = " ".join(p for p in (opts.previous_transcript, text) if p)
        verdict = safety_gate.evaluate(accumulated, opts.lead_type, opts.is_elderly)

        fast_path = asyncio.create_task(self.full_text_scan(text))
        split = asyncio.create_task(self.decomposer.decompose(text))

        try:
            best = await fast_path
        except Exception as e:
            logging.warning(f"[detect] Speculative lexical scan failed: {e}")
            best = None

        if best is not None and best.score >= self.thresholds.speculative_lexical and not verdict.fired:
            self._discard(split)
            logging.info(f"[detect] Speculative hit {best.service.sku_code} ({best.score:.1f}); skipping task split")
            tasks = single_task(text)
            detection = lexical_high_result(best, rationale="Strong keyword match on full request")
            return aggregate(text, tasks, [TaskMatch(task=tasks[0], detection=detection)])

        tasks = await split
        await self._warm_embeddings(tasks, opts)
        results = await asyncio.gather(*(self._detect_task(t, opts) for t in tasks))
        return aggregate(text, tasks, list(results), verdict.flags)
