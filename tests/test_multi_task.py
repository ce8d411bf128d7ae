"""Compound utterances: task split, per-task matching and one overall route."""

import asyncio

import pytest

from skuMatchModel.mainModelLayer.skuModels import DetectionOptions
from tests.fakes import FakeLLM, pick_by_word, token_service, token_text

PICKER = pick_by_word({"tap": "PLUMB-TAP-REPAIR", "tv": "HANDY-TV-MOUNT"})


def breakdown(*descriptions):
    return {"tasks": [{"description": d, "quantity": 1} for d in descriptions]}


class TestDetectMultiTask:
    @pytest.mark.asyncio
    async def test_two_tasks_both_instant(self, build_detector):
        llm = FakeLLM(TaskBreakdown=breakdown("fix my dripping tap", "mount my tv"), DisambiguationVerdict=PICKER)
        detector, _, embedder, _ = build_detector(llm=llm)
        result = await detector.detect_multi_task("fix my dripping tap and mount my tv")
        assert len(result.tasks) == 2
        assert [m.service.sku_code for m in result.matched_services] == ["PLUMB-TAP-REPAIR", "HANDY-TV-MOUNT"]
        assert result.total_price_pence == 9500 + 8500
        assert result.route == "instant_price"
        assert result.has_matches and not result.has_unmatched

    @pytest.mark.asyncio
    async def test_embeddings_warmed_in_one_batch(self, build_detector):
        llm = FakeLLM(TaskBreakdown=breakdown("fix my dripping tap", "mount my tv"), DisambiguationVerdict=PICKER)
        detector, _, embedder, _ = build_detector(llm=llm)
        await detector.detect_multi_task("fix my dripping tap and mount my tv")
        assert embedder.batch_calls == 1
        assert embedder.calls == 0

    @pytest.mark.asyncio
    async def test_tap_and_shelves_takes_worst_route(self, build_detector):
        llm = FakeLLM(
            TaskBreakdown={"tasks": [{"description": "Fix dripping tap", "quantity": 1}, {"description": "Hang shelves", "quantity": 2}]},
            DisambiguationVerdict=PICKER,
        )
        detector, _, _, _ = build_detector(llm=llm)
        result = await detector.detect_multi_task("Fix dripping tap and hang two shelves")
        assert [t.quantity for t in result.tasks] == [1, 2]
        assert [r.detection.route for r in result.results] == ["instant_price", "video_quote"]
        assert result.route == "video_quote"

    @pytest.mark.asyncio
    async def test_results_follow_task_order(self, build_detector):
        llm = FakeLLM(TaskBreakdown=breakdown("mount my tv", "fix my dripping tap"), DisambiguationVerdict=PICKER)
        detector, _, _, _ = build_detector(llm=llm)
        result = await detector.detect_multi_task("mount my tv then fix my dripping tap")
        assert [r.task.original_index for r in result.results] == [0, 1]
        assert [r.detection.service.sku_code for r in result.results] == ["HANDY-TV-MOUNT", "PLUMB-TAP-REPAIR"]

    @pytest.mark.asyncio
    async def test_unmatched_task_makes_partial_video_quote(self, build_detector):
        llm = FakeLLM(TaskBreakdown=breakdown("fix my dripping tap", "sort out the garden"), DisambiguationVerdict=PICKER)
        detector, _, _, _ = build_detector(llm=llm)
        result = await detector.detect_multi_task("fix my dripping tap and sort out the garden")
        assert result.route == "video_quote"
        assert result.is_partial
        assert [t.description for t in result.unmatched_tasks] == ["sort out the garden"]
        assert result.total_price_pence == 9500

    @pytest.mark.asyncio
    async def test_hazard_anywhere_makes_route_mixed(self, build_detector):
        # the splitter drops the hazard wording; the raw-text scan still catches it
        llm = FakeLLM(TaskBreakdown=breakdown("fix my dripping tap", "replace socket"), DisambiguationVerdict=PICKER)
        detector, _, _, _ = build_detector(llm=llm)
        result = await detector.detect_multi_task("fix my dripping tap and the socket has a burning smell")
        assert result.route == "mixed"
        assert "electrical" in result.safety_flags

    @pytest.mark.asyncio
    async def test_decomposition_failure_means_one_task(self, build_detector):
        llm = FakeLLM(DisambiguationVerdict=PICKER)
        detector, _, _, _ = build_detector(llm=llm)
        result = await detector.detect_multi_task("my tap keeps dripping")
        assert len(result.tasks) == 1
        assert result.tasks[0].description == "my tap keeps dripping"
        assert result.matched_services[0].service.sku_code == "PLUMB-TAP-REPAIR"

    @pytest.mark.asyncio
    async def test_short_input(self, build_detector):
        detector, _, _, llm = build_detector()
        result = await detector.detect_multi_task("hi")
        assert result.route == "video_quote"
        assert result.has_unmatched and not result.has_matches
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_commercial_lead_applies_to_every_task(self, build_detector):
        llm = FakeLLM(TaskBreakdown=breakdown("fix my dripping tap", "mount my tv"), DisambiguationVerdict=PICKER)
        detector, _, _, _ = build_detector(llm=llm)
        result = await detector.detect_multi_task("fix my dripping tap and mount my tv", DetectionOptions(lead_type="commercial"))
        assert result.route == "mixed"
        assert all(r.detection.route == "site_visit" for r in result.results)


class TestSpeculativeScan:
    @pytest.mark.asyncio
    async def test_strong_full_text_match_skips_split(self, build_detector):
        svc = token_service("SYNSPEC", 90)
        llm = FakeLLM(TaskBreakdown=breakdown("one thing", "another thing"))
        detector, _, embedder, _ = build_detector(services=[svc], llm=llm)
        result = await detector.detect_multi_task(token_text(svc))
        assert len(result.tasks) == 1
        assert result.route == "instant_price"
        assert result.matched_services[0].service.sku_code == "SYNSPEC"
        assert result.total_price_pence == svc.price_pence
        assert embedder.calls == 0 and embedder.batch_calls == 0

    @pytest.mark.asyncio
    async def test_discarded_split_finishes_quietly(self, build_detector):
        svc = token_service("SYNSLOW", 90)
        started = asyncio.Event()

        async def slow_split(prompt):
            started.set()
            await asyncio.sleep(0)
            return breakdown("one thing", "another thing")

        class SlowLLM(FakeLLM):
            async def complete(self, prompt, response_model, system="", max_tokens=300):
                self.calls.append(response_model.__name__)
                return response_model.model_validate(await slow_split(prompt))

        detector, _, _, _ = build_detector(services=[svc], llm=SlowLLM())
        result = await detector.detect_multi_task(token_text(svc))
        assert len(result.tasks) == 1
        for _ in range(5):
            await asyncio.sleep(0)
        assert started.is_set()
        assert detector._discarded == set()

    @pytest.mark.asyncio
    async def test_hazard_disables_short_circuit(self, build_detector):
        svc = token_service("SYNHAZ", 90)
        llm = FakeLLM(TaskBreakdown=breakdown(token_text(svc), "check the gas smell"))
        detector, _, _, _ = build_detector(services=[svc], llm=llm)
        result = await detector.detect_multi_task(token_text(svc) + " and I smell gas")
        assert result.route == "mixed"
        assert len(result.tasks) == 2
