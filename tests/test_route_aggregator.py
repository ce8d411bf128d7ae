"""Worst-case routing and price totals across tasks."""

from skuMatchModel.mainModelLayer.route_aggregator import aggregate
from skuMatchModel.mainModelLayer.skuModels import MatchResult, TaskItem, TaskMatch
from tests.fakes import TAP, TV


def matched(service, route="instant_price"):
    return MatchResult(matched=True, service=service, confidence=90, method="lexical", route=route)


def unmatched(route="video_quote", flags=()):
    return MatchResult(matched=False, route=route, safety_flags=list(flags))


def task(desc, qty=1, idx=0):
    return TaskItem(description=desc, quantity=qty, original_index=idx)


class TestAggregate:
    def test_all_instant(self):
        tasks = [task("fix tap", 2, 0), task("mount tv", 1, 1)]
        result = aggregate("fix 2 taps and mount tv", tasks, [
            TaskMatch(task=tasks[0], detection=matched(TAP)),
            TaskMatch(task=tasks[1], detection=matched(TV)),
        ])
        assert result.route == "instant_price"
        assert result.total_price_pence == 2 * 9500 + 8500
        assert [m.line_total_pence for m in result.matched_services] == [19000, 8500]
        assert result.has_matches and not result.has_unmatched and not result.is_partial

    def test_unmatched_task_forces_video(self):
        tasks = [task("fix tap"), task("sort the garden", idx=1)]
        result = aggregate("...", tasks, [
            TaskMatch(task=tasks[0], detection=matched(TAP)),
            TaskMatch(task=tasks[1], detection=unmatched()),
        ])
        assert result.route == "video_quote"
        assert result.is_partial
        assert [t.description for t in result.unmatched_tasks] == ["sort the garden"]
        assert result.total_price_pence == 9500

    def test_site_visit_task_gives_mixed(self):
        tasks = [task("fix tap"), task("gas smell", idx=1)]
        result = aggregate("...", tasks, [
            TaskMatch(task=tasks[0], detection=matched(TAP)),
            TaskMatch(task=tasks[1], detection=unmatched("site_visit", ["gas"])),
        ])
        assert result.route == "mixed"
        assert result.safety_flags == ["gas"]

    def test_global_flags_give_mixed_and_deduplicate(self):
        tasks = [task("fix tap")]
        result = aggregate("...", tasks, [TaskMatch(task=tasks[0], detection=unmatched("site_visit", ["gas"]))], ["gas", "elderly"])
        assert result.route == "mixed"
        assert result.safety_flags == ["gas", "elderly"]
