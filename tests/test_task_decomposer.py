"""Compound request splitting."""

import pytest

from skuMatchModel.mainModelLayer.errors import LLMResponseError
from skuMatchModel.mainModelLayer.task_decomposer import TaskDecomposer, build_prompt
from tests.fakes import FakeLLM


class TestDecompose:
    @pytest.mark.asyncio
    async def test_two_tasks_with_quantities(self):
        llm = FakeLLM(TaskBreakdown={"tasks": [
            {"description": "Fix tap", "quantity": 1},
            {"description": " Hang   shelves ", "quantity": 2},
        ]})
        tasks = await TaskDecomposer(llm).decompose("fix tap and hang 2 shelves")
        assert [(t.description, t.quantity, t.original_index) for t in tasks] == [
            ("Fix tap", 1, 0),
            ("Hang shelves", 2, 1),
        ]

    @pytest.mark.asyncio
    async def test_missing_or_zero_quantity_defaults_to_one(self):
        llm = FakeLLM(TaskBreakdown={"tasks": [{"description": "Fix tap"}, {"description": "Mount tv", "quantity": 0}]})
        tasks = await TaskDecomposer(llm).decompose("fix tap, mount tv")
        assert [t.quantity for t in tasks] == [1, 1]

    @pytest.mark.asyncio
    async def test_failure_means_single_task(self):
        llm = FakeLLM(TaskBreakdown=LLMResponseError("timeout"))
        tasks = await TaskDecomposer(llm).decompose("fix tap and hang shelves")
        assert len(tasks) == 1
        assert tasks[0].description == "fix tap and hang shelves"

    @pytest.mark.asyncio
    async def test_empty_breakdown_means_single_task(self):
        llm = FakeLLM(TaskBreakdown={"tasks": []})
        tasks = await TaskDecomposer(llm).decompose("lots of problems")
        assert [t.description for t in tasks] == ["lots of problems"]

    @pytest.mark.asyncio
    async def test_caps_number_of_tasks(self):
        llm = FakeLLM(TaskBreakdown={"tasks": [{"description": f"job {i}"} for i in range(15)]})
        tasks = await TaskDecomposer(llm, max_tasks=4).decompose("many jobs")
        assert len(tasks) == 4

    def test_prompt_contains_request(self):
        assert '"fix tap and hang 2 shelves"' in build_prompt("fix tap and hang 2 shelves")
