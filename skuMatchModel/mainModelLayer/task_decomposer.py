# skuMatchModel/mainModelLayer/task_decomposer.py
from __future__ import annotations
from typing import List, Optional
import logging

from pydantic import BaseModel, Field

from skuMatchModel.mainModelLayer.llm_disambiguator import LLMProvider
from skuMatchModel.mainModelLayer.skuModels import TaskItem

MAX_TASKS = 10
MAX_RESPONSE_TOKENS = 500

SYSTEM_PROMPT = "You are a job parser for a UK handyman company."


class TaskSpec(BaseModel):
    description: str = Field(min_length=1)
    quantity: Optional[int] = None


class TaskBreakdown(BaseModel):
    tasks: List[TaskSpec]


def build_prompt(text: str) -> str:
    return (
        f'Analyse this request: "{text}"\n'
        "Break it down into individual distinct physical tasks.\n\n"
        "Rules:\n"
        "1. ONLY extract tasks that are EXPLICITLY mentioned.\n"
        '2. Do NOT invent specific tasks (e.g. do not turn "lots of issues" into "fix socket").\n'
        '3. If the request is vague or about a whole property (e.g. "I have a mess", "lots of problems"), '
        "return it as a single task using the original text.\n"
        '4. Return JSON: { "tasks": [{ "description": "string", "quantity": number }] }\n\n'
        'Example 1: "Fix tap and hang 2 shelves" -> '
        '{ "tasks": [{ "description": "Fix tap", "quantity": 1 }, { "description": "Hang shelves", "quantity": 2 }] }\n'
        'Example 2: "I have a property with lots of issues" -> '
        '{ "tasks": [{ "description": "Property with lots of issues", "quantity": 1 }] }\n'
    )


def single_task(text: str) -> List[TaskItem]:
    return [TaskItem(description=text, quantity=1, original_index=0)]


class TaskDecomposer:
    def __init__(self, llm: LLMProvider, max_tasks: int = MAX_TASKS):
        self.llm = llm
        self.max_tasks = max_tasks

    async def decompose(self, text: str) -> List[TaskItem]:
        """Split a compound request; any failure means the whole text is one task."""
        try:
            breakdown = await self.llm.complete(
                build_prompt(text),
                TaskBreakdown,
                system=SYSTEM_PROMPT,
                max_tokens=MAX_RESPONSE_TOKENS,
            )
        except Exception as e:
            logging.warning(f"[decompose] Task split failed, using whole text as one task: {e}")
            return single_task(text)

        tasks: List[TaskItem] = []
        for spec in breakdown.tasks:
            desc = " ".join(spec.description.split())
            if not desc:
                continue
            tasks.append(TaskItem(description=desc, quantity=max(1, spec.quantity or 1), original_index=len(tasks)))

        if not tasks:
            return single_task(text)
        if len(tasks) > self.max_tasks:
            logging.warning(f"[decompose] {len(tasks)} tasks returned, keeping first {self.max_tasks}")
            tasks = tasks[: self.max_tasks]
        logging.info(f"[decompose] {len(tasks)} task(s): {[t.description for t in tasks]}")
        return tasks
