"""Phase 1: the bounded, sequential tool-use research loop."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from lexdraft.agents.tools import ToolRegistry
from lexdraft.errors import ResearchIncomplete
from lexdraft.types import ModelTurn, ResearchResult, ToolCallRecord

logger = logging.getLogger(__name__)

EMPTY_BRIEF = "No research findings were gathered."


class AgentModel(Protocol):
    async def step(self, *, messages: list[dict[str, Any]], tools: list[dict[str, Any]]) -> ModelTurn: ...

    async def extract(
        self,
        *,
        prompt: str,
        schema_name: str,
        schema: dict[str, Any],
        system: str = "",
    ) -> dict[str, Any]: ...


class ResearchLoop:
    """Alternate model decisions and tool results until a final answer or the budget runs out.

    Each model call counts as one step. Tool calls inside a step resolve one at a
    time, in the order the model issued them. A loop instance holds no state
    between ``run`` calls, so concurrent runs only share the model client.
    """

    def __init__(self, model: AgentModel, *, step_budget: int):
        if step_budget < 1:
            raise ValueError("step_budget must be at least 1")
        self.model = model
        self.step_budget = step_budget

    async def run(self, *, system: str, prompt: str, tools: ToolRegistry) -> ResearchResult:
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]
        specs = tools.specs()
        records: list[ToolCallRecord] = []
        notes: list[str] = []

        for step in range(1, self.step_budget + 1):
            turn = await self.model.step(messages=messages, tools=specs)
            if turn.is_final:
                brief = turn.content.strip() or transcript_brief(notes, records)
                logger.info("Research finished steps=%s tool_calls=%s", step, len(records))
                return ResearchResult(brief=brief, steps=step, completed=True, tool_calls=records)

            if turn.content.strip():
                notes.append(turn.content.strip())
            messages.append(_assistant_message(turn))
            for call in turn.tool_calls:
                record = await tools.execute(call.name, call.arguments)
                records.append(record)
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": record.error or record.output or "(empty result)",
                    }
                )

        incomplete = ResearchIncomplete(self.step_budget, len(records))
        logger.warning("%s; using transcript as brief", incomplete)
        return ResearchResult(
            brief=transcript_brief(notes, records),
            steps=self.step_budget,
            completed=False,
            tool_calls=records,
        )


def _assistant_message(turn: ModelTurn) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": turn.content or None,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
            }
            for call in turn.tool_calls
        ],
    }


def transcript_brief(notes: list[str], records: list[ToolCallRecord]) -> str:
    """Fallback brief built from whatever the loop gathered."""
    parts: list[str] = []
    if notes:
        parts.append("## Research notes\n\n" + "\n\n".join(notes))
    for record in records:
        arguments = json.dumps(record.input, sort_keys=True) if record.input else ""
        result = f"ERROR: {record.error}" if record.failed else record.output
        parts.append(f"## {record.name}({arguments})\n\n{result}")
    return "\n\n".join(parts) if parts else EMPTY_BRIEF
