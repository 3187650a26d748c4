import logging
from typing import Any, Dict, Optional

from .errors import ArgumentError, ConfigurationError, UpstreamError
from .executor import ToolExecutor
from .intent import IntentResolver, Resolution
from .llm import PlannerClient
from .schemas import ToolResult, TurnRequest, TurnResponse

logger = logging.getLogger("uvicorn.error")

GENERIC_PROMPT = "What would you like to do next? I can search photos, generate or refine images, and check the weather."


def _fmt(value: Any, unit: str) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value}{unit}"


def weather_history_line(result: Dict[str, Any]) -> str:
    return (
        f"{result.get('city')} {result.get('date')}: "
        f"high {_fmt(result.get('temperature_max'), '°C')}, "
        f"low {_fmt(result.get('temperature_min'), '°C')}, "
        f"rain {_fmt(result.get('precipitation_sum'), 'mm')}, "
        f"wind {_fmt(result.get('windspeed_max'), 'm/s')}."
    )


def fallback_reply(tool: ToolResult) -> str:
    """Reply built from the tool name and result shape alone, no model involved."""
    if tool.error is not None:
        return f"Sorry, {tool.name} failed: {tool.error.message}"
    result = tool.result if isinstance(tool.result, dict) else {}
    if tool.name == "search_library":
        return f"Found {len(result.get('images') or [])} images."
    if tool.name == "generate_ai":
        return f"Generated {len(result.get('images') or [])} images."
    if tool.name == "refine_image":
        return "Here is the refined image."
    if tool.name == "set_view":
        return f"Switched to the {result.get('view')} view."
    if tool.name == "refresh_weather":
        return "Refreshing the weather."
    if tool.name == "get_weather_history":
        return weather_history_line(result)
    return "Done."


class ConversationOrchestrator:
    def __init__(self, resolver: IntentResolver, executor: ToolExecutor, planner: PlannerClient):
        self.resolver = resolver
        self.executor = executor
        self.planner = planner

    async def run_turn(self, turn: TurnRequest) -> TurnResponse:
        message = (turn.message or "").strip()
        if not message:
            raise ArgumentError("Missing message")

        resolution = await self.resolver.resolve(message, turn.summary, turn.state)
        if resolution.tool_call is None:
            return TurnResponse(tools=[], reply=resolution.reply or GENERIC_PROMPT)

        tool = await self.executor.execute(resolution.tool_call)
        reply: Optional[str] = None
        if tool.ok:
            reply = await self._summarize(resolution, tool)
        return TurnResponse(tools=[tool], reply=reply or fallback_reply(tool))

    async def _summarize(self, resolution: Resolution, tool: ToolResult) -> Optional[str]:
        planner = resolution.planner
        call_id = resolution.tool_call.call_id if resolution.tool_call else None
        if resolution.source != "planner" or planner is None or not planner.id or not call_id:
            return None
        try:
            summary = await self.planner.summarize(planner.id, call_id, tool.result)
        except (UpstreamError, ConfigurationError) as exc:
            logger.warning("Summary call failed for %s, using fallback reply: %s", tool.name, exc)
            return None
        return summary.text or None
