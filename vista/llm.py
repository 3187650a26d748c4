import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import ConfigurationError, UpstreamError
from .schemas import PlannerResponse, ToolCall

logger = logging.getLogger("uvicorn.error")

PLANNER_INSTRUCTIONS = """
You are VISTA, the assistant behind an image and weather dashboard.
You can search stock-photo libraries, generate images, refine an existing image,
switch the dashboard view, refresh the weather, and look up historical weather.
Call at most one tool per reply. Prefer calling a tool over describing what you would do.
Never ask the user which photo library to use; default to unsplash.
If a required detail (city, date, query) is missing, ask one short question instead of guessing.
Use the caller's state (preferred ratio, current view) when it is relevant.
""".strip()

SUMMARY_INSTRUCTIONS = (
    "Summarize the tool result for the user in one or two short sentences. "
    "Do not list raw URLs."
)


def build_turn_context(message: str, summary: Optional[str], state: Dict[str, Any]) -> str:
    parts: List[str] = []
    if summary:
        parts.append(f"Conversation so far:\n{summary.strip()}")
    if state:
        parts.append(f"Client state:\n{json.dumps(state, ensure_ascii=True, sort_keys=True)}")
    parts.append(f"User message:\n{message.strip()}")
    return "\n\n".join(parts)


def _extract_error_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error.strip():
            return error
    return json.dumps(data, ensure_ascii=True)


def _parse_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Planner returned unparseable tool arguments: %r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def parse_planner_response(data: Dict[str, Any]) -> PlannerResponse:
    texts: List[str] = []
    calls: List[ToolCall] = []
    for item in data.get("output") or []:
        if not isinstance(item, dict):
            continue
        kind = item.get("type")
        if kind == "message":
            for part in item.get("content") or []:
                if isinstance(part, dict) and part.get("type") == "output_text" and part.get("text"):
                    texts.append(str(part["text"]))
        elif kind == "function_call" and item.get("name"):
            calls.append(
                ToolCall(
                    name=str(item["name"]),
                    arguments=_parse_arguments(item.get("arguments")),
                    call_id=item.get("call_id") or item.get("id"),
                )
            )
    if not texts and isinstance(data.get("output_text"), str):
        texts.append(data["output_text"])
    return PlannerResponse(id=data.get("id"), text="\n".join(texts).strip(), tool_calls=calls)


class PlannerClient:
    """Language-model planning calls through the OpenAI Responses API."""

    def __init__(self, api_key: Optional[str], *, base_url: str = "https://api.openai.com/v1", model: str = "gpt-4o-mini"):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.client = httpx.AsyncClient(timeout=60)

    async def plan_turn(
        self,
        context: str,
        tools: List[Dict[str, Any]],
        previous_response_id: Optional[str] = None,
    ) -> PlannerResponse:
        payload: Dict[str, Any] = {
            "model": self.model,
            "instructions": PLANNER_INSTRUCTIONS,
            "input": context,
            "tools": tools,
            "tool_choice": "auto",
            "parallel_tool_calls": False,
        }
        if previous_response_id:
            payload["previous_response_id"] = previous_response_id
        return await self._post(payload)

    async def summarize(self, previous_response_id: str, call_id: str, output: Any) -> PlannerResponse:
        """Continue from a planner response by feeding back the tool output."""
        payload: Dict[str, Any] = {
            "model": self.model,
            "instructions": SUMMARY_INSTRUCTIONS,
            "previous_response_id": previous_response_id,
            "input": [
                {
                    "type": "function_call_output",
                    "call_id": call_id,
                    "output": json.dumps(output, ensure_ascii=True, default=str),
                }
            ],
        }
        return await self._post(payload)

    async def _post(self, payload: Dict[str, Any]) -> PlannerResponse:
        if not self.api_key:
            raise ConfigurationError("openai_api_key")
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            resp = await self.client.post(f"{self.base_url}/responses", json=payload, headers=headers)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _extract_error_detail(exc.response)
            raise UpstreamError(
                f"Planner call failed: {detail}", detail={"status_code": exc.response.status_code}
            ) from exc
        except httpx.RequestError as exc:
            raise UpstreamError(f"Planner unreachable: {exc}") from exc
        try:
            data = resp.json()
        except ValueError as exc:
            raise UpstreamError("Planner returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise UpstreamError("Planner returned an unexpected body")
        if data.get("error"):
            raise UpstreamError(f"Planner call failed: {data['error']}")
        return parse_planner_response(data)

    async def close(self) -> None:
        await self.client.aclose()
