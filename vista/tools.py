"""Registry of the tools the agent may invoke.

The same list is serialized for the planner call and consulted by the executor,
so a tool exists for the agent only if it is declared here.
"""

from typing import Any, Dict, List

from .errors import UnknownToolError
from .schemas import RATIOS, SOURCES, VIEWS, ToolSpec


TOOL_SPECS: List[ToolSpec] = [
    ToolSpec(
        name="search_library",
        description="Search stock-photo libraries (Unsplash or Pexels) for images matching a query.",
        parameter_schema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "What to search for."},
                "source": {"type": "string", "enum": list(SOURCES)},
                "ratio": {"type": "string", "enum": list(RATIOS)},
            },
            "required": ["query"],
        },
    ),
    ToolSpec(
        name="generate_ai",
        description="Generate new images from a text prompt with an image model.",
        parameter_schema={
            "type": "object",
            "properties": {
                "prompt": {"type": "string", "description": "Description of the image to create."},
                "count": {"type": "integer", "minimum": 1, "maximum": 5},
                "aspect_ratio": {"type": "string", "enum": list(RATIOS)},
            },
            "required": ["prompt"],
        },
    ),
    ToolSpec(
        name="refine_image",
        description="Edit an existing image according to an instruction.",
        parameter_schema={
            "type": "object",
            "properties": {
                "prompt": {"type": "string", "description": "How the image should change."},
                "input_image": {"type": "string", "description": "URL of the image to edit."},
            },
            "required": ["prompt", "input_image"],
        },
    ),
    ToolSpec(
        name="set_view",
        description="Switch the front-end to another view.",
        parameter_schema={
            "type": "object",
            "properties": {"view": {"type": "string", "enum": list(VIEWS)}},
            "required": ["view"],
        },
    ),
    ToolSpec(
        name="refresh_weather",
        description="Reload the current weather shown to the user.",
        parameter_schema={"type": "object", "properties": {}, "required": []},
    ),
    ToolSpec(
        name="get_weather_history",
        description="Look up the recorded weather for a city on a past date.",
        parameter_schema={
            "type": "object",
            "properties": {
                "city": {"type": "string"},
                "date": {"type": "string", "description": "Date in YYYY-MM-DD format."},
            },
            "required": ["city", "date"],
        },
    ),
]

_SPECS_BY_NAME: Dict[str, ToolSpec] = {spec.name: spec for spec in TOOL_SPECS}


def list_tool_specs() -> List[ToolSpec]:
    return list(TOOL_SPECS)


def tool_names() -> List[str]:
    return [spec.name for spec in TOOL_SPECS]


def get_tool_spec(name: str) -> ToolSpec:
    spec = _SPECS_BY_NAME.get(name)
    if spec is None:
        raise UnknownToolError(name)
    return spec


def openai_tools() -> List[Dict[str, Any]]:
    """Function-tool declarations in the Responses API shape."""
    return [
        {
            "type": "function",
            "name": spec.name,
            "description": spec.description,
            "parameters": spec.parameter_schema,
        }
        for spec in TOOL_SPECS
    ]
