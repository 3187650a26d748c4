import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel, ValidationError

from .errors import ArgumentError, JobTimeoutError, UpstreamError, VistaError
from .image_jobs import ImageJobClient
from .library import LibraryClient
from .schemas import (
    GenerateAiArgs,
    RefineImageArgs,
    RefreshWeatherArgs,
    SearchLibraryArgs,
    SetViewArgs,
    ToolCall,
    ToolError,
    ToolResult,
    WeatherHistoryArgs,
)
from .tools import get_tool_spec
from .weather import WeatherClient

logger = logging.getLogger("uvicorn.error")

Handler = Callable[[Any], Awaitable[Dict[str, Any]]]


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc") or ()) or "arguments"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts) or "Invalid arguments"


class ToolExecutor:
    def __init__(self, library: LibraryClient, image_jobs: ImageJobClient, weather: WeatherClient):
        self.library = library
        self.image_jobs = image_jobs
        self.weather = weather
        self.handlers: Dict[str, Tuple[Type[BaseModel], Handler]] = {
            "search_library": (SearchLibraryArgs, self._search_library),
            "generate_ai": (GenerateAiArgs, self._generate_ai),
            "refine_image": (RefineImageArgs, self._refine_image),
            "set_view": (SetViewArgs, self._set_view),
            "refresh_weather": (RefreshWeatherArgs, self._refresh_weather),
            "get_weather_history": (WeatherHistoryArgs, self._weather_history),
        }

    async def execute(self, call: ToolCall) -> ToolResult:
        """Run one tool call. Unknown tools and missing configuration raise; everything else is a ToolResult."""
        get_tool_spec(call.name)
        args_model, handler = self.handlers[call.name]
        try:
            args = args_model(**(call.arguments or {}))
        except ValidationError as exc:
            return self._failed(call, ArgumentError(_validation_message(exc)))
        normalized = args.model_dump()
        logger.info("Executing tool %s %s", call.name, normalized)
        try:
            result = await handler(args)
        except (ArgumentError, UpstreamError, JobTimeoutError) as exc:
            return self._failed(call, exc, normalized)
        return ToolResult(name=call.name, args=normalized, result=result)

    def _failed(self, call: ToolCall, exc: VistaError, args: Optional[Dict[str, Any]] = None) -> ToolResult:
        logger.warning("Tool %s failed (%s): %s", call.name, exc.kind, exc.message)
        return ToolResult(
            name=call.name,
            args=args if args is not None else dict(call.arguments or {}),
            error=ToolError(kind=exc.kind, message=exc.message),
        )

    async def _search_library(self, args: SearchLibraryArgs) -> Dict[str, Any]:
        raw = await self.library.search(args.query, source=args.source, ratio=args.ratio)
        if raw.get("error"):
            raise UpstreamError(str(raw["error"]))
        return {"images": list(raw.get("images") or []), "source": raw.get("source") or args.source}

    async def _generate_ai(self, args: GenerateAiArgs) -> Dict[str, Any]:
        return await self.image_jobs.generate_images(args.prompt, count=args.count, aspect_ratio=args.aspect_ratio)

    async def _refine_image(self, args: RefineImageArgs) -> Dict[str, Any]:
        return await self.image_jobs.refine_image(args.prompt, args.input_image)

    async def _set_view(self, args: SetViewArgs) -> Dict[str, Any]:
        return {"view": args.view}

    async def _refresh_weather(self, args: RefreshWeatherArgs) -> Dict[str, Any]:
        return {"refresh": True}

    async def _weather_history(self, args: WeatherHistoryArgs) -> Dict[str, Any]:
        try:
            datetime.strptime(args.date, "%Y-%m-%d")
        except ValueError as exc:
            raise ArgumentError(f"Invalid date: {args.date}") from exc
        place = await self.weather.geocode(args.city)
        daily = await self.weather.historical_weather(place["lat"], place["lon"], args.date)
        return {
            "city": place["name"],
            "country": place["country"],
            "date": args.date,
            "latitude": place["lat"],
            "longitude": place["lon"],
            **daily,
        }
