from typing import Any, Dict, List, Optional

from vista.errors import ArgumentError, JobTimeoutError, UpstreamError
from vista.schemas import PlannerResponse, ToolCall


class FakePlanner:
    """Planner stand-in; returns queued responses in order, then an empty response."""

    def __init__(
        self,
        responses: Optional[List[Any]] = None,
        summary_text: str = "",
        summary_error: Optional[Exception] = None,
    ) -> None:
        self.responses = list(responses or [])
        self.summary_text = summary_text
        self.summary_error = summary_error
        self.calls: List[Dict[str, Any]] = []
        self.summary_calls: List[Dict[str, Any]] = []

    async def plan_turn(
        self,
        context: str,
        tools: List[Dict[str, Any]],
        previous_response_id: Optional[str] = None,
    ) -> PlannerResponse:
        self.calls.append({"context": context, "tools": tools, "previous_response_id": previous_response_id})
        if not self.responses:
            return PlannerResponse()
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def summarize(self, previous_response_id: str, call_id: str, output: Any) -> PlannerResponse:
        self.summary_calls.append({"previous_response_id": previous_response_id, "call_id": call_id, "output": output})
        if self.summary_error is not None:
            raise self.summary_error
        return PlannerResponse(id="resp-summary", text=self.summary_text)

    async def close(self) -> None:
        return None


def planner_tool_response(name: str, arguments: Dict[str, Any], text: str = "") -> PlannerResponse:
    return PlannerResponse(
        id="resp-1",
        text=text,
        tool_calls=[ToolCall(name=name, arguments=arguments, call_id="call-1")],
    )


class FakeLibraryClient:
    def __init__(self, images: Optional[List[str]] = None, error: Optional[str] = None) -> None:
        self.images = images if images is not None else ["https://img.test/1.jpg", "https://img.test/2.jpg"]
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def search(self, query: str, source: str = "unsplash", ratio: Optional[str] = None) -> Dict[str, Any]:
        self.calls.append({"query": query, "source": source, "ratio": ratio})
        if self.error:
            return {"error": self.error, "source": source}
        return {"images": list(self.images), "source": source}

    async def search_unsplash(self, query: str, ratio: Optional[str] = None) -> Dict[str, Any]:
        return await self.search(query, source="unsplash", ratio=ratio)

    async def search_pexels(self, query: str, ratio: Optional[str] = None) -> Dict[str, Any]:
        return await self.search(query, source="pexels", ratio=ratio)

    async def close(self) -> None:
        return None


class FakeImageJobs:
    def __init__(self, images: Optional[List[str]] = None, error: Optional[Exception] = None) -> None:
        self.images = images if images is not None else ["https://gen.test/a.png", "https://gen.test/b.png"]
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def generate_images(self, prompt: str, count: int = 1, aspect_ratio: str = "1:1") -> Dict[str, Any]:
        self.calls.append({"kind": "generate", "prompt": prompt, "count": count, "aspect_ratio": aspect_ratio})
        if self.error is not None:
            raise self.error
        return {"images": list(self.images[:count])}

    async def refine_image(self, prompt: str, input_image: str) -> Dict[str, Any]:
        self.calls.append({"kind": "refine", "prompt": prompt, "input_image": input_image})
        if self.error is not None:
            raise self.error
        return {"image": self.images[0]}

    async def close(self) -> None:
        return None


def timeout_error() -> JobTimeoutError:
    return JobTimeoutError("job-1", 120)


def upstream_error(message: str = "NSFW content detected") -> UpstreamError:
    return UpstreamError(message)


class FakeWeatherClient:
    def __init__(
        self,
        places: Optional[Dict[str, Dict[str, Any]]] = None,
        daily: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.places = places if places is not None else {
            "paris": {"lat": 48.85, "lon": 2.35, "name": "Paris", "country": "France"},
        }
        self.daily = daily or {
            "temperature_max": 14.2,
            "temperature_min": 6.1,
            "precipitation_sum": 0.4,
            "windspeed_max": 5.3,
        }
        self.calls: List[Dict[str, Any]] = []

    async def geocode(self, city: str) -> Dict[str, Any]:
        self.calls.append({"kind": "geocode", "city": city})
        place = self.places.get(city.lower())
        if place is None:
            raise ArgumentError(f"City not found: {city}")
        return dict(place)

    async def historical_weather(self, lat: float, lon: float, date: str) -> Dict[str, Any]:
        self.calls.append({"kind": "history", "lat": lat, "lon": lon, "date": date})
        return dict(self.daily)

    async def current_weather(self, lat: float, lon: float) -> Dict[str, Any]:
        self.calls.append({"kind": "current", "lat": lat, "lon": lon})
        return {"latitude": lat, "longitude": lon, "current": {"temperature_2m": 11.0}, "units": {}}

    async def close(self) -> None:
        return None


class FakeTranscriber:
    def __init__(self, text: str = "show me mountains") -> None:
        self.text = text
        self.calls: List[Dict[str, Any]] = []

    async def transcribe(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.calls.append({"filename": filename, "size": len(data), "content_type": content_type, "language": language})
        return {"text": self.text}

    async def close(self) -> None:
        return None
