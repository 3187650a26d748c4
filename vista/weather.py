from typing import Any, Dict

import httpx

from .errors import ArgumentError, UpstreamError

DAILY_FIELDS = {
    "temperature_max": "temperature_2m_max",
    "temperature_min": "temperature_2m_min",
    "precipitation_sum": "precipitation_sum",
    "windspeed_max": "wind_speed_10m_max",
}
CURRENT_FIELDS = ("temperature_2m", "apparent_temperature", "precipitation", "weather_code", "wind_speed_10m")


class WeatherClient:
    """Open-Meteo geocoding, archive and forecast lookups. No API key needed."""

    def __init__(
        self,
        *,
        geocoding_base_url: str = "https://geocoding-api.open-meteo.com/v1",
        archive_base_url: str = "https://archive-api.open-meteo.com/v1",
        forecast_base_url: str = "https://api.open-meteo.com/v1",
    ):
        self.geocoding_base_url = geocoding_base_url.rstrip("/")
        self.archive_base_url = archive_base_url.rstrip("/")
        self.forecast_base_url = forecast_base_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=30)

    async def geocode(self, city: str) -> Dict[str, Any]:
        data = await self._get(
            f"{self.geocoding_base_url}/search",
            {"name": city, "count": 1, "language": "en", "format": "json"},
            "Geocoding",
        )
        results = data.get("results") or []
        if not results:
            raise ArgumentError(f"City not found: {city}", detail={"city": city})
        match = results[0]
        return {
            "lat": match.get("latitude"),
            "lon": match.get("longitude"),
            "name": match.get("name") or city,
            "country": match.get("country") or "",
        }

    async def historical_weather(self, lat: float, lon: float, date: str) -> Dict[str, Any]:
        data = await self._get(
            f"{self.archive_base_url}/archive",
            {
                "latitude": lat,
                "longitude": lon,
                "start_date": date,
                "end_date": date,
                "daily": ",".join(DAILY_FIELDS.values()),
                "timezone": "auto",
                "wind_speed_unit": "ms",
            },
            "Weather archive",
        )
        daily = data.get("daily")
        if not isinstance(daily, dict):
            raise UpstreamError("Weather archive response is missing daily aggregates")
        summary: Dict[str, Any] = {}
        for key, field in DAILY_FIELDS.items():
            values = daily.get(field)
            if not isinstance(values, list) or not values:
                raise UpstreamError(f"Weather archive response is missing {field}")
            summary[key] = values[0]
        return summary

    async def current_weather(self, lat: float, lon: float) -> Dict[str, Any]:
        data = await self._get(
            f"{self.forecast_base_url}/forecast",
            {
                "latitude": lat,
                "longitude": lon,
                "current": ",".join(CURRENT_FIELDS),
                "timezone": "auto",
                "wind_speed_unit": "ms",
            },
            "Weather forecast",
        )
        current = data.get("current")
        if not isinstance(current, dict):
            raise UpstreamError("Weather forecast response is missing current conditions")
        return {"latitude": lat, "longitude": lon, "current": current, "units": data.get("current_units") or {}}

    async def _get(self, url: str, params: Dict[str, Any], label: str) -> Dict[str, Any]:
        try:
            resp = await self.client.get(url, params=params)
        except httpx.RequestError as exc:
            raise UpstreamError(f"{label} request failed: {exc}") from exc
        try:
            data = resp.json()
        except ValueError:
            data = None
        if resp.is_error or not isinstance(data, dict):
            reason = data.get("reason") if isinstance(data, dict) else None
            raise UpstreamError(reason or f"{label} failed (HTTP {resp.status_code})")
        if data.get("error"):
            raise UpstreamError(str(data.get("reason") or data.get("error")))
        return data

    async def close(self) -> None:
        if not self.client.is_closed:
            await self.client.aclose()
