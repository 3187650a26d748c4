import logging
from typing import Any, Dict, List, Optional

import httpx

from .errors import ConfigurationError
from .schemas import DEFAULT_SOURCE, SOURCES

logger = logging.getLogger("uvicorn.error")

UNSPLASH_ORIENTATION = {
    "1:1": "squarish",
    "4:3": "landscape",
    "16:9": "landscape",
    "3:4": "portrait",
    "9:16": "portrait",
}
PEXELS_ORIENTATION = {
    "1:1": "square",
    "4:3": "landscape",
    "16:9": "landscape",
    "3:4": "portrait",
    "9:16": "portrait",
}


def _first_error(raw: Any) -> Optional[str]:
    if not isinstance(raw, dict):
        return None
    errors = raw.get("errors")
    if isinstance(errors, list) and errors:
        return "; ".join(str(e) for e in errors)
    if errors:
        return str(errors)
    error = raw.get("error")
    if error:
        return str(error)
    return None


class LibraryClient:
    """Unsplash and Pexels search normalized to `{"images": [...], "source": ...}`."""

    def __init__(
        self,
        unsplash_key: Optional[str],
        pexels_key: Optional[str],
        *,
        unsplash_base_url: str = "https://api.unsplash.com",
        pexels_base_url: str = "https://api.pexels.com/v1",
        per_page: int = 10,
    ):
        self.unsplash_key = unsplash_key
        self.pexels_key = pexels_key
        self.unsplash_base_url = unsplash_base_url.rstrip("/")
        self.pexels_base_url = pexels_base_url.rstrip("/")
        self.per_page = per_page
        # Tune connection limits so concurrent turns share a pool instead of opening
        # a new TCP connection per request.
        self.client = httpx.AsyncClient(
            timeout=30,
            limits=httpx.Limits(max_connections=32, max_keepalive_connections=16),
        )

    async def search(self, query: str, source: str = DEFAULT_SOURCE, ratio: Optional[str] = None) -> Dict[str, Any]:
        if source not in SOURCES:
            source = DEFAULT_SOURCE
        if source == "pexels":
            return await self.search_pexels(query, ratio=ratio)
        return await self.search_unsplash(query, ratio=ratio)

    async def search_unsplash(self, query: str, ratio: Optional[str] = None) -> Dict[str, Any]:
        if not self.unsplash_key:
            raise ConfigurationError("unsplash_key")
        params: Dict[str, Any] = {"query": query, "page": 1, "per_page": self.per_page}
        orientation = UNSPLASH_ORIENTATION.get(ratio or "")
        if orientation:
            params["orientation"] = orientation
        raw = await self._get(
            f"{self.unsplash_base_url}/search/photos",
            params,
            {"Authorization": f"Client-ID {self.unsplash_key}"},
        )
        error = _first_error(raw)
        if error:
            return {"error": error, "source": "unsplash"}
        images: List[str] = []
        for item in raw.get("results") or []:
            url = (item.get("urls") or {}).get("regular")
            if url:
                images.append(url)
        return {"images": images, "source": "unsplash"}

    async def search_pexels(self, query: str, ratio: Optional[str] = None) -> Dict[str, Any]:
        if not self.pexels_key:
            raise ConfigurationError("pexels_key")
        params: Dict[str, Any] = {"query": query, "page": 1, "per_page": self.per_page}
        orientation = PEXELS_ORIENTATION.get(ratio or "")
        if orientation:
            params["orientation"] = orientation
        raw = await self._get(f"{self.pexels_base_url}/search", params, {"Authorization": self.pexels_key})
        error = _first_error(raw)
        if error:
            return {"error": error, "source": "pexels"}
        images: List[str] = []
        for item in raw.get("photos") or []:
            src = item.get("src") or {}
            url = src.get("large") or src.get("original")
            if url:
                images.append(url)
        return {"images": images, "source": "pexels"}

    async def _get(self, url: str, params: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        """GET with a single retry when the provider answers with a 5xx."""
        attempts = 0
        while True:
            attempts += 1
            try:
                resp = await self.client.get(url, params=params, headers=headers)
                resp.raise_for_status()
                try:
                    data = resp.json()
                except ValueError:
                    return {"error": f"non-JSON response (HTTP {resp.status_code})", "status_code": resp.status_code}
                if not isinstance(data, dict):
                    return {"error": "unexpected response shape", "status_code": resp.status_code}
                return data
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status >= 500 and attempts < 2:
                    logger.warning("Library search %s returned %s; retrying once", url, status)
                    continue
                detail: Any
                try:
                    detail = e.response.json()
                except ValueError:
                    detail = e.response.text
                message = _first_error(detail) or f"HTTP {status}"
                return {"error": message, "status_code": status}
            except httpx.RequestError as e:
                return {"error": f"request failed: {e}"}

    async def close(self) -> None:
        # Safe to call multiple times
        if not self.client.is_closed:
            await self.client.aclose()
