from typing import Any, Dict, Optional

import httpx

from .errors import ArgumentError, ConfigurationError, UpstreamError

ALLOWED_AUDIO_TYPES = {
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/m4a",
    "audio/x-m4a",
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/ogg",
    "video/webm",
}


class TranscriptionClient:
    def __init__(self, api_key: Optional[str], *, base_url: str = "https://api.openai.com/v1", model: str = "whisper-1"):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.client = httpx.AsyncClient(timeout=120)

    async def transcribe(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        language: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError("openai_api_key")
        if not data:
            raise ArgumentError("Audio file is empty.")
        form: Dict[str, Any] = {"model": self.model}
        if language:
            form["language"] = language
        files = {"file": (filename, data, content_type or "application/octet-stream")}
        try:
            resp = await self.client.post(
                f"{self.base_url}/audio/transcriptions",
                data=form,
                files=files,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except httpx.RequestError as exc:
            raise UpstreamError(f"Transcription request failed: {exc}") from exc
        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if resp.is_error:
            error = payload.get("error") if isinstance(payload, dict) else None
            message = error.get("message") if isinstance(error, dict) else error
            raise UpstreamError(str(message or f"Transcription failed (HTTP {resp.status_code})"))
        return {"text": str(payload.get("text") or "").strip()}

    async def close(self) -> None:
        if not self.client.is_closed:
            await self.client.aclose()
