import asyncio
import logging
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from .errors import ConfigurationError, JobTimeoutError, UpstreamError
from .schemas import DEFAULT_RATIO, AsyncJob

logger = logging.getLogger("uvicorn.error")


def extract_output_urls(output: Any) -> List[str]:
    """Output may be a URL, an object with `url`, or a list of either."""
    items = output if isinstance(output, list) else [output]
    urls: List[str] = []
    for item in items:
        if isinstance(item, str) and item:
            urls.append(item)
        elif isinstance(item, dict) and item.get("url"):
            urls.append(str(item["url"]))
    return urls


def _error_message(data: Any, fallback: str) -> str:
    if isinstance(data, dict):
        for key in ("error", "detail", "title", "message"):
            val = data.get(key)
            if isinstance(val, str) and val.strip():
                return val
    if isinstance(data, str) and data.strip():
        return data
    return fallback


class ImageJobClient:
    """Replicate-style prediction jobs: submit once, then poll the job's own status URL."""

    def __init__(
        self,
        api_token: Optional[str],
        *,
        base_url: str = "https://api.replicate.com/v1",
        generate_model: str = "black-forest-labs/flux-schnell",
        refine_model: str = "black-forest-labs/flux-kontext-pro",
        poll_interval_s: float = 1.2,
        poll_timeout_s: float = 120.0,
    ):
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.generate_model = generate_model
        self.refine_model = refine_model
        self.poll_interval_s = poll_interval_s
        self.poll_timeout_s = poll_timeout_s
        self.client = httpx.AsyncClient(timeout=60)

    def _headers(self) -> Dict[str, str]:
        if not self.api_token:
            raise ConfigurationError("replicate_api_token")
        return {"Authorization": f"Bearer {self.api_token}", "Content-Type": "application/json"}

    async def generate_images(self, prompt: str, count: int = 1, aspect_ratio: str = DEFAULT_RATIO) -> Dict[str, Any]:
        job = await self.run(
            self.generate_model,
            {"prompt": prompt, "num_outputs": count, "aspect_ratio": aspect_ratio},
        )
        images = extract_output_urls(job.output)
        if not images:
            raise UpstreamError("Generation finished without any images")
        return {"images": images}

    async def refine_image(self, prompt: str, input_image: str) -> Dict[str, Any]:
        job = await self.run(self.refine_model, {"prompt": prompt, "input_image": input_image})
        images = extract_output_urls(job.output)
        if not images:
            raise UpstreamError("Refinement finished without an image")
        return {"image": images[0]}

    async def run(self, model: str, model_input: Dict[str, Any]) -> AsyncJob:
        job = await self.submit(model, model_input)
        logger.info("Image job %s submitted (%s): %s", job.id, model, job.status)
        if not job.terminal:
            job = await self.wait(job)
        if job.status != "succeeded":
            default = "Image job was canceled" if job.status == "canceled" else "Image job failed"
            raise UpstreamError(_error_message(job.error, default), detail={"job_id": job.id, "status": job.status})
        return job

    async def submit(self, model: str, model_input: Dict[str, Any]) -> AsyncJob:
        url = f"{self.base_url}/models/{model}/predictions"
        headers = self._headers()
        try:
            resp = await self.client.post(url, json={"input": model_input}, headers=headers)
        except httpx.RequestError as exc:
            raise UpstreamError(f"Image job submission failed: {exc}") from exc
        return self._parse_job(resp, "Image job submission failed")

    async def fetch(self, job: AsyncJob) -> AsyncJob:
        url = job.urls.get("get") or f"{self.base_url}/predictions/{job.id}"
        try:
            resp = await self.client.get(url, headers=self._headers())
        except httpx.RequestError as exc:
            raise UpstreamError(f"Image job status check failed: {exc}") from exc
        return self._parse_job(resp, "Image job status check failed")

    async def wait(self, job: AsyncJob) -> AsyncJob:
        started = time.monotonic()
        while not job.terminal:
            if time.monotonic() - started > self.poll_timeout_s:
                logger.warning("Image job %s timed out after %ss", job.id, self.poll_timeout_s)
                raise JobTimeoutError(job.id, self.poll_timeout_s)
            await asyncio.sleep(self.poll_interval_s)
            job = await self.fetch(job)
        logger.info("Image job %s finished: %s", job.id, job.status)
        return job

    def _parse_job(self, resp: httpx.Response, fallback: str) -> AsyncJob:
        try:
            data = resp.json()
        except ValueError:
            data = resp.text
        if resp.is_error:
            raise UpstreamError(
                _error_message(data, f"{fallback} (HTTP {resp.status_code})"),
                detail={"status_code": resp.status_code},
            )
        if not isinstance(data, dict) or not data.get("id"):
            raise UpstreamError(f"{fallback}: malformed job payload")
        try:
            return AsyncJob(**data)
        except ValidationError as exc:
            raise UpstreamError(f"{fallback}: unexpected job payload") from exc

    async def close(self) -> None:
        if not self.client.is_closed:
            await self.client.aclose()
