import logging

from ..assembly import build_video_prompt
from ..models import AsyncJobHandle, JobStatusUpdate, VideoRequest
from .base import HttpProvider, ProviderError

logger = logging.getLogger(__name__)

API_ROOT = "https://api.runwayml.com/v1"
MODEL = "gen3a_turbo"
MAX_CLIP_SECONDS = 10

_STATUS_MAP = {
    "PENDING": "processing",
    "THROTTLED": "processing",
    "RUNNING": "processing",
    "SUCCEEDED": "completed",
    "FAILED": "failed",
    "CANCELLED": "failed",
}


class RunwayVideoProvider(HttpProvider):
    name = "runway-ml"
    kind = "video"
    priority = 2
    cost_tier = "paid"
    api_key_env = "RUNWAY_API_KEY"

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self._require_key()}", "Content-Type": "application/json"}

    async def invoke(self, request: VideoRequest) -> AsyncJobHandle:
        prompt = build_video_prompt(request)
        async with self._client() as client:
            r = await client.post(
                f"{API_ROOT}/video_generations",
                headers=self._headers(),
                json={
                    "model": MODEL,
                    "prompt": prompt,
                    "duration": min(request.duration or MAX_CLIP_SECONDS, MAX_CLIP_SECONDS),
                    "aspect_ratio": request.aspect_ratio,
                    "motion_bucket_id": 127,
                },
            )
        self._check(r, "create")
        body = self._json(r, "create")
        if not body.get("id"):
            raise ProviderError(self.name, "create response has no generation id")
        logger.info(f"Runway generation created with ID: {body['id']}")
        return AsyncJobHandle(job_id=body["id"], provider=self.name, style=request.style, prompt=prompt, estimated_time=60)

    async def poll_status(self, job_id: str) -> JobStatusUpdate:
        async with self._client() as client:
            r = await client.get(f"{API_ROOT}/video_generations/{job_id}", headers=self._headers())
        self._check(r, "status")
        body = self._json(r, "status")
        raw = str(body.get("status", "")).upper()
        status = _STATUS_MAP.get(raw)
        if status is None:
            raise ProviderError(self.name, f"unknown generation status {raw!r}")
        if status == "failed":
            return JobStatusUpdate(status="failed", error=body.get("failure") or raw)
        if status == "completed":
            output = body.get("output") or ([body["video_url"]] if body.get("video_url") else [])
            if not output:
                return JobStatusUpdate(status="failed", error="Runway succeeded but no output URL")
            return JobStatusUpdate(status="completed", progress=100, result_urls=list(output))
        progress = body.get("progress")
        return JobStatusUpdate(status="processing", progress=float(progress) * 100 if isinstance(progress, (int, float)) else None)
