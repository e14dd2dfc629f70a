import os
import logging
from typing import Optional

import httpx

from ..assembly import build_video_prompt, depicted_attributes
from ..models import AsyncJobHandle, JobStatusUpdate, PhotoRequest, VideoRequest
from ..prompts import PORTRAIT_NEGATIVE_PROMPT, VIDEO_NEGATIVE_PROMPT
from .base import HttpProvider, ProviderError

logger = logging.getLogger(__name__)

API_ROOT = "https://api.replicate.com/v1"
SDXL_VERSION = "ac732df83cea7fff18b8472768c88ad041fa750ff7682a21affe81863cbe77e45"
VIDEO_VERSION = "cdb532257c2bff8c6dc96fb90da3a8a44c7a18bb0e9b0db6ce8e1b8a8ad8dca8"

_STATUS_MAP = {
    "starting": "processing",
    "processing": "processing",
    "succeeded": "completed",
    "failed": "failed",
    "canceled": "failed",
}


def _parse_selector(selector: str):
    # Returns a tuple (mode, data)
    # mode == "version": data={"version": <hash>}
    # mode == "model": data={"owner": <owner>, "name": <name>}
    if "/" in selector:
        owner_name, _, _version_alias = selector.partition(":")
        owner, name = owner_name.split("/", 1)
        return "model", {"owner": owner, "name": name}
    return "version", {"version": selector}


class ReplicateProvider(HttpProvider):
    """Replicate predictions: create, then poll ``/predictions/{id}``."""

    api_key_env = "REPLICATE_API_TOKEN"
    model_env = ""
    default_model = ""

    def __init__(self, model: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self._model = model

    @property
    def model_selector(self) -> str:
        # Prefer explicit model from env for stability; fall back to the pinned version.
        return self._model or os.getenv(self.model_env, "") or self.default_model

    def _headers(self) -> dict:
        return {"Authorization": f"Token {self._require_key()}", "Content-Type": "application/json"}

    async def _create(self, model_input: dict) -> dict:
        mode, data = _parse_selector(self.model_selector)
        body = {"input": model_input}
        if mode == "version":
            body["version"] = data["version"]
            url = f"{API_ROOT}/predictions"
        else:
            url = f"{API_ROOT}/models/{data['owner']}/{data['name']}/predictions"

        async with self._client() as client:
            logger.info(f"Sending request to Replicate: {url}")
            r = await client.post(url, headers=self._headers(), json=body)
            if r.status_code == 404 and mode == "model":
                # Model endpoint unavailable for this model; resolve its latest version instead.
                logger.info("Falling back to latest version resolution for model")
                model_resp = await client.get(f"{API_ROOT}/models/{data['owner']}/{data['name']}", headers=self._headers())
                self._check(model_resp, "model lookup")
                version_id = (self._json(model_resp, "model lookup").get("latest_version") or {}).get("id")
                if not version_id:
                    raise ProviderError(self.name, "could not resolve latest version for model")
                logger.info(f"Resolved latest version: {version_id}")
                r = await client.post(f"{API_ROOT}/predictions", headers=self._headers(), json={**body, "version": version_id})
            self._check(r, "create")
            pred = self._json(r, "create")
        if not pred.get("id"):
            raise ProviderError(self.name, "create response has no prediction id")
        logger.info(f"Replicate prediction created with ID: {pred['id']}")
        return pred

    async def poll_status(self, job_id: str) -> JobStatusUpdate:
        async with self._client() as client:
            s = await client.get(f"{API_ROOT}/predictions/{job_id}", headers=self._headers())
        self._check(s, "status")
        body = self._json(s, "status")
        raw = body.get("status")
        status = _STATUS_MAP.get(raw)
        if status is None:
            raise ProviderError(self.name, f"unknown prediction status {raw!r}")
        logger.info(f"Replicate prediction {job_id} status: {raw}")
        if status == "failed":
            return JobStatusUpdate(status="failed", error=str(body.get("error") or raw))
        if status == "completed":
            output = body.get("output")
            urls = output if isinstance(output, list) else [output] if output else []
            urls = [u for u in urls if isinstance(u, str)]
            if not urls:
                return JobStatusUpdate(status="failed", error="Replicate succeeded but no output URL")
            return JobStatusUpdate(status="completed", progress=100, result_urls=urls)
        return JobStatusUpdate(status="processing")


class ReplicatePortraitProvider(ReplicateProvider):
    name = "replicate-sdxl"
    kind = "photo"
    priority = 1
    cost_tier = "paid"
    model_env = "REPLICATE_PHOTO_MODEL"
    default_model = SDXL_VERSION

    async def invoke(self, request: PhotoRequest) -> AsyncJobHandle:
        logger.info(f"Starting Replicate portrait generation for {request.name}")
        pred = await self._create({
            "prompt": request.prompt,
            "negative_prompt": PORTRAIT_NEGATIVE_PROMPT,
            "width": 768,
            "height": 768,
            "num_outputs": 1,
            "num_inference_steps": 50,
            "guidance_scale": 7.5,
            "scheduler": "DPMSolverMultistep",
        })
        return AsyncJobHandle(
            job_id=pred["id"],
            provider=self.name,
            style="premium AI generated",
            prompt=request.prompt,
            depicted=depicted_attributes(request.appearance),
            estimated_time=30,
        )


class ReplicateVideoProvider(ReplicateProvider):
    name = "replicate-video"
    kind = "video"
    priority = 3
    cost_tier = "freemium"
    model_env = "REPLICATE_VIDEO_MODEL"
    default_model = VIDEO_VERSION

    async def invoke(self, request: VideoRequest) -> AsyncJobHandle:
        prompt = build_video_prompt(request)
        vertical = request.aspect_ratio == "9:16"
        pred = await self._create({
            "prompt": prompt,
            "negative_prompt": VIDEO_NEGATIVE_PROMPT,
            "video_length": min(request.duration or 5, 5),
            "width": 576 if vertical else 1024,
            "height": 1024 if vertical else 576,
        })
        return AsyncJobHandle(job_id=pred["id"], provider=self.name, style=request.style, prompt=prompt, estimated_time=120)
