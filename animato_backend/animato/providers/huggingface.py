import base64
import logging

from ..assembly import build_video_prompt, depicted_attributes
from ..models import PhotoRequest, ProviderResult, VideoRequest
from ..prompts import PORTRAIT_NEGATIVE_PROMPT
from .base import HttpProvider, ProviderError

logger = logging.getLogger(__name__)

INFERENCE_ROOT = "https://api-inference.huggingface.co/models"
SDXL_MODEL = "stabilityai/stable-diffusion-xl-base-1.0"
VIDEO_MODEL = "damo-vilab/text-to-video-ms-1.7b"


def to_data_url(content: bytes, media_type: str) -> str:
    return f"data:{media_type};base64,{base64.b64encode(content).decode('ascii')}"


class HuggingFaceProvider(HttpProvider):
    """Hosted inference API; the response body is the rendered media itself."""

    api_key_env = "HUGGINGFACE_API_KEY"
    model = ""
    expected_media = ""

    async def _infer(self, payload: dict) -> str:
        headers = {"Authorization": f"Bearer {self._require_key()}", "Content-Type": "application/json"}
        async with self._client() as client:
            r = await client.post(f"{INFERENCE_ROOT}/{self.model}", headers=headers, json=payload)
        self._check(r, "inference")
        media_type = r.headers.get("content-type", "").split(";")[0].strip()
        if not media_type.startswith(self.expected_media):
            raise ProviderError(self.name, f"expected {self.expected_media} output, got {media_type or 'nothing'}")
        if not r.content:
            raise ProviderError(self.name, "inference returned an empty body")
        logger.info(f"{self.name} returned {len(r.content)} bytes of {media_type}")
        return to_data_url(r.content, media_type)


class HuggingFacePortraitProvider(HuggingFaceProvider):
    name = "huggingface-sdxl"
    kind = "photo"
    priority = 2
    cost_tier = "freemium"
    model = SDXL_MODEL
    expected_media = "image/"

    async def invoke(self, request: PhotoRequest) -> ProviderResult:
        url = await self._infer({
            "inputs": request.prompt,
            "parameters": {
                "negative_prompt": PORTRAIT_NEGATIVE_PROMPT,
                "num_inference_steps": 30,
                "guidance_scale": 7.5,
                "width": 768,
                "height": 768,
            },
        })
        return ProviderResult(
            provider=self.name,
            urls=[url],
            style="AI generated portrait",
            prompt=request.prompt,
            depicted=depicted_attributes(request.appearance),
        )


class HuggingFaceVideoProvider(HuggingFaceProvider):
    name = "huggingface-video"
    kind = "video"
    priority = 4
    cost_tier = "freemium"
    model = VIDEO_MODEL
    expected_media = "video/"

    async def invoke(self, request: VideoRequest) -> ProviderResult:
        prompt = build_video_prompt(request)
        url = await self._infer({"inputs": prompt, "parameters": {"num_frames": 24}})
        return ProviderResult(provider=self.name, urls=[url], style=request.style, prompt=prompt)
