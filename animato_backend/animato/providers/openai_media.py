import os
import logging

from ..assembly import depicted_attributes
from ..models import AudioRequest, PhotoRequest, ProviderResult
from .base import ProviderAdapter, ProviderError, ProviderNotConfiguredError
from .huggingface import to_data_url

logger = logging.getLogger(__name__)

IMAGE_MODEL = "dall-e-3"
SPEECH_MODEL = "tts-1"
NARRATION_VOICE = "fable"
DIALOGUE_VOICE = "alloy"

_client = None


def _get_client():
    global _client
    if _client is None:
        from openai import AsyncOpenAI
        api_key = os.getenv("OPENAI_API_KEY", "")
        if not api_key:
            raise ProviderNotConfiguredError("openai", "OPENAI_API_KEY is not set; please configure your .env")
        _client = AsyncOpenAI(api_key=api_key)
    return _client


class OpenAIProvider(ProviderAdapter):
    def __init__(self, client=None):
        self._injected = client

    @property
    def client(self):
        return self._injected or _get_client()

    def is_configured(self) -> bool:
        return self._injected is not None or bool(os.getenv("OPENAI_API_KEY", ""))


class OpenAIPortraitProvider(OpenAIProvider):
    name = "openai-dalle"
    kind = "photo"
    priority = 3
    cost_tier = "paid"

    async def invoke(self, request: PhotoRequest) -> ProviderResult:
        logger.info(f"Calling OpenAI images API for {request.name}")
        resp = await self.client.images.generate(model=IMAGE_MODEL, prompt=request.prompt, size="1024x1024", n=1)
        if not resp.data or not resp.data[0].url:
            raise ProviderError(self.name, "images API returned no URL")
        return ProviderResult(
            provider=self.name,
            urls=[resp.data[0].url],
            style="AI generated portrait",
            prompt=request.prompt,
            depicted=depicted_attributes(request.appearance),
        )


class OpenAISpeechProvider(OpenAIProvider):
    name = "openai-tts"
    kind = "audio"
    priority = 2
    cost_tier = "paid"

    async def invoke(self, request: AudioRequest) -> ProviderResult:
        voice = DIALOGUE_VOICE if request.segment_type == "dialogue" else NARRATION_VOICE
        resp = await self.client.audio.speech.create(model=SPEECH_MODEL, voice=voice, input=request.text)
        audio = resp.content
        if not audio:
            raise ProviderError(self.name, "speech API returned no audio")
        logger.info(f"OpenAI speech returned {len(audio)} bytes")
        return ProviderResult(
            provider=self.name,
            urls=[to_data_url(audio, "audio/mpeg")],
            style=voice,
            prompt=request.text,
            metadata={"voice": voice, "model": SPEECH_MODEL},
        )
