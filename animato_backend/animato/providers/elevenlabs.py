import asyncio
import logging

import httpx

from .. import settings
from ..assembly import estimate_audio_duration, narrator_voice
from ..models import AudioRequest, ProviderResult
from .base import HttpProvider, ProviderError
from .huggingface import to_data_url

logger = logging.getLogger(__name__)

API_ROOT = "https://api.elevenlabs.io/v1"
MODEL_ID = "eleven_turbo_v2"
DEFAULT_VOICE_SETTINGS = {"stability": 0.5, "similarity_boost": 0.75}


class ElevenLabsProvider(HttpProvider):
    name = "elevenlabs"
    kind = "audio"
    priority = 1
    cost_tier = "freemium"
    api_key_env = "ELEVENLABS_API_KEY"

    def __init__(self, max_retries=None, sleep=asyncio.sleep, **kwargs):
        super().__init__(**kwargs)
        self.max_retries = settings.ELEVENLABS_MAX_RETRIES if max_retries is None else max_retries
        self._sleep = sleep

    def _headers(self) -> dict:
        return {"xi-api-key": self._require_key(), "Content-Type": "application/json"}

    async def tts_to_bytes(self, text: str, voice_id: str, voice_settings: dict) -> bytes:
        payload = {
            "text": text,
            "model_id": MODEL_ID,
            "voice_settings": voice_settings or DEFAULT_VOICE_SETTINGS,
            "output_format": "mp3_22050_32",
        }
        url = f"{API_ROOT}/text-to-speech/{voice_id}"

        for attempt in range(self.max_retries + 1):
            try:
                async with self._client() as client:
                    r = await client.post(url, headers=self._headers(), json=payload)
                    r.raise_for_status()
                    return r.content
            except httpx.HTTPStatusError as e:
                if e.response.status_code == 429 and attempt < self.max_retries:
                    # Exponential backoff: wait 2^attempt seconds
                    wait_time = 2 ** attempt
                    logger.warning(f"ElevenLabs rate limited (429). Retrying in {wait_time} seconds... (attempt {attempt + 1}/{self.max_retries + 1})")
                    await self._sleep(wait_time)
                    continue
                logger.error(f"ElevenLabs request failed {e.response.status_code}: {e.response.text[:300]}")
                raise ProviderError(self.name, f"text-to-speech failed {e.response.status_code}")

    async def invoke(self, request: AudioRequest) -> ProviderResult:
        voice_id, voice_settings = request.voice_id, request.voice_settings
        if not voice_id:
            voice_id, voice_settings = narrator_voice(request.theme)
        audio = await self.tts_to_bytes(request.text, voice_id, voice_settings)
        if not audio:
            raise ProviderError(self.name, "text-to-speech returned no audio")
        logger.info(f"ElevenLabs returned {len(audio)} bytes for voice {voice_id}")
        return ProviderResult(
            provider=self.name,
            urls=[to_data_url(audio, "audio/mpeg")],
            style=voice_id,
            prompt=request.text,
            metadata={"voice_id": voice_id, "duration": estimate_audio_duration(request.text)},
        )
