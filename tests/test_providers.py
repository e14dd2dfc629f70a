"""
Tests for provider adapters.

HTTP adapters run against httpx.MockTransport; nothing leaves the process.
"""

import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from animato.models import Appearance, AsyncJobHandle, AudioRequest, PhotoRequest, VideoRequest
from animato.providers import (
    CanvasVideoProvider,
    CuratedPortraitProvider,
    ElevenLabsProvider,
    HuggingFacePortraitProvider,
    OpenAIPortraitProvider,
    OpenAISpeechProvider,
    ProviderError,
    ProviderNotConfiguredError,
    ReplicatePortraitProvider,
    RunwayVideoProvider,
    SilentNarrationProvider,
    default_fallbacks,
    default_providers,
)
from animato.providers.offline import CURATED_PORTRAITS, portrait_seed, silent_wav
from animato.providers.replicate import SDXL_VERSION


def _transport(handler):
    return httpx.MockTransport(handler)


def _decode_data_url(url: str) -> bytes:
    return base64.b64decode(url.split(",", 1)[1])


class TestRegistry:
    """Tests for the default provider cascades."""

    def test_cascades_are_sorted_by_priority(self):
        providers = default_providers()
        assert [p.name for p in providers["photo"]] == ["replicate-sdxl", "huggingface-sdxl", "openai-dalle"]
        assert [p.name for p in providers["audio"]] == ["elevenlabs", "openai-tts"]
        assert [p.name for p in providers["video"]] == ["runway-ml", "replicate-video", "huggingface-video"]

    def test_overrides(self):
        providers = default_providers(audio=[SilentNarrationProvider()])
        assert [p.name for p in providers["audio"]] == ["offline-narration"]

    def test_fallbacks_are_always_configured(self):
        fallbacks = default_fallbacks()
        assert {k: f.name for k, f in fallbacks.items()} == {
            "photo": "ai-designed-portrait",
            "audio": "offline-narration",
            "video": "ai-generated-canvas",
        }
        assert all(f.is_configured() for f in fallbacks.values())


class TestReplicate:
    """Tests for the Replicate prediction adapter."""

    @pytest.mark.asyncio
    async def test_create_returns_job_handle(self, photo_request):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "pred-1", "status": "starting"})

        provider = ReplicatePortraitProvider(model=SDXL_VERSION, api_key="r8_test", transport=_transport(handler))
        handle = await provider.invoke(photo_request)
        assert isinstance(handle, AsyncJobHandle)
        assert handle.job_id == "pred-1"
        assert handle.depicted["gender"] == "female"
        assert seen["path"] == "/v1/predictions"
        assert seen["auth"] == "Token r8_test"
        assert seen["body"]["version"] == SDXL_VERSION
        assert seen["body"]["input"]["prompt"] == photo_request.prompt

    @pytest.mark.asyncio
    async def test_model_selector_falls_back_to_latest_version(self, photo_request):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.url.path == "/v1/models/owner/portraits/predictions":
                return httpx.Response(404, json={"detail": "not found"})
            if request.url.path == "/v1/models/owner/portraits":
                return httpx.Response(200, json={"latest_version": {"id": "v-latest"}})
            assert json.loads(request.content)["version"] == "v-latest"
            return httpx.Response(201, json={"id": "pred-2"})

        provider = ReplicatePortraitProvider(model="owner/portraits", api_key="r8_test", transport=_transport(handler))
        handle = await provider.invoke(photo_request)
        assert handle.job_id == "pred-2"
        assert calls[-1] == ("POST", "/v1/predictions")

    @pytest.mark.asyncio
    async def test_create_error_raises(self, photo_request):
        provider = ReplicatePortraitProvider(
            model=SDXL_VERSION, api_key="r8_test",
            transport=_transport(lambda request: httpx.Response(422, json={"detail": "bad input"})),
        )
        with pytest.raises(ProviderError):
            await provider.invoke(photo_request)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body,status,urls", [
        ({"status": "processing"}, "processing", []),
        ({"status": "succeeded", "output": ["https://replicate.test/out.png"]}, "completed", ["https://replicate.test/out.png"]),
        ({"status": "succeeded", "output": "https://replicate.test/one.png"}, "completed", ["https://replicate.test/one.png"]),
        ({"status": "succeeded", "output": None}, "failed", []),
        ({"status": "failed", "error": "NSFW"}, "failed", []),
    ])
    async def test_poll_status(self, body, status, urls):
        provider = ReplicatePortraitProvider(
            api_key="r8_test", transport=_transport(lambda request: httpx.Response(200, json=body))
        )
        update = await provider.poll_status("pred-1")
        assert update.status == status
        assert update.result_urls == urls

    @pytest.mark.asyncio
    async def test_unconfigured(self, photo_request):
        provider = ReplicatePortraitProvider(api_key="")
        assert not provider.is_configured()
        with pytest.raises(ProviderNotConfiguredError):
            await provider.invoke(photo_request)


class TestHuggingFace:
    """Tests for the hosted inference adapter."""

    @pytest.mark.asyncio
    async def test_image_bytes_become_data_url(self, photo_request):
        def handler(request):
            return httpx.Response(200, content=b"\x89PNG fake", headers={"content-type": "image/png"})

        provider = HuggingFacePortraitProvider(api_key="hf_test", transport=_transport(handler))
        result = await provider.invoke(photo_request)
        assert result.url.startswith("data:image/png;base64,")
        assert _decode_data_url(result.url) == b"\x89PNG fake"
        assert result.depicted["ethnicity"] == "caucasian"

    @pytest.mark.asyncio
    async def test_json_body_is_an_error(self, photo_request):
        def handler(request):
            return httpx.Response(200, json={"error": "Model is loading"})

        provider = HuggingFacePortraitProvider(api_key="hf_test", transport=_transport(handler))
        with pytest.raises(ProviderError):
            await provider.invoke(photo_request)

    @pytest.mark.asyncio
    async def test_http_error(self, photo_request):
        provider = HuggingFacePortraitProvider(
            api_key="hf_test", transport=_transport(lambda request: httpx.Response(503, text="loading"))
        )
        with pytest.raises(ProviderError):
            await provider.invoke(photo_request)


class TestElevenLabs:
    """Tests for the text-to-speech adapter and its rate-limit backoff."""

    @pytest.mark.asyncio
    async def test_retries_rate_limits(self, sleep_recorder):
        responses = [httpx.Response(429), httpx.Response(429), httpx.Response(200, content=b"ID3 audio")]
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return responses.pop(0)

        provider = ElevenLabsProvider(api_key="el_test", sleep=sleep_recorder, transport=_transport(handler))
        result = await provider.invoke(AudioRequest(text="Once upon a time.", voice_id="voice-1"))
        assert _decode_data_url(result.url) == b"ID3 audio"
        assert sleep_recorder.calls == [1, 2]
        assert paths == ["/v1/text-to-speech/voice-1"] * 3
        assert result.metadata["voice_id"] == "voice-1"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, sleep_recorder):
        provider = ElevenLabsProvider(
            api_key="el_test", max_retries=1, sleep=sleep_recorder,
            transport=_transport(lambda request: httpx.Response(429)),
        )
        with pytest.raises(ProviderError):
            await provider.invoke(AudioRequest(text="Hello.", voice_id="voice-1"))
        assert sleep_recorder.calls == [1]

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, sleep_recorder):
        provider = ElevenLabsProvider(
            api_key="el_test", sleep=sleep_recorder,
            transport=_transport(lambda request: httpx.Response(401, text="bad key")),
        )
        with pytest.raises(ProviderError):
            await provider.invoke(AudioRequest(text="Hello.", voice_id="voice-1"))
        assert sleep_recorder.calls == []

    @pytest.mark.asyncio
    async def test_missing_voice_uses_theme_narrator(self):
        from animato.prompts import THEME_VOICES

        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, content=b"audio")

        provider = ElevenLabsProvider(api_key="el_test", transport=_transport(handler))
        await provider.invoke(AudioRequest(text="Hello.", theme="horror"))
        assert paths == [f"/v1/text-to-speech/{THEME_VOICES['horror'][0]}"]


class TestRunway:
    """Tests for the Runway generation adapter."""

    @pytest.mark.asyncio
    async def test_create(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["duration"] == 10
            assert body["aspect_ratio"] == "9:16"
            return httpx.Response(200, json={"id": "gen-1"})

        provider = RunwayVideoProvider(api_key="rw_test", transport=_transport(handler))
        handle = await provider.invoke(VideoRequest(title="t", prompt="p", aspect_ratio="9:16", duration=30))
        assert handle.job_id == "gen-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body,status,progress,urls", [
        ({"status": "RUNNING", "progress": 0.4}, "processing", 40.0, []),
        ({"status": "pending"}, "processing", None, []),
        ({"status": "SUCCEEDED", "output": ["https://runway.test/v.mp4"]}, "completed", 100, ["https://runway.test/v.mp4"]),
        ({"status": "SUCCEEDED", "video_url": "https://runway.test/w.mp4"}, "completed", 100, ["https://runway.test/w.mp4"]),
        ({"status": "FAILED", "failure": "content policy"}, "failed", None, []),
    ])
    async def test_poll_status(self, body, status, progress, urls):
        provider = RunwayVideoProvider(api_key="rw_test", transport=_transport(lambda request: httpx.Response(200, json=body)))
        update = await provider.poll_status("gen-1")
        assert update.status == status
        assert update.progress == progress
        assert update.result_urls == urls

    @pytest.mark.asyncio
    async def test_unknown_status(self):
        provider = RunwayVideoProvider(
            api_key="rw_test", transport=_transport(lambda request: httpx.Response(200, json={"status": "WEIRD"}))
        )
        with pytest.raises(ProviderError):
            await provider.poll_status("gen-1")


class TestOpenAI:
    """Tests for the OpenAI adapters with an injected client."""

    @pytest.mark.asyncio
    async def test_portrait(self, photo_request):
        client = SimpleNamespace(images=SimpleNamespace(generate=AsyncMock(
            return_value=SimpleNamespace(data=[SimpleNamespace(url="https://openai.test/img.png")])
        )))
        provider = OpenAIPortraitProvider(client=client)
        assert provider.is_configured()
        result = await provider.invoke(photo_request)
        assert result.urls == ["https://openai.test/img.png"]
        client.images.generate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_portrait_without_url(self, photo_request):
        client = SimpleNamespace(images=SimpleNamespace(generate=AsyncMock(return_value=SimpleNamespace(data=[]))))
        with pytest.raises(ProviderError):
            await OpenAIPortraitProvider(client=client).invoke(photo_request)

    @pytest.mark.asyncio
    async def test_speech_voice_follows_segment_type(self):
        create = AsyncMock(return_value=SimpleNamespace(content=b"mp3"))
        client = SimpleNamespace(audio=SimpleNamespace(speech=SimpleNamespace(create=create)))
        provider = OpenAISpeechProvider(client=client)
        result = await provider.invoke(AudioRequest(text="Hi.", segment_type="dialogue", character="ARIA"))
        assert result.style == "alloy"
        assert create.await_args.kwargs["voice"] == "alloy"


class TestOffline:
    """Tests for the deterministic offline generators."""

    def test_portrait_seed(self):
        appearance = Appearance(gender="female", ethnicity="asian", hair_color="black")
        assert portrait_seed("Aria", appearance) == 516

    @pytest.mark.asyncio
    async def test_curated_portrait(self):
        request = PhotoRequest(name="Aria", appearance=Appearance(gender="female", ethnicity="asian", hair_color="black"))
        result = await CuratedPortraitProvider().invoke(request)
        assert CURATED_PORTRAITS["female-asian"][0] in result.url
        assert result.depicted == {"gender": "female", "ethnicity": "asian"}
        again = await CuratedPortraitProvider().invoke(request)
        assert again.url == result.url

    @pytest.mark.asyncio
    async def test_unknown_bucket_uses_default_set(self):
        request = PhotoRequest(name="Kai", appearance=Appearance(gender="male", ethnicity="mixed"))
        result = await CuratedPortraitProvider().invoke(request)
        assert result.metadata["set"] == "female-caucasian"
        assert result.depicted == {"gender": "female", "ethnicity": "caucasian"}

    @pytest.mark.asyncio
    async def test_canvas_poster(self):
        request = VideoRequest(title="The Gate", prompt="p", theme="fantasy", duration=30)
        result = await CanvasVideoProvider().invoke(request)
        assert result.url.startswith("data:image/png;base64,")
        assert _decode_data_url(result.url).startswith(b"\x89PNG")
        assert result.metadata["thumbnail_url"].startswith("data:image/png;base64,")

    def test_silent_wav_length(self):
        data = silent_wav(1.0)
        assert data[:4] == b"RIFF"
        assert len(data) == 44 + 8000

    @pytest.mark.asyncio
    async def test_silent_narration(self):
        result = await SilentNarrationProvider().invoke(AudioRequest(text="Hello there."))
        assert result.url.startswith("data:audio/wav;base64,")
        assert result.metadata["duration"] == 1.0
