"""
Deterministic generators used when every configured provider has failed.

Nothing here touches the network. The same request always produces the same
artifact.
"""
import io
import logging
import random
import wave

from PIL import Image, ImageDraw, ImageFont

from ..assembly import estimate_audio_duration, portrait_prompt
from ..models import Appearance, AudioRequest, PhotoRequest, ProviderResult, VideoRequest
from .base import ProviderAdapter
from .huggingface import to_data_url

logger = logging.getLogger(__name__)

_UNSPLASH = "https://images.unsplash.com/photo-{}?ixlib=rb-4.0.3&auto=format&fit=crop&w=400&h=600&q=80"

CURATED_PORTRAITS = {
    "male-caucasian": ["1472099645785-5658abf4ff4e", "1507003211169-0a1dd7228f2d", "1566492031773-4f4e44671d66", "1519345182560-3f2917c472ef"],
    "male-african": ["1506794778202-cad84cf45f1d", "1500648767791-00dcc994a43e", "1507591064344-4c6ce005b128", "1521119989659-a83eee488004"],
    "male-asian": ["1582750433449-648ed127bb54", "1531891437562-4301cf35b7e4", "1558618047-3c8c76ca7d13", "1597223557154-721c1cecc4b0"],
    "male-hispanic": ["1622253692010-333f2da6031d", "1612349317150-e413f6a5b16d", "1608681299041-cc19878f79df", "1556157382-97eda2d62296"],
    "female-caucasian": ["1494790108755-2616b612b1e5", "1507101105822-7472b28e22ac", "1502823403499-6ccfcf4fb453", "1517841905240-472988babdf9"],
    "female-african": ["1531123897727-8f129e1688ce", "1588361035994-295e21daa761", "1526510747491-58f928ec870f", "1487412720507-e7ab37603c6f"],
    "female-asian": ["1488426862026-3ee34a7d66df", "1601233749202-95d04d5b3c00", "1573497019940-1c28c88b4f3e", "1590086782957-93c06ef21604"],
    "female-hispanic": ["1615109398623-88346a601842", "1580489944761-15a19d654956", "1512310604669-443f26c35f52", "1529258283598-8d6fe60b27f4"],
}
DEFAULT_PORTRAIT_KEY = "female-caucasian"

THEME_GRADIENTS = {
    "adventure": ("#FF6B35", "#F7931E"),
    "mystery": ("#2C3E50", "#34495E"),
    "fantasy": ("#667eea", "#764ba2"),
    "sci-fi": ("#0F2027", "#2C5364"),
    "romance": ("#ff9a9e", "#fecfef"),
    "horror": ("#232526", "#414345"),
    "comedy": ("#ffecd2", "#fcb69f"),
}
DEFAULT_GRADIENT = ("#4facfe", "#00f2fe")
PARTICLE_COLORS = {"fantasy": "#FFD700", "sci-fi": "#00FFFF"}
PARTICLE_COUNT = 20

FRAME_SIZES = {"9:16": (540, 960), "1:1": (720, 720)}
DEFAULT_FRAME_SIZE = (960, 540)
THUMBNAIL_SIZE = (320, 180)

SILENCE_SAMPLE_RATE = 8000


def _code_sum(value: str) -> int:
    return sum(ord(ch) for ch in value)


def portrait_seed(name: str, appearance: Appearance) -> int:
    """Selection seed for the curated portrait set.

    Sum of the code points of the name, plus the code point of the first
    letter of the gender, plus the code-point sums of the ethnicity and the
    hair color, modulo 1000.
    """
    gender = appearance.gender or " "
    total = _code_sum(name) + ord(gender[0]) + _code_sum(appearance.ethnicity) + _code_sum(appearance.hair_color)
    return total % 1000


def _portrait_key(appearance: Appearance) -> str:
    key = f"{appearance.gender.lower()}-{appearance.ethnicity.lower()}"
    return key if key in CURATED_PORTRAITS else DEFAULT_PORTRAIT_KEY


class OfflineProvider(ProviderAdapter):
    priority = 99
    cost_tier = "free"

    def is_configured(self) -> bool:
        return True


class CuratedPortraitProvider(OfflineProvider):
    name = "ai-designed-portrait"
    kind = "photo"

    async def invoke(self, request: PhotoRequest) -> ProviderResult:
        key = _portrait_key(request.appearance)
        photos = CURATED_PORTRAITS[key]
        seed = portrait_seed(request.name, request.appearance)
        gender, ethnicity = key.split("-", 1)
        logger.info(f"Using curated portrait {key}[{seed % len(photos)}] for {request.name}")
        return ProviderResult(
            provider=self.name,
            urls=[_UNSPLASH.format(photos[seed % len(photos)])],
            style="professional character portrait",
            prompt=f"{request.name} - {request.prompt or portrait_prompt(request.name, request.appearance)}",
            # Only the demographic bucket is known for a curated photo.
            depicted={"gender": gender, "ethnicity": ethnicity},
            metadata={"seed": seed, "set": key},
        )


def _hex_rgb(color: str):
    color = color.lstrip("#")
    return tuple(int(color[i:i + 2], 16) for i in (0, 2, 4))


def _centered(draw: ImageDraw.ImageDraw, width: int, y: int, text: str, font, fill="#FFFFFF"):
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = (width - (right - left)) // 2
    draw.text((x + 2, y + 2), text, font=font, fill=(0, 0, 0))
    draw.text((x, y), text, font=font, fill=fill)


def render_poster(request: VideoRequest):
    """Themed title frame for a story; returns ``(frame, thumbnail)`` PNG bytes."""
    width, height = FRAME_SIZES.get(request.aspect_ratio, DEFAULT_FRAME_SIZE)
    start, end = (_hex_rgb(c) for c in THEME_GRADIENTS.get(request.theme, DEFAULT_GRADIENT))
    image = Image.new("RGB", (width, height))
    draw = ImageDraw.Draw(image)
    for y in range(height):
        t = y / max(1, height - 1)
        draw.line([(0, y), (width, y)], fill=tuple(round(a + (b - a) * t) for a, b in zip(start, end)))

    rng = random.Random(_code_sum(request.title) + len(request.scenes))
    particle = PARTICLE_COLORS.get(request.theme, "#FFFFFF")
    for _ in range(PARTICLE_COUNT):
        x, y = rng.uniform(0, width), rng.uniform(0, height)
        r = rng.uniform(2, 6)
        draw.ellipse([x - r, y - r, x + r, y + r], fill=particle)

    title_font = ImageFont.load_default(size=max(12, width // 20))
    body_font = ImageFont.load_default(size=max(10, width // 30))
    _centered(draw, width, height // 3, request.title, title_font)
    if request.scenes:
        _centered(draw, width, height // 2, f"{len(request.scenes)} Scenes", body_font)
    _centered(draw, width, height * 2 // 3, f"{int(request.duration or 30)}s Story Video", body_font)

    frame = io.BytesIO()
    image.save(frame, format="PNG")
    thumb = io.BytesIO()
    image.resize(THUMBNAIL_SIZE).save(thumb, format="PNG")
    return frame.getvalue(), thumb.getvalue()


class CanvasVideoProvider(OfflineProvider):
    name = "ai-generated-canvas"
    kind = "video"

    async def invoke(self, request: VideoRequest) -> ProviderResult:
        frame, thumbnail = render_poster(request)
        logger.info(f"Rendered offline poster for {request.title!r} ({len(frame)} bytes)")
        return ProviderResult(
            provider=self.name,
            urls=[to_data_url(frame, "image/png")],
            style=request.style,
            prompt=request.prompt,
            metadata={"thumbnail_url": to_data_url(thumbnail, "image/png"), "scenes": len(request.scenes)},
        )


def silent_wav(seconds: float, sample_rate: int = SILENCE_SAMPLE_RATE) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(1)
        wav.setframerate(sample_rate)
        # 8-bit PCM is unsigned; 128 is the zero line.
        wav.writeframes(b"\x80" * int(seconds * sample_rate))
    return buf.getvalue()


class SilentNarrationProvider(OfflineProvider):
    name = "offline-narration"
    kind = "audio"

    async def invoke(self, request: AudioRequest) -> ProviderResult:
        seconds = max(1.0, estimate_audio_duration(request.text))
        return ProviderResult(
            provider=self.name,
            urls=[to_data_url(silent_wav(seconds), "audio/wav")],
            style="silent placeholder",
            prompt=request.text,
            metadata={"duration": seconds},
        )
