"""
Turns decomposed story entities into provider requests: portrait prompts,
per-segment narration with voice assignment, and the story video request.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from . import prompts
from . import text as textutil
from .models import (
    Appearance,
    AudioRequest,
    Character,
    PhotoRequest,
    Scene,
    VideoCharacterPayload,
    VideoRequest,
    VideoScenePayload,
)

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 150
MIN_SCENE_CLIP_SECONDS = 5
MAX_SCENE_CLIP_SECONDS = 10
NARRATION_EXCERPT_CHARS = 200
SCENE_SUMMARY_CHARS = 150
DEFAULT_VIDEO_SECONDS = 30
CHILD_MAX_AGE = 13
YOUNG_MAX_AGE = 30
ELDERLY_MIN_AGE = 60


def describe_age(age: int) -> str:
    for upper, description in prompts.AGE_BANDS:
        if age < upper:
            return description
    return prompts.OLDEST_AGE_DESCRIPTION


def portrait_prompt(name: str, appearance: Appearance, mood: str = "", setting: str = "") -> str:
    parts = [
        f"Professional character portrait of {name}",
        f"{describe_age(appearance.age)} {appearance.gender}",
        prompts.ETHNICITY_DESCRIPTIONS.get(appearance.ethnicity, appearance.ethnicity),
        prompts.HAIR_DESCRIPTIONS.get(appearance.hair_color, f"{appearance.hair_color} hair"),
        prompts.EYE_DESCRIPTIONS.get(appearance.eye_color, f"{appearance.eye_color} eyes"),
        prompts.STYLE_DESCRIPTIONS.get(appearance.style, prompts.DEFAULT_STYLE_DESCRIPTION),
        f"{mood} expression" if mood else "confident and approachable expression",
        f"{setting} background" if setting else "professional studio lighting",
        prompts.PORTRAIT_QUALITY_MODIFIERS,
    ]
    return ", ".join(parts)


def depicted_attributes(appearance: Appearance) -> Dict[str, Any]:
    """Attributes a prompt-driven image model was asked to render."""
    return appearance.model_dump(include={"gender", "ethnicity", "hair_color", "eye_color", "age"})


def build_photo_request(character: Character, style: str = "realistic") -> PhotoRequest:
    return PhotoRequest(
        name=character.name,
        character_id=character.id,
        description=character.description,
        appearance=character.appearance,
        style=style,
        prompt=portrait_prompt(character.name, character.appearance),
    )


def voice_profile(character: Character) -> str:
    age = character.appearance.age
    if age < CHILD_MAX_AGE:
        return "child"
    if "mysterious" in character.personality:
        return "mysterious"
    if "dramatic" in character.personality:
        return "dramatic"
    gender = "female" if character.appearance.gender == "female" else "male"
    if age >= ELDERLY_MIN_AGE:
        return f"elderly_{gender}"
    if age < YOUNG_MAX_AGE:
        return f"young_{gender}"
    return f"mature_{gender}"


def character_voice(character: Character) -> Tuple[str, Dict[str, Any]]:
    settings = {
        "stability": 0.5,
        "similarity_boost": 0.8,
        "style": 0.3 if "dramatic" in character.personality else 0.0,
        "use_speaker_boost": True,
    }
    return prompts.CHARACTER_VOICES[voice_profile(character)], settings


def narrator_voice(theme: str) -> Tuple[str, Dict[str, Any]]:
    voice_id, settings = prompts.THEME_VOICES.get(theme, prompts.THEME_VOICES[prompts.DEFAULT_THEME])
    return voice_id, dict(settings)


def _find_character(characters: Sequence[Character], name: Optional[str]) -> Optional[Character]:
    if not name:
        return None
    return next((c for c in characters if c.name.lower() == name.lower()), None)


def build_narration_requests(scene: Scene, characters: Sequence[Character], theme: str = "drama") -> List[AudioRequest]:
    """One audio request per narration or dialogue segment, in reading order."""
    requests = []
    for segment in textutil.split_dialogue(scene.content):
        speaker = _find_character(characters, segment.character)
        if segment.type == "dialogue" and speaker is not None:
            voice_id, voice_settings = character_voice(speaker)
        else:
            voice_id, voice_settings = narrator_voice(theme)
        requests.append(AudioRequest(
            text=segment.text,
            scene_id=scene.id,
            character=segment.character,
            segment_type=segment.type,
            voice_id=voice_id,
            voice_settings=voice_settings,
            theme=theme,
        ))
    return requests


def estimate_audio_duration(text: str) -> float:
    """Seconds of speech for ``text`` at a steady speaking rate."""
    return round(textutil.word_count(text) / WORDS_PER_MINUTE * 60, 1)


def build_video_prompt(request: VideoRequest) -> str:
    prompt = request.prompt
    if request.style:
        prompt += f", {request.style} style"
    prompt += f", {prompts.VIDEO_QUALITY_MODIFIERS}"
    prompt += ", " + prompts.ASPECT_RATIO_MODIFIERS.get(request.aspect_ratio, prompts.DEFAULT_ASPECT_RATIO_MODIFIER)
    return prompt


def _master_prompt(title: str, theme: str, scenes: Sequence[Scene], characters: Sequence[Character]) -> str:
    cast = ". ".join(f"{c.name} ({c.role}): {c.description}" for c in characters)
    beats = " ".join(f"Scene {i + 1}: {s.content[:SCENE_SUMMARY_CHARS]}" for i, s in enumerate(scenes))
    return f"{title}. A {theme} story video. Characters: {cast}. Story progression: {beats}"


def build_video_request(
    title: str,
    scenes: Sequence[Scene],
    characters: Sequence[Character],
    style: str = "cinematic",
    aspect_ratio: str = "16:9",
    theme: str = "drama",
    duration: float = DEFAULT_VIDEO_SECONDS,
) -> VideoRequest:
    payloads = [
        VideoScenePayload(
            id=scene.id,
            title=scene.title,
            description=scene.content,
            duration=max(MIN_SCENE_CLIP_SECONDS, min(MAX_SCENE_CLIP_SECONDS, scene.duration)),
            visual_prompt=scene.visual_prompt,
            narration=scene.content[:NARRATION_EXCERPT_CHARS],
            dialogue=[s for s in textutil.split_dialogue(scene.content) if s.type == "dialogue"],
        )
        for scene in sorted(scenes, key=lambda s: s.order)
    ]
    cast = []
    for c in characters:
        photo = c.selected_photo
        cast.append(VideoCharacterPayload(name=c.name, description=c.description, photo_url=photo.url if photo else None))
    return VideoRequest(
        title=title,
        prompt=_master_prompt(title, theme, scenes, characters),
        scenes=payloads,
        characters=cast,
        style=style,
        aspect_ratio=aspect_ratio,
        theme=theme,
        duration=duration,
    )
