"""
Scene segmentation.

Text is split on structural markers first (headings, sluglines, transition
keywords and phrases). Text without any marker is bucketed by sentence into
3-6 scenes instead. Long scene lists are then shortened by merging short
scenes into their successors.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from . import text as textutil
from .models import Character, Scene

logger = logging.getLogger(__name__)

WORDS_PER_SECOND = 3
MIN_SCENE_SECONDS = 15
MAX_SCENE_SECONDS = 60
MERGE_THRESHOLD_SECONDS = 20
MAX_SCENES = 6
MIN_BUCKETED_SCENES = 3
SENTENCES_PER_BUCKET = 3

POSITION_LABELS = {
    1: ("Opening",),
    2: ("Opening", "Resolution"),
    3: ("Opening", "Climax", "Resolution"),
    4: ("Opening", "Development", "Climax", "Resolution"),
    5: ("Opening", "Development", "Conflict", "Climax", "Resolution"),
    6: ("Opening", "Development", "Conflict", "Rising Tension", "Climax", "Resolution"),
}

Roster = Sequence[Union[Character, str]]


@dataclass
class _Block:
    title: Optional[str] = None
    lines: List[str] = field(default_factory=list)


def _names(roster: Roster) -> List[str]:
    return [c if isinstance(c, str) else c.name for c in roster]


def scene_duration(content: str) -> float:
    seconds = textutil.word_count(content) / WORDS_PER_SECOND
    return round(max(MIN_SCENE_SECONDS, min(MAX_SCENE_SECONDS, seconds)), 1)


def total_duration(scenes: Sequence[Scene]) -> float:
    return round(sum(s.duration for s in scenes), 1)


def visual_prompt(content: str, characters: Sequence[str]) -> str:
    who = " and ".join(characters) if characters else "characters"
    actions = textutil.actions_of(content)
    doing = ", ".join(actions) if actions else textutil.DEFAULT_ACTION
    return f"{who} in {textutil.setting_of(content)}, {doing}. Cinematic lighting, detailed animation."


def _split_on_markers(text: str) -> List[_Block]:
    """Blocks split on boundary lines, or [] when the text has no boundary at all."""
    blocks = [_Block()]
    found_boundary = False
    for line in textutil.split_lines(text):
        current = blocks[-1]
        if textutil.is_heading(line):
            found_boundary = True
            blocks.append(_Block(title=textutil.heading_title(line) or None))
        elif textutil.is_slugline(line):
            found_boundary = True
            blocks.append(_Block(title=line, lines=[line]))
        elif textutil.is_scene_boundary(line, current.lines):
            found_boundary = True
            # Bare markers like "CUT TO:" carry no prose worth keeping.
            kept = [line] if any(ch.islower() for ch in line) else []
            blocks.append(_Block(lines=kept))
        else:
            current.lines.append(line)
    if not found_boundary:
        return []
    return [b for b in blocks if b.lines]


def _bucket_sentences(text: str) -> List[_Block]:
    sentences = textutil.split_sentences(text)
    if not sentences:
        return []
    count = min(max(MIN_BUCKETED_SCENES, len(sentences) // SENTENCES_PER_BUCKET), MAX_SCENES)
    units = sentences
    if len(sentences) < count:
        # Too few sentences to go around; fall back to word chunks.
        units = " ".join(sentences).split()
        count = min(count, len(units))
    size, extra = divmod(len(units), count)
    labels = POSITION_LABELS[count]
    blocks = []
    start = 0
    for i in range(count):
        end = start + size + (1 if i < extra else 0)
        blocks.append(_Block(title=f"{labels[i]} - Scene {i + 1}", lines=[" ".join(units[start:end])]))
        start = end
    return blocks


def build_scene(title: str, content: str, roster: Roster, order: int, scene_id: Optional[str] = None) -> Scene:
    present = [n for n in _names(roster) if textutil.mentions(content, n)]
    return Scene(
        id=scene_id or f"scene-{order}",
        title=title,
        content=content,
        characters=present,
        setting=textutil.setting_of(content),
        duration=scene_duration(content),
        visual_prompt=visual_prompt(content, present),
        order=order,
    )


def _combine(first: Scene, second: Scene) -> Scene:
    rest = second.visual_prompt
    return first.model_copy(update={
        "title": f"{first.title} & {second.title}",
        "content": f"{first.content}\n\n{second.content}",
        "characters": list(dict.fromkeys(first.characters + second.characters)),
        "duration": round(first.duration + second.duration, 1),
        "visual_prompt": f"{first.visual_prompt} Transitions to {rest[:1].lower()}{rest[1:]}",
    })


def reindex(scenes: Sequence[Scene]) -> List[Scene]:
    return [s.model_copy(update={"order": i, "id": f"scene-{i}"}) for i, s in enumerate(scenes)]


def merge_short_scenes(
    scenes: Sequence[Scene],
    threshold: float = MERGE_THRESHOLD_SECONDS,
    max_scenes: int = MAX_SCENES,
) -> List[Scene]:
    """Fold each short scene into its successor, pass by pass, while over ``max_scenes``."""
    merged = list(scenes)
    while len(merged) > max_scenes:
        out: List[Scene] = []
        i = 0
        changed = False
        while i < len(merged):
            current = merged[i]
            if current.duration < threshold and i < len(merged) - 1:
                out.append(_combine(current, merged[i + 1]))
                i += 2
                changed = True
            else:
                out.append(current)
                i += 1
        merged = out
        if not changed:
            break
    return reindex(merged)


def segment_scenes(text: str, roster: Roster = ()) -> List[Scene]:
    """Ordered scenes for ``text``; empty or blank text yields no scenes."""
    if not text or not text.strip():
        return []
    blocks = _split_on_markers(text)
    if not blocks:
        logger.info("No scene markers found, bucketing by sentence")
        blocks = _bucket_sentences(text)

    drafts = []
    for i, block in enumerate(blocks):
        content = "\n".join(block.lines)
        title = block.title or f"{textutil.theme_of(content)} - Scene {i + 1}"
        drafts.append(build_scene(title, content, roster, i))

    scenes = merge_short_scenes(drafts)
    if len(scenes) != len(drafts):
        logger.info(f"Merged {len(drafts)} scenes down to {len(scenes)}")
    return scenes


def new_scene(
    scenes: Sequence[Scene],
    title: str,
    content: str,
    roster: Roster = (),
    position: Optional[int] = None,
) -> List[Scene]:
    """Insert a user-written scene; ``order`` is renumbered, ids are kept."""
    position = len(scenes) if position is None else max(0, min(position, len(scenes)))
    scene = build_scene(title, content, roster, position, scene_id=f"scene-{uuid.uuid4().hex[:8]}")
    updated = list(scenes[:position]) + [scene] + list(scenes[position:])
    return [s.model_copy(update={"order": i}) for i, s in enumerate(updated)]


def update_scene(scenes: Sequence[Scene], scene_id: str, roster: Roster = (), **changes) -> List[Scene]:
    """Apply edits to one scene; new content re-derives the computed fields."""
    updated = []
    found = False
    for scene in scenes:
        if scene.id != scene_id:
            updated.append(scene)
            continue
        found = True
        if "content" in changes:
            derived = build_scene(scene.title, changes["content"], roster, scene.order, scene.id)
            derived_fields = derived.model_dump(include={"characters", "setting", "duration", "visual_prompt"})
            changes = {**derived_fields, **changes}
        changes.pop("order", None)
        changes.pop("id", None)
        updated.append(Scene.model_validate({**scene.model_dump(), **changes}))
    if not found:
        raise KeyError(f"Unknown scene {scene_id}")
    return updated


def remove_scene(scenes: Sequence[Scene], scene_id: str) -> List[Scene]:
    remaining = [s for s in scenes if s.id != scene_id]
    if len(remaining) == len(scenes):
        raise KeyError(f"Unknown scene {scene_id}")
    return [s.model_copy(update={"order": i}) for i, s in enumerate(remaining)]
