"""
Character extraction from raw story text.

Names come from two rules: emphasized all-caps dialogue cues and capitalized
words that sit next to a speech verb or an action construction. Everything
synthesized for a character (traits, appearance, description) is seeded from
the name, so the same text always yields the same roster.
"""
import hashlib
import logging
import random
import re
import uuid
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from . import text as textutil
from .models import Appearance, Character, CharacterPhoto

logger = logging.getLogger(__name__)

MAX_CHARACTERS = 8
MIN_CHARACTERS = 2
MAX_DIALOGUE_SAMPLES = 3
TRAIT_COUNT = 4
PLACEHOLDER_NAMES = ("Protagonist", "Supporting Character")

PERSONALITY_TRAITS = (
    "brave", "intelligent", "compassionate", "determined", "loyal", "creative",
    "ambitious", "mysterious", "charismatic", "resilient", "wise", "adventurous",
    "cautious", "optimistic", "analytical", "empathetic", "independent", "curious",
)

AGES = (25, 30, 35, 40, 28, 32)
GENDERS = ("male", "female")
ETHNICITIES = ("caucasian", "african", "asian", "hispanic", "middle-eastern", "mixed")
HAIR_COLORS = ("brown", "black", "blonde", "red", "gray", "auburn")
EYE_COLORS = ("brown", "blue", "green", "hazel", "gray", "amber")
STYLES = ("casual", "professional", "artistic", "athletic", "elegant", "bohemian")

DESCRIPTION_TEMPLATES = (
    "{name} is a complex character whose journey drives much of the story's emotional core.",
    "{name} brings a unique perspective to the narrative through {pronoun} actions and decisions.",
    "{name} is a catalyst for important plot developments and for the growth of those around {object}.",
    "{name} carries key themes of the story through personal struggles and triumphs.",
)

_SPEECH_VERB_RE = re.compile(r"\b(?:said|replied|asked|whispered|shouted|thought)\b", re.IGNORECASE)
_WORD_RE = re.compile(r"\b[^\W\d_]+\b")
_ACTION_FOLLOWER_RE = re.compile(r"^(?:\s(?:was|had|could|would)\b|['’]s\b)")

STOPWORDS = frozenset("""
the and but for with from then when where why how what who which while after before
this that these those there here his her hers him she they them their our your you
we its it my mine yes no not oh ah hey hi hello goodbye bye well okay please thanks
sorry maybe still just even every each all some any none nothing everything someone
something nobody everyone once now today tonight tomorrow yesterday soon finally
meanwhile later suddenly instead perhaps also again sir madam lady lord
said replied asked whispered shouted thought
chapter scene act part book story tale end beginning prologue epilogue
morning evening night day time place world life death love hope fear joy pain
voice eyes hand face heart mind soul body room house door window
monday tuesday wednesday thursday friday saturday sunday
january february march april june july august september october november december
""".split())

# A cue led by one of these is a section marker, not a speaker.
STRUCTURAL_WORDS = frozenset("chapter scene act part book prologue epilogue".split())

_HAIR_RE = re.compile(r"\b(brown|black|blonde|blond|red|gray|grey|auburn|silver|white)(?:\s+|-)hair", re.IGNORECASE)
_EYE_RE = re.compile(r"\b(brown|blue|green|hazel|gray|grey|amber)(?:\s+|-)eye", re.IGNORECASE)
_AGE_RE = re.compile(r"\b(\d{1,3})[- ]years?[- ]old\b", re.IGNORECASE)
_MALE_RE = re.compile(r"\b(?:he|him|his|himself|man|boy|king|prince|father|brother|son|husband)\b", re.IGNORECASE)
_FEMALE_RE = re.compile(r"\b(?:she|her|hers|herself|woman|girl|queen|princess|mother|sister|daughter|wife)\b", re.IGNORECASE)

_HAIR_ALIASES = {"blond": "blonde", "grey": "gray", "silver": "gray", "white": "gray"}
_EYE_ALIASES = {"grey": "gray"}


def _is_stopword(token: str) -> bool:
    return token.lower() in STOPWORDS


def _trim_stopwords(candidate: str) -> str:
    tokens = candidate.split()
    while tokens and _is_stopword(tokens[0]):
        tokens.pop(0)
    while tokens and _is_stopword(tokens[-1]):
        tokens.pop()
    return " ".join(tokens)


def _is_capitalized(word: str) -> bool:
    return len(word) > 1 and word[0].isupper() and word[1:].islower()


def _capitalized_runs(line: str) -> Iterator[Tuple[str, int]]:
    """Yield ``(name, end)`` for one or two adjacent capitalized words."""
    words = list(_WORD_RE.finditer(line))
    i = 0
    while i < len(words):
        first = words[i]
        i += 1
        if not _is_capitalized(first.group()):
            continue
        start, end = first.span()
        if i < len(words):
            second = words[i]
            gap = line[end:second.start()]
            if len(gap) == 1 and gap.isspace() and _is_capitalized(second.group()):
                end = second.end()
                i += 1
        yield line[start:end], end


def _contextual_names(line: str) -> List[str]:
    speech_line = bool(_SPEECH_VERB_RE.search(line))
    found = []
    for candidate, end in _capitalized_runs(line):
        if not speech_line and not _ACTION_FOLLOWER_RE.match(line[end:]):
            continue
        name = _trim_stopwords(candidate)
        if len(name) > 2:
            found.append(name)
    return found


def find_character_names(text: str) -> List[str]:
    """Candidate names in order of first appearance, deduplicated case-insensitively."""
    names: List[str] = []
    seen = set()

    def add(name: str):
        key = name.lower()
        if key in seen or _is_stopword(name):
            return
        seen.add(key)
        names.append(name)

    for line in (text or "").splitlines():
        cue = textutil.cue_name(line)
        if cue and cue.split()[0].lower() not in STRUCTURAL_WORDS:
            add(cue)
        for name in _contextual_names(line):
            add(name)
    return names


def _sentences_about(text: str, name: str, others: Sequence[str]) -> List[str]:
    return [
        s for s in textutil.split_sentences(text)
        if textutil.mentions(s, name) and not any(textutil.mentions(s, o) for o in others)
    ]


def detect_attributes(text: str, name: str, others: Sequence[str] = ()) -> Dict[str, Any]:
    """Appearance attributes stated in sentences that mention only this character."""
    found: Dict[str, Any] = {}
    male = female = 0
    for sentence in _sentences_about(text, name, others):
        if "hair_color" not in found:
            m = _HAIR_RE.search(sentence)
            if m:
                color = m.group(1).lower()
                found["hair_color"] = _HAIR_ALIASES.get(color, color)
        if "eye_color" not in found:
            m = _EYE_RE.search(sentence)
            if m:
                color = m.group(1).lower()
                found["eye_color"] = _EYE_ALIASES.get(color, color)
        if "age" not in found:
            m = _AGE_RE.search(sentence)
            if m:
                found["age"] = int(m.group(1))
        male += len(_MALE_RE.findall(sentence))
        female += len(_FEMALE_RE.findall(sentence))
    if male and not female:
        found["gender"] = "male"
    elif female and not male:
        found["gender"] = "female"
    return found


def stable_seed(name: str, explicit: Optional[Mapping[str, Any]] = None) -> int:
    """64-bit seed: first 8 bytes of sha256 over the lower-cased name and the
    explicit attributes as sorted ``key=value`` pairs joined by ``|``."""
    key = name.strip().lower()
    if explicit:
        key += "|" + "|".join(f"{k}={explicit[k]}" for k in sorted(explicit))
    return int.from_bytes(hashlib.sha256(key.encode("utf-8")).digest()[:8], "big")


def synthesize_appearance(rng: random.Random, explicit: Optional[Mapping[str, Any]] = None) -> Appearance:
    sampled = {
        "age": rng.choice(AGES),
        "gender": rng.choice(GENDERS),
        "ethnicity": rng.choice(ETHNICITIES),
        "hair_color": rng.choice(HAIR_COLORS),
        "eye_color": rng.choice(EYE_COLORS),
        "style": rng.choice(STYLES),
    }
    for key, value in (explicit or {}).items():
        if key in sampled and value not in (None, ""):
            sampled[key] = value
    return Appearance(**sampled)


def _pronouns(gender: str):
    if gender == "male":
        return "his", "him"
    if gender == "female":
        return "her", "her"
    return "their", "them"


def _describe(rng: random.Random, name: str, appearance: Appearance) -> str:
    pronoun, obj = _pronouns(appearance.gender)
    return rng.choice(DESCRIPTION_TEMPLATES).format(name=name, pronoun=pronoun, object=obj)


def sample_dialogue(lines: Sequence[str], name: str, limit: int = MAX_DIALOGUE_SAMPLES) -> List[str]:
    spoken: List[str] = []
    mentioned: List[str] = []
    pending = False
    for line in lines:
        cue = textutil.parse_dialogue_cue(line)
        if cue and cue[0].lower() == name.lower():
            if cue[1]:
                spoken.append(cue[1])
            else:
                pending = True
            continue
        if pending:
            spoken.append(line)
            pending = False
            continue
        if textutil.mentions(line, name):
            mentioned.append(line)
    samples = []
    for line in spoken + mentioned:
        if line not in samples:
            samples.append(line)
    return samples[:limit]


def build_character(
    name: str,
    index: int,
    text: str = "",
    explicit: Optional[Mapping[str, Any]] = None,
) -> Character:
    rng = random.Random(stable_seed(name, explicit))
    personality = rng.sample(PERSONALITY_TRAITS, TRAIT_COUNT)
    appearance = synthesize_appearance(rng, explicit)
    return Character(
        id=f"char-{index}",
        name=name,
        role="protagonist" if index == 0 else "supporting",
        description=_describe(rng, name, appearance),
        personality=personality,
        appearance=appearance,
        dialogue_lines=sample_dialogue(textutil.split_lines(text), name),
    )


def _pad_with_placeholders(names: List[str]) -> List[str]:
    # A lone found name is pushed into the supporting slot behind "Protagonist".
    padded = list(names)
    lead = PLACEHOLDER_NAMES[0]
    if padded and padded[0].lower() != lead.lower():
        padded.insert(0, lead)
    for placeholder in PLACEHOLDER_NAMES:
        if len(padded) >= MIN_CHARACTERS:
            break
        if placeholder.lower() not in {n.lower() for n in padded}:
            padded.append(placeholder)
    return padded


def extract_characters(
    text: str,
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> List[Character]:
    """Build the character roster for ``text``.

    ``overrides`` maps a character name (any case) to appearance attributes
    that take precedence over both detected and sampled values. Never raises
    and never returns fewer than two characters.
    """
    overrides = {k.lower(): dict(v) for k, v in (overrides or {}).items()}
    names = find_character_names(text)
    if len(names) < MIN_CHARACTERS:
        logger.info(f"Found {len(names)} character(s), padding roster with placeholders")
        names = _pad_with_placeholders(names)
    names = names[:MAX_CHARACTERS]

    roster = []
    for index, name in enumerate(names):
        others = [n for n in names if n != name]
        explicit = detect_attributes(text, name, others)
        explicit.update(overrides.get(name.lower(), {}))
        roster.append(build_character(name, index, text, explicit))
    logger.info(f"Extracted {len(roster)} characters: {[c.name for c in roster]}")
    return roster


def new_character(
    name: str,
    role: str = "supporting",
    description: str = "",
    appearance: Optional[Mapping[str, Any]] = None,
    personality: Optional[List[str]] = None,
) -> Character:
    """A user-created character; unspecified fields are synthesized from the name."""
    explicit = dict(appearance or {})
    rng = random.Random(stable_seed(name, explicit))
    traits = rng.sample(PERSONALITY_TRAITS, TRAIT_COUNT)
    look = synthesize_appearance(rng, explicit)
    return Character(
        id=f"char-{uuid.uuid4().hex[:8]}",
        name=name,
        role=role,
        description=description or _describe(rng, name, look),
        personality=personality if personality is not None else traits,
        appearance=look,
    )


def update_character(character: Character, **changes) -> Character:
    data = character.model_dump()
    if "appearance" in changes and isinstance(changes["appearance"], Mapping):
        changes["appearance"] = {**data["appearance"], **changes["appearance"]}
    data.update(changes)
    return Character.model_validate(data)


def remove_character(characters: Sequence[Character], character_id: str) -> List[Character]:
    remaining = [c for c in characters if c.id != character_id]
    if len(remaining) == len(characters):
        raise KeyError(f"Unknown character {character_id}")
    return remaining


def add_photos(character: Character, photos: Iterable[CharacterPhoto]) -> Character:
    """Append candidate photos, keeping exactly one selected.

    A new photo takes the selection when nothing is selected yet, or when it
    is accepted and the current selection is not.
    """
    current = [p.model_copy() for p in character.photos]
    for photo in photos:
        selected = next((p for p in current if p.is_selected), None)
        take = selected is None or (photo.is_accepted and not selected.is_accepted)
        if take and selected is not None:
            selected.is_selected = False
        current.append(photo.model_copy(update={"is_selected": take}))
    return character.model_copy(update={"photos": current})


def select_photo(character: Character, photo_id: str) -> Character:
    if not any(p.id == photo_id for p in character.photos):
        raise KeyError(f"Unknown photo {photo_id} for character {character.name}")
    photos = [p.model_copy(update={"is_selected": p.id == photo_id}) for p in character.photos]
    return character.model_copy(update={"photos": photos})


def remove_photo(character: Character, photo_id: str) -> Character:
    removed = next((p for p in character.photos if p.id == photo_id), None)
    if removed is None:
        raise KeyError(f"Unknown photo {photo_id} for character {character.name}")
    photos = [p.model_copy() for p in character.photos if p.id != photo_id]
    if removed.is_selected and photos:
        fallback = next((p for p in photos if p.is_accepted), photos[0])
        fallback.is_selected = True
    return character.model_copy(update={"photos": photos})
