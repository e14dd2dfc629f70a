"""
Line-level classifiers for story text.

Each rule is a small pure function so the character extractor, the scene
segmenter and narration assembly share the same notion of what a dialogue
cue, a heading or a scene break looks like.
"""
import re
from typing import List, Optional, Sequence, Tuple

from .models import DialogueLine

# Any letter, accented ones included; case is checked after matching.
_LETTER = r"[^\W\d_]"
_CUE_NAME = rf"({_LETTER}(?:{_LETTER}|[\s.'\-])*{_LETTER})"

# "**ARIA**" at the start of a line, with or without a following colon.
_CUE_NAME_RE = re.compile(r"^\s*\*\*\s*" + _CUE_NAME + r"\s*:?\s*\*\*")
# "**ARIA**: text", "**ARIA:** text" or a bare "**ARIA**" line.
_CUE_RE = re.compile(r"^\s*\*\*\s*" + _CUE_NAME + r"\s*(:?)\s*\*\*\s*(:?)\s*(.*)$")
# '"text" - Name'
_ATTRIBUTED_QUOTE_RE = re.compile(r'^\s*["“](.+?)["”]\s*[-–—]\s*(' + _LETTER + r'[\w .\'-]*?)\s*$')

_HEADING_RE = re.compile(r"^\s*#+\s*(.*?)\s*$")
_SLUGLINE_RE = re.compile(r"^\s*(?:INT\./EXT\.|EXT\./INT\.|I/E\.|EXT\.|INT\.)")
_TRANSITION_KEYWORD_RE = re.compile(r"\b(?:FADE IN|FADE OUT|CUT TO|MEANWHILE|LATER|SUDDENLY)\b")

TRANSITION_PHRASES = (
    "the next day", "hours later", "moments later", "back at",
    "in the distance", "across town", "upstairs", "outside",
    "at the same time", "while", "chapter",
)
_TRANSITION_PHRASE_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(p) for p in TRANSITION_PHRASES) + r")\b", re.IGNORECASE
)

# A block must hold more than this many lines before a transition phrase splits it.
TRANSITION_PHRASE_MIN_LINES = 3

# Ordered: the first bucket with a hit names the theme.
THEME_BUCKETS = (
    ("Action Sequence", ("action", "fight", "chase", "battle", "attack")),
    ("Character Dialogue", ("dialogue", "conversation", "talk", "discuss")),
    ("Discovery", ("discover", "reveal", "find", "found", "uncover")),
    ("Emotional Moment", ("emotional", "feel", "heart", "tears")),
    ("Mystery", ("mysterious", "strange", "unknown", "shadow")),
)
DEFAULT_THEME = "Story Development"

SETTINGS = (
    "forest", "castle", "city", "home", "office", "school", "park", "beach",
    "mountain", "space station", "laboratory", "restaurant", "street", "room",
)
DEFAULT_SETTING = "indoor scene"

ACTIONS = (
    "walking", "talking", "fighting", "running", "sitting", "standing",
    "looking", "searching", "discovering", "meeting", "arguing", "laughing",
)
DEFAULT_ACTION = "interacting"

_SETTING_RES = [(s, re.compile(r"\b" + re.escape(s) + r"(?:s|es)?\b", re.IGNORECASE)) for s in SETTINGS]
_ACTION_RES = [(a, re.compile(r"\b" + re.escape(a) + r"\b", re.IGNORECASE)) for a in ACTIONS]
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+|(?<=[.!?][\"'”])\s+")


def split_lines(text: str) -> List[str]:
    return [line.strip() for line in (text or "").splitlines() if line.strip()]


def split_paragraphs(text: str) -> List[str]:
    return [p.strip() for p in re.split(r"\n\s*\n", text or "") if p.strip()]


def split_sentences(text: str) -> List[str]:
    flat = " ".join(split_lines(text))
    return [s.strip() for s in _SENTENCE_SPLIT_RE.split(flat) if s.strip()]


def word_count(text: str) -> int:
    return len((text or "").split())


def cue_name(line: str) -> Optional[str]:
    """Name from a leading emphasized all-caps token, whatever follows it."""
    m = _CUE_NAME_RE.match(line)
    if not m or not m.group(1).isupper():
        return None
    return " ".join(m.group(1).split())


def parse_dialogue_cue(line: str) -> Optional[Tuple[str, str]]:
    """Return ``(name, text)`` for ``**NAME**: text`` or a bare ``**NAME**`` line.

    A bare cue returns an empty text; the spoken line is on the next line.
    """
    m = _CUE_RE.match(line)
    if not m or not m.group(1).isupper():
        return None
    name, colon_inside, colon_after, rest = m.groups()
    name = " ".join(name.split())
    rest = rest.strip()
    if colon_inside or colon_after or not rest:
        return name, rest
    return None


def is_dialogue_cue(line: str) -> bool:
    return parse_dialogue_cue(line) is not None


def parse_attributed_quote(line: str) -> Optional[Tuple[str, str]]:
    m = _ATTRIBUTED_QUOTE_RE.match(line)
    if not m or not m.group(2)[0].isupper():
        return None
    return m.group(2).strip(), m.group(1).strip()


def is_heading(line: str) -> bool:
    return line.lstrip().startswith("#")


def heading_title(line: str) -> str:
    m = _HEADING_RE.match(line)
    return m.group(1).replace("**", "").strip() if m else ""


def is_slugline(line: str) -> bool:
    return bool(_SLUGLINE_RE.match(line))


def is_transition_keyword(line: str) -> bool:
    if is_dialogue_cue(line):
        return False
    return bool(_TRANSITION_KEYWORD_RE.search(line))


def is_transition_phrase(line: str) -> bool:
    return bool(_TRANSITION_PHRASE_RE.search(line))


def is_scene_boundary(line: str, current_lines: Sequence[str] = ()) -> bool:
    if is_heading(line) or is_slugline(line) or is_transition_keyword(line):
        return True
    return is_transition_phrase(line) and len(current_lines) > TRANSITION_PHRASE_MIN_LINES


def theme_of(text: str) -> str:
    lowered = (text or "").lower()
    for theme, keywords in THEME_BUCKETS:
        if any(k in lowered for k in keywords):
            return theme
    return DEFAULT_THEME


def setting_of(text: str) -> str:
    for setting, pattern in _SETTING_RES:
        if pattern.search(text or ""):
            return setting
    return DEFAULT_SETTING


def actions_of(text: str) -> List[str]:
    return [action for action, pattern in _ACTION_RES if pattern.search(text or "")]


def mentions(text: str, name: str) -> bool:
    """Case-insensitive whole-word match of ``name`` in ``text``."""
    if not name:
        return False
    pattern = r"(?<!\w)" + re.escape(name.lower()) + r"(?!\w)"
    return re.search(pattern, (text or "").lower()) is not None


def split_dialogue(content: str) -> List[DialogueLine]:
    """Split scene content into ordered narration and dialogue segments.

    Consecutive non-cue lines accumulate into one narration segment.
    """
    segments: List[DialogueLine] = []
    narration: List[str] = []
    speaker: Optional[str] = None

    def flush_narration():
        if narration:
            segments.append(DialogueLine(text=" ".join(narration), type="narration"))
            narration.clear()

    for line in split_lines(content):
        cue = parse_dialogue_cue(line)
        if cue:
            name, spoken = cue
            flush_narration()
            if spoken:
                segments.append(DialogueLine(text=spoken, type="dialogue", character=name))
                speaker = None
            else:
                speaker = name
            continue
        if speaker:
            segments.append(DialogueLine(text=line, type="dialogue", character=speaker))
            speaker = None
            continue
        quote = parse_attributed_quote(line)
        if quote:
            flush_narration()
            name, spoken = quote
            segments.append(DialogueLine(text=spoken, type="dialogue", character=name))
            continue
        if is_heading(line):
            continue
        narration.append(line)

    flush_narration()
    return segments
