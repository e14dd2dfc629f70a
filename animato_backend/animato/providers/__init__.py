from typing import Dict, List

from .base import (
    HttpProvider,
    ProviderAdapter,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
)
from .elevenlabs import ElevenLabsProvider
from .huggingface import HuggingFacePortraitProvider, HuggingFaceVideoProvider
from .offline import CanvasVideoProvider, CuratedPortraitProvider, SilentNarrationProvider
from .openai_media import OpenAIPortraitProvider, OpenAISpeechProvider
from .replicate import ReplicatePortraitProvider, ReplicateVideoProvider
from .runway import RunwayVideoProvider


def default_providers(**overrides) -> Dict[str, List[ProviderAdapter]]:
    """
    Build the standard cascade per artifact kind, sorted by priority.
    Overrides: photo=[...], audio=[...], video=[...] for testing or custom stacks.
    """
    defaults = {
        "photo": [ReplicatePortraitProvider(), HuggingFacePortraitProvider(), OpenAIPortraitProvider()],
        "audio": [ElevenLabsProvider(), OpenAISpeechProvider()],
        "video": [RunwayVideoProvider(), ReplicateVideoProvider(), HuggingFaceVideoProvider()],
    }
    defaults.update(overrides)
    return {kind: sorted(adapters, key=lambda a: a.priority) for kind, adapters in defaults.items()}


def default_fallbacks(**overrides) -> Dict[str, ProviderAdapter]:
    defaults = {
        "photo": CuratedPortraitProvider(),
        "audio": SilentNarrationProvider(),
        "video": CanvasVideoProvider(),
    }
    defaults.update(overrides)
    return defaults


__all__ = [
    "CanvasVideoProvider",
    "CuratedPortraitProvider",
    "ElevenLabsProvider",
    "HttpProvider",
    "HuggingFacePortraitProvider",
    "HuggingFaceVideoProvider",
    "OpenAIPortraitProvider",
    "OpenAISpeechProvider",
    "ProviderAdapter",
    "ProviderError",
    "ProviderNotConfiguredError",
    "ProviderTimeoutError",
    "ReplicatePortraitProvider",
    "ReplicateVideoProvider",
    "RunwayVideoProvider",
    "SilentNarrationProvider",
    "default_fallbacks",
    "default_providers",
]
