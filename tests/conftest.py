"""
Pytest Configuration and Fixtures

Shared fakes for provider adapters and a zero-wait orchestrator.
"""

from typing import Dict, List, Optional

import pytest

from animato.assembly import depicted_attributes
from animato.characters import extract_characters
from animato.models import AsyncJobHandle, JobStatusUpdate, PhotoRequest, ProviderResult
from animato.orchestrator import GenerationOrchestrator
from animato.providers import ProviderAdapter, ProviderError, default_fallbacks


SAMPLE_STORY = """# The Gate
**ARIA**: We have to open it before nightfall.
**JOHN**: Then we had better start walking.
Aria looked at the forest and felt her heart race.

# The Chase
Suddenly the guards appeared and the fight began.
John was running toward the castle while Aria shouted for help.
"Keep going!" - Aria
"""


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers every requested delay."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


class FakeProvider(ProviderAdapter):
    """Configurable provider double.

    ``statuses`` turns the provider into an async-job provider: each poll
    pops the next update, repeating the last one once the list runs out.
    """

    def __init__(
        self,
        name: str,
        kind: str = "photo",
        priority: int = 1,
        configured: bool = True,
        error: Optional[Exception] = None,
        depicted: Optional[Dict] = None,
        statuses: Optional[List[JobStatusUpdate]] = None,
        urls: Optional[List[str]] = None,
    ):
        self.name = name
        self.kind = kind
        self.priority = priority
        self.configured = configured
        self.error = error
        self.depicted = depicted
        self.statuses = list(statuses) if statuses is not None else None
        self.urls = urls if urls is not None else [f"https://media.test/{name}/{kind}"]
        self.calls = []
        self.polls = 0

    def is_configured(self) -> bool:
        return self.configured

    def _depicted_for(self, request):
        if self.depicted is not None:
            return self.depicted
        if isinstance(request, PhotoRequest):
            return depicted_attributes(request.appearance)
        return {}

    async def invoke(self, request):
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        if self.statuses is not None:
            return AsyncJobHandle(job_id=f"{self.name}-job", provider=self.name, depicted=self._depicted_for(request))
        return ProviderResult(provider=self.name, urls=self.urls, style="fake", depicted=self._depicted_for(request))

    async def poll_status(self, job_id: str) -> JobStatusUpdate:
        self.polls += 1
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]


@pytest.fixture
def make_provider():
    return FakeProvider


@pytest.fixture
def make_failing():
    def _failing(name: str, kind: str = "photo", priority: int = 1) -> FakeProvider:
        return FakeProvider(name, kind=kind, priority=priority, error=ProviderError(name, "boom"))
    return _failing


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def make_orchestrator(sleep_recorder):
    def _make(photo=(), audio=(), video=(), max_poll_attempts=5, **kwargs):
        return GenerationOrchestrator(
            providers={"photo": list(photo), "audio": list(audio), "video": list(video)},
            fallbacks=kwargs.pop("fallbacks", default_fallbacks()),
            poll_interval=3,
            max_poll_attempts=max_poll_attempts,
            item_delay=1,
            sleep=sleep_recorder,
            **kwargs,
        )
    return _make


@pytest.fixture
def sample_story() -> str:
    return SAMPLE_STORY


@pytest.fixture
def sample_characters():
    return extract_characters(SAMPLE_STORY)


@pytest.fixture
def photo_request() -> PhotoRequest:
    return PhotoRequest(name="Aria", prompt="portrait of Aria")
