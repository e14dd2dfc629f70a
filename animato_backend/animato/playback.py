"""
Playback of generated narration.

The controller owns at most one running utterance. Starting playback always
stops whatever was playing first, so two utterances never overlap.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from .assembly import estimate_audio_duration

logger = logging.getLogger(__name__)

DEFAULT_TICK_S = 0.1


@dataclass
class Utterance:
    text: str
    audio_url: Optional[str] = None
    duration: Optional[float] = None

    @property
    def seconds(self) -> float:
        return self.duration if self.duration is not None else estimate_audio_duration(self.text)


Speaker = Callable[[Utterance, "AudioPlaybackController"], Awaitable[None]]


class AudioPlaybackController:
    def __init__(self, speaker: Optional[Speaker] = None, tick: float = DEFAULT_TICK_S):
        self._speaker = speaker or self._timed_speaker
        self._tick = tick
        self._queue: List[Utterance] = []
        self._task: Optional[asyncio.Task] = None
        self._utterance_task: Optional[asyncio.Task] = None
        self._skipping = False
        self._resume = asyncio.Event()
        self._resume.set()
        self.current: Optional[Utterance] = None
        self.state = "idle"

    @property
    def is_playing(self) -> bool:
        return self.state == "playing"

    @property
    def remaining(self) -> int:
        return len(self._queue)

    async def wait_if_paused(self) -> None:
        await self._resume.wait()

    async def _timed_speaker(self, utterance: Utterance, controller: "AudioPlaybackController") -> None:
        left = utterance.seconds
        while left > 0:
            await controller.wait_if_paused()
            step = min(self._tick, left)
            await asyncio.sleep(step)
            left -= step

    async def _run(self) -> None:
        try:
            while self._queue:
                self.current = self._queue.pop(0)
                self.state = "playing" if self._resume.is_set() else "paused"
                logger.info(f"Playing utterance ({len(self.current.text)} chars, {self.remaining} queued)")
                self._utterance_task = asyncio.create_task(self._speaker(self.current, self))
                try:
                    await self._utterance_task
                except asyncio.CancelledError:
                    if not self._skipping:
                        raise
                    self._skipping = False
                except Exception as e:
                    logger.error(f"Playback failed, moving to next utterance: {e}")
        finally:
            self._utterance_task = None
            self.current = None
            self.state = "idle"

    async def play(self, items: Union[str, Utterance, Sequence[Union[str, Utterance]]]) -> None:
        """Stop any current playback, then start playing ``items`` in order."""
        await self.stop()
        if isinstance(items, (str, Utterance)):
            items = [items]
        self._queue = [i if isinstance(i, Utterance) else Utterance(text=i) for i in items]
        if not self._queue:
            return
        self._task = asyncio.create_task(self._run())
        # Let the first utterance start before returning.
        await asyncio.sleep(0)

    def pause(self) -> None:
        if self.state == "playing":
            self._resume.clear()
            self.state = "paused"

    def resume(self) -> None:
        if self.state == "paused":
            self._resume.set()
            self.state = "playing"

    async def stop(self) -> None:
        task, self._task = self._task, None
        self._queue = []
        self._resume.set()
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.current = None
        self.state = "idle"

    async def skip_next(self) -> None:
        """Abandon the current utterance and move on to the next queued one."""
        if self._utterance_task is not None and not self._utterance_task.done():
            self._skipping = True
            self._resume.set()
            self._utterance_task.cancel()
            await asyncio.sleep(0)

    async def wait(self) -> None:
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
