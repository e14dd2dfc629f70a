"""
Generation orchestrator.

Each request runs through its provider cascade in priority order until one
provider returns an acceptable artifact. Asynchronous provider jobs are
polled on a fixed interval with a hard attempt ceiling. When the cascade is
exhausted the offline generator for the artifact kind produces the result,
which is returned unaccepted unless it passes validation itself.
"""
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence

from . import settings
from .assembly import build_narration_requests, build_photo_request, build_video_request
from .characters import add_photos
from .models import (
    ArtifactRecord,
    AsyncJobHandle,
    Character,
    CharacterPhoto,
    GeneratedArtifact,
    GenerationJob,
    GenerationRequest,
    PhotoRequest,
    ProviderAttempt,
    ProviderResult,
    Scene,
    SceneMedia,
    ValidationResult,
)
from .providers import ProviderAdapter, ProviderError, ProviderTimeoutError, default_fallbacks, default_providers
from .text import split_dialogue
from .validation import ValidationGate

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, GeneratedArtifact], Optional[Awaitable[None]]]

# Poll progress runs from this floor toward the processing cap.
POLL_PROGRESS_FLOOR = 25.0
POLL_PROGRESS_SPAN = 70.0


class GenerationOrchestrator:
    def __init__(
        self,
        providers: Optional[Dict[str, List[ProviderAdapter]]] = None,
        fallbacks: Optional[Dict[str, ProviderAdapter]] = None,
        gate: Optional[ValidationGate] = None,
        poll_interval: Optional[float] = None,
        max_poll_attempts: Optional[int] = None,
        item_delay: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.providers = default_providers() if providers is None else providers
        self.fallbacks = default_fallbacks() if fallbacks is None else fallbacks
        self.gate = gate or ValidationGate()
        self.poll_interval = settings.POLL_INTERVAL_S if poll_interval is None else poll_interval
        self.max_poll_attempts = settings.POLL_MAX_ATTEMPTS if max_poll_attempts is None else max_poll_attempts
        self.item_delay = settings.BULK_ITEM_DELAY_S if item_delay is None else item_delay
        self._sleep = sleep

    def cascade(self, kind: str, exclude: Iterable[str] = ()) -> List[ProviderAdapter]:
        excluded = set(exclude)
        ready = []
        for provider in sorted(self.providers.get(kind, []), key=lambda p: p.priority):
            if provider.name in excluded:
                logger.info(f"Skipping {provider.name}: excluded for this request")
            elif not provider.is_configured():
                logger.info(f"Skipping {provider.name}: not configured")
            else:
                ready.append(provider)
        return ready

    def _validate(self, request: GenerationRequest, result: ProviderResult) -> Optional[ValidationResult]:
        if isinstance(request, PhotoRequest):
            return self.gate.validate(result, request.appearance)
        return None

    async def _poll_job(
        self,
        provider: ProviderAdapter,
        handle: AsyncJobHandle,
        remote_job: GenerationJob,
        job: GenerationJob,
    ) -> ProviderResult:
        remote_job.start()
        try:
            for attempt in range(1, self.max_poll_attempts + 1):
                await self._sleep(self.poll_interval)
                update = await provider.poll_status(handle.job_id)
                if update.status == "completed":
                    if not update.result_urls:
                        raise ProviderError(provider.name, f"job {handle.job_id} completed without output")
                    remote_job.complete(update.result_urls)
                    return ProviderResult(
                        provider=provider.name,
                        urls=update.result_urls,
                        style=handle.style,
                        prompt=handle.prompt,
                        depicted=handle.depicted,
                        metadata={"job_id": handle.job_id, "polls": attempt},
                    )
                if update.status == "failed":
                    raise ProviderError(provider.name, f"job {handle.job_id} failed: {update.error}")
                progress = update.progress
                if progress is None:
                    progress = POLL_PROGRESS_FLOOR + attempt / self.max_poll_attempts * POLL_PROGRESS_SPAN
                remote_job.advance(progress)
                job.advance(progress)
                logger.info(f"{provider.name} job {handle.job_id}: {update.status} ({attempt}/{self.max_poll_attempts}, {remote_job.progress:.0f}%)")
            raise ProviderTimeoutError(provider.name, f"job {handle.job_id} timed out after {self.max_poll_attempts} polls")
        except Exception as e:
            if not remote_job.is_terminal:
                remote_job.fail(str(e))
            raise

    async def generate(self, request: GenerationRequest, exclude: Iterable[str] = ()) -> GeneratedArtifact:
        """Run one request through its cascade. Never raises for provider failures."""
        job = GenerationJob(kind=request.kind)
        job.start()
        rejected: List[ArtifactRecord] = []

        for provider in self.cascade(request.kind, exclude):
            logger.info(f"Trying {provider.name} for {request.kind} job {job.id}")
            remote_job = None
            try:
                outcome = await provider.invoke(request)
                if isinstance(outcome, AsyncJobHandle):
                    remote_job = GenerationJob(kind=request.kind, provider=provider.name, external_id=outcome.job_id)
                    result = await self._poll_job(provider, outcome, remote_job, job)
                else:
                    result = outcome
                if not result.urls:
                    raise ProviderError(provider.name, "no result URL")
                validation = self._validate(request, result)
            except ProviderTimeoutError as e:
                logger.warning(f"Provider {provider.name} timed out: {e}")
                job.record_attempt(ProviderAttempt(provider=provider.name, outcome="timeout", detail=str(e), job=remote_job))
                continue
            except Exception as e:
                logger.error(f"Provider {provider.name} failed: {e}")
                job.record_attempt(ProviderAttempt(provider=provider.name, outcome="failed", detail=str(e), job=remote_job))
                continue

            confidence = validation.confidence if validation else None
            if validation is None or validation.is_valid:
                job.record_attempt(ProviderAttempt(provider=provider.name, outcome="accepted", confidence=confidence, job=remote_job))
                job.complete(result.urls)
                logger.info(f"Accepted {request.kind} from {provider.name} for job {job.id}")
                return self._artifact(request, result, validation, job, rejected, accepted=True)

            job.record_attempt(ProviderAttempt(
                provider=provider.name,
                outcome="rejected",
                confidence=confidence,
                detail="; ".join(validation.mismatches) or None,
                job=remote_job,
            ))
            rejected.append(ArtifactRecord(url=result.url, provider=result.provider, style=result.style, validation=validation, is_accepted=False))

        return await self._fallback(request, job, rejected)

    async def _fallback(self, request: GenerationRequest, job: GenerationJob, rejected: List[ArtifactRecord]) -> GeneratedArtifact:
        fallback = self.fallbacks[request.kind]
        logger.warning(f"All {request.kind} providers exhausted for job {job.id}; using {fallback.name}")
        try:
            result = await fallback.invoke(request)
            validation = self._validate(request, result)
        except Exception as e:
            logger.error(f"Offline fallback {fallback.name} failed: {e}")
            job.record_attempt(ProviderAttempt(provider=fallback.name, outcome="failed", detail=str(e)))
            job.fail(str(e))
            return GeneratedArtifact(
                kind=request.kind, urls=[], provider=fallback.name, is_accepted=False,
                needs_regeneration=True, is_fallback=True, job=job, rejected=rejected,
            )
        # Only a validated photo can be accepted from the offline path.
        accepted = validation is not None and validation.is_valid
        job.record_attempt(ProviderAttempt(
            provider=fallback.name,
            outcome="accepted" if accepted else "rejected",
            confidence=validation.confidence if validation else None,
        ))
        job.complete(result.urls)
        return self._artifact(request, result, validation, job, rejected, accepted=accepted, is_fallback=True)

    def _artifact(self, request, result, validation, job, rejected, accepted, is_fallback=False) -> GeneratedArtifact:
        return GeneratedArtifact(
            kind=request.kind,
            urls=result.urls,
            provider=result.provider,
            style=result.style,
            prompt=result.prompt,
            validation=validation,
            is_accepted=accepted,
            needs_regeneration=not accepted,
            is_fallback=is_fallback,
            job=job,
            rejected=rejected,
            metadata=result.metadata,
        )

    async def retry(self, request: GenerationRequest, exclude: Iterable[str]) -> GeneratedArtifact:
        """Re-run the cascade with ``exclude`` providers disabled for this call only."""
        excluded = sorted(set(exclude))
        logger.info(f"Retrying {request.kind} without {excluded}")
        return await self.generate(request, exclude=excluded)

    async def generate_all(
        self,
        requests: Sequence[GenerationRequest],
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[GeneratedArtifact]:
        """Generate each request in turn, pausing between items for provider rate limits."""
        results = []
        total = len(requests)
        for i, request in enumerate(requests):
            logger.info(f"Generating {request.kind} {i + 1}/{total}")
            artifact = await self.generate(request)
            results.append(artifact)
            if on_progress is not None:
                maybe = on_progress(i + 1, total, artifact)
                if inspect.isawaitable(maybe):
                    await maybe
            # Don't wait after the last item
            if i < total - 1:
                await self._sleep(self.item_delay)
        return results

    async def generate_character_photos(
        self,
        characters: Sequence[Character],
        style: str = "realistic",
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Character]:
        requests = [build_photo_request(c, style) for c in characters]
        artifacts = await self.generate_all(requests, on_progress)
        return [add_photos(c, photos_from_artifact(a)) for c, a in zip(characters, artifacts)]

    async def generate_scene_narration(
        self,
        scenes: Sequence[Scene],
        characters: Sequence[Character],
        theme: str = "drama",
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[SceneMedia]:
        """Narrate every segment of every scene as one sequential bulk run.

        Each segment is a separate speech request, so ``on_progress`` counts
        segments across all scenes, not scenes.
        """
        per_scene =[build_narration_requests(scene, characters, theme) for scene in scenes]
        flat = [r for requests in per_scene for r in requests]
        artifacts = iter(await self.generate_all(flat, on_progress))
        media = []
        for scene, requests in zip(scenes, per_scene):
            audio = [next(artifacts).to_record() for _ in requests]
            media.append(SceneMedia(scene_id=scene.id, order=scene.order, segments=split_dialogue(scene.content), audio=audio))
        return media

    async def generate_video(
        self,
        title: str,
        scenes: Sequence[Scene],
        characters: Sequence[Character],
        style: str = "cinematic",
        aspect_ratio: str = "16:9",
        theme: str = "drama",
    ) -> GeneratedArtifact:
        request = build_video_request(title, scenes, characters, style=style, aspect_ratio=aspect_ratio, theme=theme)
        return await self.generate(request)


def photos_from_artifact(artifact: GeneratedArtifact) -> List[CharacterPhoto]:
    """Rejected candidates first, then the returned artifact."""
    photos = [
        CharacterPhoto(url=r.url, provider=r.provider, style=r.style, validation=r.validation, is_accepted=False, needs_regeneration=True)
        for r in artifact.rejected
    ]
    if artifact.urls:
        photos.append(CharacterPhoto(
            url=artifact.url,
            provider=artifact.provider,
            style=artifact.style,
            prompt=artifact.prompt,
            validation=artifact.validation,
            is_accepted=artifact.is_accepted,
            needs_regeneration=artifact.needs_regeneration,
        ))
    return photos
