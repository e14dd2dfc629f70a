import uuid
import logging
from typing import Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

# Ensure .env is loaded before importing modules that read provider credentials
from .settings import configured_providers, ALLOWED_ORIGINS
from .characters import extract_characters, add_photos
from .assembly import build_photo_request
from .kv_storage import kv
from .models import CharacterPhotoRequest, DecomposeRequest, StoryRequest
from .orchestrator import GenerationOrchestrator, photos_from_artifact
from .pipeline import run_pipeline
from .scenes import segment_scenes, total_duration

logger = logging.getLogger(__name__)

app = FastAPI(title="Animato Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS or ["*"],
    allow_credentials=True,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["*"],
)

_orchestrator: Optional[GenerationOrchestrator] = None


def get_orchestrator() -> GenerationOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = GenerationOrchestrator()
    return _orchestrator


@app.get("/health")
def health():
    providers = configured_providers()
    logger.info(f"Health check: providers configured = {providers}")
    return {"ok": True, "providers": providers}


@app.post("/v1/stories:decompose")
def decompose_story(req: DecomposeRequest):
    characters = extract_characters(req.text, req.overrides)
    scenes = segment_scenes(req.text, characters)
    return {
        "characters": [c.model_dump(mode="json") for c in characters],
        "scenes": [s.model_dump(mode="json") for s in scenes],
        "total_duration": total_duration(scenes),
    }


async def create_job_record(job_id: str, request: StoryRequest) -> dict:
    """Create a new job record in KV storage"""
    job_data = {
        "job_id": job_id,
        "status": "queued",
        "error": None,
        "request": request.model_dump(mode="json"),
        "current_step": "queued",
        "items_completed": 0,
        "total_items": 0,
        "result": None,
    }
    await kv.set_job(job_id, job_data)
    return job_data


async def run_story_job(job_id: str, req: StoryRequest, orchestrator: GenerationOrchestrator):
    """Run the story pipeline and keep the job record current"""
    async def report(stage: str, current: int, total: int):
        await kv.update_job_status(job_id, "running", current_step=stage, items_completed=current, total_items=total)

    try:
        await kv.update_job_status(job_id, "running", current_step="characters")
        package = await run_pipeline(req, orchestrator, on_progress=report, job_id=job_id)
        await kv.update_job_status(job_id, "succeeded", current_step="completed", result=package.model_dump(mode="json"))
        logger.info(f"Story job {job_id} completed")
    except Exception as e:
        logger.error(f"Story job {job_id} failed: {e}")
        await kv.update_job_status(job_id, "failed", error=str(e))


@app.post("/v1/stories:start")
async def start_job(
    req: StoryRequest,
    background_tasks: BackgroundTasks,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    if not req.text or not req.text.strip():
        raise HTTPException(400, "text is required")
    logger.info(f"Starting story job: {req.title[:50]}")

    job_id = str(uuid.uuid4())
    await create_job_record(job_id, req)
    background_tasks.add_task(run_story_job, job_id, req, orchestrator)
    return {"job_id": job_id, "status": "queued"}


@app.get("/v1/jobs/{job_id}")
async def job_status(job_id: str):
    job_data = await kv.get_job(job_id)
    if not job_data:
        raise HTTPException(404, "job not found")
    return {
        "job_id": job_data["job_id"],
        "status": job_data["status"],
        "error": job_data.get("error"),
        "progress": {
            "current_step": job_data.get("current_step", "unknown"),
            "items_completed": job_data.get("items_completed", 0),
            "total_items": job_data.get("total_items", 0),
        },
        "result": job_data.get("result"),
    }


@app.post("/v1/characters:photo")
async def generate_character_photo(
    req: CharacterPhotoRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    request = build_photo_request(req.character, req.style)
    if req.exclude_providers:
        artifact = await orchestrator.retry(request, req.exclude_providers)
    else:
        artifact = await orchestrator.generate(request)
    character = add_photos(req.character, photos_from_artifact(artifact))
    return {
        "character": character.model_dump(mode="json"),
        "artifact": artifact.to_record().model_dump(mode="json"),
        "needs_regeneration": artifact.needs_regeneration,
        "attempts": [a.model_dump(mode="json", exclude={"job"}) for a in artifact.job.attempts],
    }
