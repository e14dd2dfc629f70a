import uuid
import inspect
import logging
from typing import Awaitable, Callable, Optional

from langgraph.graph import StateGraph, END

from .characters import extract_characters
from .models import PipelineState, StoryPackage, StoryRequest
from .orchestrator import GenerationOrchestrator
from .scenes import segment_scenes, total_duration

logger = logging.getLogger(__name__)

StageCallback = Callable[[str, int, int], Optional[Awaitable[None]]]


async def _notify(on_progress: Optional[StageCallback], stage: str, current: int, total: int):
    if on_progress is None:
        return
    maybe = on_progress(stage, current, total)
    if inspect.isawaitable(maybe):
        await maybe


def build_graph(orchestrator: GenerationOrchestrator, on_progress: Optional[StageCallback] = None):
    def _stage(stage: str):
        async def report(current, total, _artifact):
            await _notify(on_progress, stage, current, total)
        return report

    async def node_characters(state: PipelineState) -> dict:
        logger.info(f"Extracting characters for job {state.job_id}")
        characters = extract_characters(state.request.text)
        await _notify(on_progress, "characters", 1, 1)
        return {"characters": characters}

    async def node_scenes(state: PipelineState) -> dict:
        scenes = segment_scenes(state.request.text, state.characters)
        logger.info(f"Segmented job {state.job_id} into {len(scenes)} scenes")
        await _notify(on_progress, "scenes", 1, 1)
        return {"scenes": scenes}

    async def node_photos(state: PipelineState) -> dict:
        if not state.request.generate_photos:
            return {"characters": state.characters}
        characters = await orchestrator.generate_character_photos(state.characters, on_progress=_stage("photos"))
        return {"characters": characters}

    async def node_narration(state: PipelineState) -> dict:
        if not state.request.generate_audio:
            return {"media": state.media}
        media = await orchestrator.generate_scene_narration(
            state.scenes, state.characters, theme=state.request.theme, on_progress=_stage("narration")
        )
        return {"media": media}

    async def node_video(state: PipelineState) -> dict:
        if not state.request.generate_video or not state.scenes:
            return {"video": state.video}
        artifact = await orchestrator.generate_video(
            state.request.title,
            state.scenes,
            state.characters,
            style=state.request.video_style,
            aspect_ratio=state.request.aspect_ratio,
            theme=state.request.theme,
        )
        await _notify(on_progress, "video", 1, 1)
        return {"video": artifact.to_record() if artifact.urls else None}

    g = StateGraph(PipelineState)
    g.add_node("characters", node_characters)
    g.add_node("scenes", node_scenes)
    g.add_node("photos", node_photos)
    g.add_node("narration", node_narration)
    g.add_node("video", node_video)
    g.set_entry_point("characters")
    g.add_edge("characters", "scenes")
    g.add_edge("scenes", "photos")
    g.add_edge("photos", "narration")
    g.add_edge("narration", "video")
    g.add_edge("video", END)
    return g.compile()


async def run_pipeline(
    req: StoryRequest,
    orchestrator: Optional[GenerationOrchestrator] = None,
    on_progress: Optional[StageCallback] = None,
    job_id: Optional[str] = None,
) -> StoryPackage:
    state = PipelineState(job_id=job_id or str(uuid.uuid4()), request=req)
    graph = build_graph(orchestrator or GenerationOrchestrator(), on_progress)
    logger.info(f"Starting pipeline for job {state.job_id}")
    try:
        final_state = await graph.ainvoke(state)
    except Exception as e:
        logger.error(f"Pipeline failed for job {state.job_id}: {str(e)}")
        raise

    # Convert LangGraph's result back to our state object
    if not isinstance(final_state, PipelineState):
        final_state = PipelineState(
            job_id=final_state.get("job_id", state.job_id),
            request=final_state.get("request", req),
            characters=final_state.get("characters", []),
            scenes=final_state.get("scenes", []),
            media=final_state.get("media", []),
            video=final_state.get("video"),
        )
    logger.info(f"Pipeline completed for job {state.job_id}: {len(final_state.characters)} characters, {len(final_state.scenes)} scenes")
    return StoryPackage(
        characters=final_state.characters,
        scenes=final_state.scenes,
        media=final_state.media,
        video=final_state.video,
        total_duration=total_duration(final_state.scenes),
    )
