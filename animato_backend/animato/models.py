import uuid
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

ArtifactKind = Literal["photo", "audio", "video"]
CostTier = Literal["free", "freemium", "paid"]
JobStatus = Literal["pending", "processing", "completed", "failed"]
Role = Literal["protagonist", "antagonist", "supporting"]
SegmentType = Literal["narration", "dialogue"]

# Progress reported while a job is still running never reaches 100.
PROCESSING_PROGRESS_CAP = 95.0


def _new_id() -> str:
    return str(uuid.uuid4())


class Appearance(BaseModel):
    age: int = 25
    gender: str = "female"
    ethnicity: str = "caucasian"
    hair_color: str = "brown"
    eye_color: str = "brown"
    style: str = "casual"


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    confidence: float = Field(ge=0.0, le=1.0)
    mismatches: Tuple[str, ...] = ()


class CharacterPhoto(BaseModel):
    id: str = Field(default_factory=_new_id)
    url: str
    provider: str
    style: str = "realistic"
    prompt: str = ""
    validation: Optional[ValidationResult] = None
    is_accepted: bool = False
    needs_regeneration: bool = False
    is_selected: bool = False


class Character(BaseModel):
    id: str
    name: str
    role: Role = "supporting"
    description: str = ""
    personality: List[str] = Field(default_factory=list)
    appearance: Appearance = Field(default_factory=Appearance)
    dialogue_lines: List[str] = Field(default_factory=list)
    photos: List[CharacterPhoto] = Field(default_factory=list)

    @model_validator(mode="after")
    def _single_selected_photo(self):
        selected = [p for p in self.photos if p.is_selected]
        if len(selected) > 1:
            raise ValueError(f"character {self.name!r} has {len(selected)} selected photos")
        return self

    @property
    def selected_photo(self) -> Optional[CharacterPhoto]:
        return next((p for p in self.photos if p.is_selected), None)


class Scene(BaseModel):
    id: str
    title: str
    content: str
    characters: List[str] = Field(default_factory=list)
    setting: str = "indoor scene"
    duration: float
    visual_prompt: str = ""
    order: int


class DialogueLine(BaseModel):
    text: str
    type: SegmentType = "narration"
    character: Optional[str] = None

    @model_validator(mode="after")
    def _dialogue_needs_character(self):
        if self.type == "dialogue" and not self.character:
            raise ValueError("dialogue lines must name a character")
        return self


class ProviderAttempt(BaseModel):
    provider: str
    outcome: Literal["accepted", "rejected", "failed", "timeout"]
    confidence: Optional[float] = None
    detail: Optional[str] = None
    job: Optional["GenerationJob"] = None


class GenerationJob(BaseModel):
    """Status record for one artifact request, or for one provider-side async job.

    Progress only moves forward and stays below 100 until the job completes.
    """

    id: str = Field(default_factory=_new_id)
    kind: ArtifactKind
    provider: Optional[str] = None
    external_id: Optional[str] = None
    status: JobStatus = "pending"
    progress: float = 0.0
    attempts: List[ProviderAttempt] = Field(default_factory=list)
    result_urls: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")

    def start(self) -> None:
        if self.is_terminal:
            raise RuntimeError(f"job {self.id} already {self.status}")
        self.status = "processing"

    def advance(self, progress: float) -> None:
        if self.is_terminal:
            return
        self.progress = max(self.progress, min(float(progress), PROCESSING_PROGRESS_CAP))

    def record_attempt(self, attempt: ProviderAttempt) -> None:
        self.attempts.append(attempt)

    def complete(self, urls: List[str]) -> None:
        if self.is_terminal:
            raise RuntimeError(f"job {self.id} already {self.status}")
        self.status = "completed"
        self.progress = 100.0
        self.result_urls = list(urls)

    def fail(self, error: str) -> None:
        if self.is_terminal:
            raise RuntimeError(f"job {self.id} already {self.status}")
        self.status = "failed"
        self.error = error


ProviderAttempt.model_rebuild()


class PhotoRequest(BaseModel):
    kind: Literal["photo"] = "photo"
    name: str
    character_id: Optional[str] = None
    description: str = ""
    appearance: Appearance = Field(default_factory=Appearance)
    style: str = "realistic"
    prompt: str = ""


class AudioRequest(BaseModel):
    kind: Literal["audio"] = "audio"
    text: str
    scene_id: Optional[str] = None
    character: Optional[str] = None
    segment_type: SegmentType = "narration"
    voice_id: str = ""
    voice_settings: Dict[str, Any] = Field(default_factory=dict)
    theme: str = "drama"


class VideoScenePayload(BaseModel):
    id: str
    title: str
    description: str
    duration: float
    visual_prompt: str
    narration: str = ""
    dialogue: List[DialogueLine] = Field(default_factory=list)


class VideoCharacterPayload(BaseModel):
    name: str
    description: str = ""
    photo_url: Optional[str] = None


class VideoRequest(BaseModel):
    kind: Literal["video"] = "video"
    title: str
    prompt: str
    scenes: List[VideoScenePayload] = Field(default_factory=list)
    characters: List[VideoCharacterPayload] = Field(default_factory=list)
    style: str = "cinematic"
    aspect_ratio: str = "16:9"
    quality: str = "hd"
    theme: str = "drama"
    duration: float = 0.0


GenerationRequest = Union[PhotoRequest, AudioRequest, VideoRequest]


class ProviderResult(BaseModel):
    """An immediate result from a provider.

    ``depicted`` holds the appearance attributes the provider claims the
    output shows; the validation gate scores against it.
    """

    provider: str
    urls: List[str]
    style: str = ""
    prompt: str = ""
    depicted: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.urls[0]


class AsyncJobHandle(BaseModel):
    job_id: str
    provider: str
    style: str = ""
    prompt: str = ""
    depicted: Dict[str, Any] = Field(default_factory=dict)
    estimated_time: Optional[float] = None


class JobStatusUpdate(BaseModel):
    status: JobStatus
    progress: Optional[float] = None
    result_urls: List[str] = Field(default_factory=list)
    error: Optional[str] = None


class ArtifactRecord(BaseModel):
    url: str
    provider: str
    style: str = ""
    validation: Optional[ValidationResult] = None
    is_accepted: Optional[bool] = None


class GeneratedArtifact(BaseModel):
    kind: ArtifactKind
    urls: List[str]
    provider: str
    style: str = ""
    prompt: str = ""
    validation: Optional[ValidationResult] = None
    is_accepted: bool
    needs_regeneration: bool
    is_fallback: bool = False
    job: GenerationJob
    rejected: List[ArtifactRecord] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def url(self) -> str:
        return self.urls[0] if self.urls else ""

    def to_record(self) -> ArtifactRecord:
        return ArtifactRecord(
            url=self.url,
            provider=self.provider,
            style=self.style,
            validation=self.validation,
            is_accepted=self.is_accepted,
        )


class SceneMedia(BaseModel):
    scene_id: str
    order: int
    segments: List[DialogueLine] = Field(default_factory=list)
    audio: List[ArtifactRecord] = Field(default_factory=list)


class StoryRequest(BaseModel):
    text: str
    title: str = "Untitled Story"
    theme: str = "drama"
    generate_photos: bool = False
    generate_audio: bool = False
    generate_video: bool = False
    video_style: str = "cinematic"
    aspect_ratio: str = "16:9"


class StoryPackage(BaseModel):
    characters: List[Character] = Field(default_factory=list)
    scenes: List[Scene] = Field(default_factory=list)
    media: List[SceneMedia] = Field(default_factory=list)
    video: Optional[ArtifactRecord] = None
    total_duration: float = 0.0


class PipelineState(BaseModel):
    job_id: str
    request: StoryRequest
    characters: List[Character] = Field(default_factory=list)
    scenes: List[Scene] = Field(default_factory=list)
    media: List[SceneMedia] = Field(default_factory=list)
    video: Optional[ArtifactRecord] = None


class DecomposeRequest(BaseModel):
    text: str
    overrides: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class CharacterPhotoRequest(BaseModel):
    character: Character
    style: str = "realistic"
    exclude_providers: List[str] = Field(default_factory=list)
