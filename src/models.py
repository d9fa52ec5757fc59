"""Data model shared by the studio services and pages.

Models use snake_case field names with camelCase aliases so rows written by
earlier versions of the app (and JSON returned by Gemini) load unchanged.
Always dump with ``by_alias=True`` when persisting.
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

GenerationMode = Literal["normal", "selfie", "romantic", "date", "couple"]
GenerationStyle = Literal["ugc", "cinematic"]
ImageGenerationModel = Literal["nano-banana", "seedream"]
VideoGenerationModel = Literal["seedance-pro", "seedance-lite", "hailuo-2-standard", "hailuo-2-pro"]
VideoResolution = Literal["480p", "512p", "720p", "768p", "1080p"]
VideoDuration = Literal["3", "4", "5", "6", "7", "8", "9", "10", "11", "12"]

GENERATION_MODES: tuple[str, ...] = ("normal", "selfie", "romantic", "date", "couple")
GENERATION_STYLES: tuple[str, ...] = ("ugc", "cinematic")
VIDEO_MODELS: tuple[str, ...] = ("seedance-pro", "seedance-lite", "hailuo-2-standard", "hailuo-2-pro")
VIDEO_RESOLUTIONS: tuple[str, ...] = ("480p", "512p", "720p", "768p", "1080p")
VIDEO_DURATIONS: tuple[str, ...] = tuple(str(n) for n in range(3, 13))

TEXT_TO_IMAGE_ITEM_ID = "text-to-image-generations"


class _StudioModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class CharacterProfile(_StudioModel):
    name: str
    personality: str = ""
    backstory: str = ""
    living_place: str = Field("", alias="livingPlace")
    style: str = ""


class GeneratedMedia(_StudioModel):
    prompt: str
    url: str
    type: Literal["image", "video"] = "image"
    model: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    size: Optional[int] = None
    seed: Optional[int] = None
    scene: Optional[str] = None
    resolution: Optional[str] = None
    duration: Optional[str] = None
    is_favorite: bool = Field(False, alias="isFavorite")


class ImagePrompt(_StudioModel):
    scene: str
    prompt: str
    variations: list[str] = Field(default_factory=list)
    generated_image_url: Optional[str] = Field(None, alias="generatedImageUrl")
    generated_media: list[GeneratedMedia] = Field(default_factory=list, alias="generatedMedia")
    generation_error: Optional[str] = Field(None, alias="generationError")


class HistoryItem(_StudioModel):
    id: str
    timestamp: int
    image_id: str = Field(alias="imageId")
    companion_image_id: Optional[str] = Field(None, alias="companionImageId")
    character_profile: CharacterProfile = Field(alias="characterProfile")
    image_prompts: list[ImagePrompt] = Field(default_factory=list, alias="imagePrompts")
    generation_mode: GenerationMode = Field("normal", alias="generationMode")
    generation_style: GenerationStyle = Field("ugc", alias="generationStyle")

    @field_validator("generation_mode", mode="before")
    @classmethod
    def _default_mode(cls, value):
        return value or "normal"

    @field_validator("generation_style", mode="before")
    @classmethod
    def _default_style(cls, value):
        return value or "ugc"


class VideoGenerationParams(_StudioModel):
    prompt: str
    model: VideoGenerationModel = "seedance-pro"
    resolution: VideoResolution = "1080p"
    duration: VideoDuration = "5"


class UploadedVideo(_StudioModel):
    url: str
    path: str = ""
    name: str = ""
    duration: Optional[float] = None


class AudioChunk(_StudioModel):
    id: int
    text: str = ""
    audio_url: Optional[str] = Field(None, alias="audioUrl")
    duration: Optional[float] = None
    effective_duration: Optional[float] = Field(None, alias="effectiveDuration")
    start_time: Optional[float] = Field(None, alias="startTime")
    is_generating: bool = Field(False, alias="isGenerating")
    video: Optional[UploadedVideo] = None


TEXT_BLOCK_FIELDS: tuple[str, ...] = (
    "hook",
    "problem",
    "solution",
    "proof",
    "offer",
    "urgency",
    "cta",
    *(f"body_line{i}" for i in range(1, 10)),
)


class TextBlock(_StudioModel):
    id: str = ""
    hook: str = ""
    problem: str = ""
    solution: str = ""
    proof: str = ""
    offer: str = ""
    urgency: str = ""
    cta: str = ""
    body_line1: str = Field("", alias="bodyLine1")
    body_line2: str = Field("", alias="bodyLine2")
    body_line3: str = Field("", alias="bodyLine3")
    body_line4: str = Field("", alias="bodyLine4")
    body_line5: str = Field("", alias="bodyLine5")
    body_line6: str = Field("", alias="bodyLine6")
    body_line7: str = Field("", alias="bodyLine7")
    body_line8: str = Field("", alias="bodyLine8")
    body_line9: str = Field("", alias="bodyLine9")

    @field_validator(*TEXT_BLOCK_FIELDS, mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else str(value)
