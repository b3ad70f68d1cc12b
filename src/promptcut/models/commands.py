"""Pydantic models for edit commands.

``VideoCommand`` is a tagged union keyed on ``type``. Wire payloads use
camelCase field names (``startTime``, ``transitionType``); Python code uses the
snake_case attribute names. A payload whose ``type`` is not one of the known
tags validates into ``UnknownCommand`` so the compiler can skip it.

Option values inside a command (presets, positions, formats) are plain
strings; the compiler falls back for values it does not recognise.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from pydantic.alias_generators import to_camel


class CommandModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Payload models
# ---------------------------------------------------------------------------


class TimeRange(CommandModel):
    start_time: float = Field(description="Segment start, seconds")
    end_time: float = Field(description="Segment end, seconds")


class CaptionStyle(CommandModel):
    font_family: str = "Arial"
    font_size: int = 24
    font_color: str = Field(default="#FFFFFF", description="#RRGGBB or #RRGGBBAA")
    background_color: str = Field(default="#000000CC", description="#RRGGBB or #RRGGBBAA")
    position: str = Field(default="bottom", description="bottom | top | center")
    outline: bool = True


class ColorAdjustments(CommandModel):
    """Each field is optional and lies in -1..1; absent fields are left untouched."""

    brightness: Optional[float] = None
    contrast: Optional[float] = None
    saturation: Optional[float] = None
    temperature: Optional[float] = Field(default=None, description="-1 (cool) to 1 (warm)")
    tint: Optional[float] = None
    exposure: Optional[float] = None


class AudioParams(CommandModel):
    volume: Optional[float] = Field(default=None, description="0 to 2, 1 is unchanged")
    music_url: Optional[str] = None
    music_volume: Optional[float] = Field(default=None, description="0 to 1")
    fade_duration: Optional[float] = Field(default=None, description="Seconds")
    noise_reduction: Optional[float] = Field(default=None, description="0 to 1")


# ---------------------------------------------------------------------------
# Command variants
# ---------------------------------------------------------------------------


class TrimCommand(CommandModel):
    type: Literal["trim"] = "trim"
    start_time: float
    end_time: float


class CutCommand(CommandModel):
    type: Literal["cut"] = "cut"
    segments: list[TimeRange] = Field(default_factory=list, description="Ranges to remove")


class RemoveSilenceCommand(CommandModel):
    type: Literal["remove_silence"] = "remove_silence"
    threshold: Optional[float] = Field(default=None, description="dB, negative")
    min_duration: float = Field(default=1.0, description="Shortest silence removed, seconds")
    padding: float = Field(default=0.2, description="Silence kept around speech, seconds")


class AddCaptionsCommand(CommandModel):
    type: Literal["add_captions"] = "add_captions"
    style: CaptionStyle = Field(default_factory=CaptionStyle)
    language: str = "en"


class ColorCorrectionCommand(CommandModel):
    type: Literal["color_correction"] = "color_correction"
    adjustments: ColorAdjustments = Field(default_factory=ColorAdjustments)
    preset: Optional[str] = Field(
        default=None, description="cinematic | vintage | vibrant | moody | warm | cool | noir"
    )


class AudioCommand(CommandModel):
    type: Literal["audio"] = "audio"
    action: str = Field(
        description="normalize | reduce_noise | add_music | adjust_volume | ducking | fade_in | fade_out"
    )
    params: AudioParams = Field(default_factory=AudioParams)


class TransitionCommand(CommandModel):
    type: Literal["transition"] = "transition"
    transition_type: str = Field(description="fade | dissolve | wipe | slide | zoom | blur")
    duration: float = 1.0
    position: str = Field(default="all", description="between_clips | start | end | all")


class EffectCommand(CommandModel):
    type: Literal["effect"] = "effect"
    effect_name: str
    intensity: float = 0.5
    params: dict[str, Any] = Field(default_factory=dict)


class ExportCommand(CommandModel):
    type: Literal["export"] = "export"
    format: str = Field(default="mp4", description="mp4 | mov | webm | gif")
    resolution: str = Field(default="original", description="4k | 1080p | 720p | 480p | original")
    aspect_ratio: str = Field(
        default="original", description="16:9 | 9:16 | 1:1 | 4:5 | 21:9 | original"
    )
    quality: str = Field(default="medium", description="high | medium | low")
    fps: float = 30


class ThumbnailCommand(CommandModel):
    type: Literal["thumbnail"] = "thumbnail"
    count: int = 1
    style: str = Field(default="auto", description="auto | text_overlay | collage")
    timestamps: Optional[list[float]] = None


class UnknownCommand(CommandModel):
    """Structurally valid command with an unrecognised ``type`` tag."""

    model_config = ConfigDict(extra="allow", frozen=True)

    type: str


COMMAND_TYPES: dict[str, type[CommandModel]] = {
    "trim": TrimCommand,
    "cut": CutCommand,
    "remove_silence": RemoveSilenceCommand,
    "add_captions": AddCaptionsCommand,
    "color_correction": ColorCorrectionCommand,
    "audio": AudioCommand,
    "transition": TransitionCommand,
    "effect": EffectCommand,
    "export": ExportCommand,
    "thumbnail": ThumbnailCommand,
}


def _command_tag(value: Any) -> str:
    if isinstance(value, dict):
        tag = value.get("type")
    else:
        tag = getattr(value, "type", None)
    return tag if tag in COMMAND_TYPES else "unknown"


VideoCommand = Annotated[
    Union[
        Annotated[TrimCommand, Tag("trim")],
        Annotated[CutCommand, Tag("cut")],
        Annotated[RemoveSilenceCommand, Tag("remove_silence")],
        Annotated[AddCaptionsCommand, Tag("add_captions")],
        Annotated[ColorCorrectionCommand, Tag("color_correction")],
        Annotated[AudioCommand, Tag("audio")],
        Annotated[TransitionCommand, Tag("transition")],
        Annotated[EffectCommand, Tag("effect")],
        Annotated[ExportCommand, Tag("export")],
        Annotated[ThumbnailCommand, Tag("thumbnail")],
        Annotated[UnknownCommand, Tag("unknown")],
    ],
    Discriminator(_command_tag),
]
