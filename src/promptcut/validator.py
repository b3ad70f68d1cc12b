"""Command validator — clamps command parameters into their physical ranges.

Out-of-range values are clamped, never rejected. Start/end ordering is not
enforced: an inverted or zero-length range passes through unchanged.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

from promptcut.models.commands import (
    AudioCommand,
    ColorCorrectionCommand,
    CutCommand,
    EffectCommand,
    TimeRange,
    TrimCommand,
    VideoCommand,
)

_COLOR_FIELDS = ("brightness", "contrast", "saturation", "temperature", "tint", "exposure")

# field -> (low, high)
_AUDIO_RANGES = {
    "volume": (0.0, 2.0),
    "music_volume": (0.0, 1.0),
    "noise_reduction": (0.0, 1.0),
}


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _clamp_end(end_time: float, video_duration: Optional[float]) -> float:
    if video_duration is None:
        return end_time
    return min(video_duration, end_time)


def _validate_trim(cmd: TrimCommand, video_duration: Optional[float]) -> TrimCommand:
    return cmd.model_copy(
        update={
            "start_time": max(0.0, cmd.start_time),
            "end_time": _clamp_end(cmd.end_time, video_duration),
        }
    )


def _validate_cut(cmd: CutCommand, video_duration: Optional[float]) -> CutCommand:
    segments = [
        TimeRange(
            start_time=max(0.0, seg.start_time),
            end_time=_clamp_end(seg.end_time, video_duration),
        )
        for seg in cmd.segments
    ]
    return cmd.model_copy(update={"segments": segments})


def _validate_color(
    cmd: ColorCorrectionCommand, video_duration: Optional[float]
) -> ColorCorrectionCommand:
    adj = cmd.adjustments
    clamped = {
        name: clamp(getattr(adj, name), -1.0, 1.0)
        for name in _COLOR_FIELDS
        if getattr(adj, name) is not None
    }
    return cmd.model_copy(update={"adjustments": adj.model_copy(update=clamped)})


def _validate_audio(cmd: AudioCommand, video_duration: Optional[float]) -> AudioCommand:
    params = cmd.params
    clamped = {
        name: clamp(getattr(params, name), low, high)
        for name, (low, high) in _AUDIO_RANGES.items()
        if getattr(params, name) is not None
    }
    return cmd.model_copy(update={"params": params.model_copy(update=clamped)})


def _validate_effect(cmd: EffectCommand, video_duration: Optional[float]) -> EffectCommand:
    return cmd.model_copy(update={"intensity": clamp(cmd.intensity, 0.0, 1.0)})


_VALIDATORS: dict[str, Callable] = {
    "trim": _validate_trim,
    "cut": _validate_cut,
    "color_correction": _validate_color,
    "audio": _validate_audio,
    "effect": _validate_effect,
}


def validate_commands(
    commands: Sequence[VideoCommand],
    video_duration: Optional[float] = None,
) -> list[VideoCommand]:
    """Return a new list of commands with numeric fields clamped.

    *video_duration* bounds trim/cut end times when known. Commands without
    clamped fields (and unrecognised tags) are returned as-is; the caller's
    objects are never modified.
    """
    validated: list[VideoCommand] = []
    for cmd in commands:
        validator = _VALIDATORS.get(cmd.type)
        validated.append(validator(cmd, video_duration) if validator else cmd)
    return validated
