"""Pydantic models for compiled processing pipelines."""

from __future__ import annotations

import shlex
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class FFmpegCommand(BaseModel):
    """Structured ffmpeg invocation: one input artifact, one output artifact.

    Rendered to an argument vector only at the execution boundary.
    """

    model_config = ConfigDict(frozen=True)

    input_path: str
    output_path: str
    filter_complex: Optional[str] = None
    maps: list[str] = Field(default_factory=list)
    video_filter: Optional[str] = None
    audio_filter: Optional[str] = None
    output_options: list[str] = Field(default_factory=list)
    binary: str = "ffmpeg"

    def to_args(self) -> list[str]:
        args = [self.binary, "-y", "-i", self.input_path]
        if self.filter_complex:
            args += ["-filter_complex", self.filter_complex]
        for stream in self.maps:
            args += ["-map", stream]
        if self.video_filter:
            args += ["-vf", self.video_filter]
        if self.audio_filter:
            args += ["-af", self.audio_filter]
        args += self.output_options
        args.append(self.output_path)
        return args

    def render(self) -> str:
        return shlex.join(self.to_args())


class ProcessingOperation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: str = Field(description="Command type this operation was compiled from")
    params: dict[str, Any] = Field(default_factory=dict)
    ffmpeg: FFmpegCommand
    description: str
    estimated_duration: float = Field(description="Heuristic, seconds")
    output_file: str

    @property
    def input_file(self) -> str:
        return self.ffmpeg.input_path

    @computed_field
    @property
    def command(self) -> str:
        return self.ffmpeg.render()


class ProcessingPipeline(BaseModel):
    model_config = ConfigDict(frozen=True)

    operations: list[ProcessingOperation] = Field(default_factory=list)
    final_output: str

    @property
    def commands(self) -> list[str]:
        return [op.command for op in self.operations]
