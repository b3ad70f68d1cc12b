"""Request/Response schemas for the FastAPI endpoints."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from promptcut.models.commands import VideoCommand
from promptcut.models.context import VideoContext


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProcessRequest(ApiModel):
    prompt: Optional[str] = None
    video_context: Optional[VideoContext] = None


class ProcessResult(ApiModel):
    commands: list[VideoCommand] = Field(default_factory=list)
    explanation: str
    confidence: float
    warnings: Optional[list[str]] = None
    ffmpeg_commands: list[str] = Field(default_factory=list)


class ProcessResponse(ApiModel):
    success: bool
    result: Optional[ProcessResult] = None
    error: Optional[str] = None
