"""Pydantic model for the language-understanding result."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from promptcut.models.commands import VideoCommand


class ParsedPromptResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    commands: list[VideoCommand] = Field(default_factory=list)
    explanation: str = ""
    confidence: float = Field(default=0.0, description="0.0 to 1.0")
    warnings: Optional[list[str]] = None

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return max(0.0, min(1.0, value))
