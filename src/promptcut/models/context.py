"""Pydantic models describing the source video."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Resolution(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class VideoContext(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    duration: Optional[float] = Field(default=None, gt=0, description="Seconds; None when unknown")
    has_audio: bool = True
    resolution: Optional[Resolution] = None
