from typing import Any, Callable

import pytest
from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage

from promptcut.compiler import PipelineCompiler
from promptcut.models.context import Resolution, VideoContext
from promptcut.parser import PromptParser

SOURCE = "/media/source.mp4"
WORK_DIR = "/work"


class ToolCallingFakeModel(GenericFakeChatModel):
    """Scripted chat model that accepts ``bind_tools``, so structured output runs end to end."""

    def bind_tools(self, tools, *, tool_choice=None, **kwargs):
        return self


def structured_reply(payload: dict[str, Any]) -> AIMessage:
    return AIMessage(
        content="",
        tool_calls=[{"name": "ParsedPromptResult", "args": payload, "id": "call_1"}],
    )


@pytest.fixture
def make_parser() -> Callable[..., PromptParser]:
    """Build a parser whose model replies with each payload in turn.

    Dicts become tool calls; plain strings are returned as unstructured text.
    """

    def _make(*replies: dict[str, Any] | str) -> PromptParser:
        messages = [
            reply if isinstance(reply, str) else structured_reply(reply) for reply in replies
        ]
        return PromptParser(ToolCallingFakeModel(messages=iter(messages)))

    return _make


@pytest.fixture
def context() -> VideoContext:
    return VideoContext(
        duration=100.0,
        has_audio=True,
        resolution=Resolution(width=1920, height=1080),
    )


@pytest.fixture
def compiler() -> PipelineCompiler:
    return PipelineCompiler(SOURCE, WORK_DIR, ffmpeg_binary="ffmpeg")
