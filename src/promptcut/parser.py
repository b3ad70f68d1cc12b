"""Prompt parser — asks Claude to turn an editing request into typed commands."""

from __future__ import annotations

import structlog
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel

from promptcut.config import Settings, settings
from promptcut.filters import format_time
from promptcut.models.context import VideoContext
from promptcut.models.parsing import ParsedPromptResult
from promptcut.validator import validate_commands

logger = structlog.get_logger()

# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """\
You turn natural-language video editing requests into structured commands.

Fill in the result with:
{"commands": [...], "explanation": "what will be done", "confidence": 0.0-1.0, "warnings": ["optional"]}

Command catalogue (times in seconds):

1. trim: keep one range
   {"type": "trim", "startTime": 0, "endTime": 10}
2. cut: remove ranges
   {"type": "cut", "segments": [{"startTime": 12, "endTime": 18}]}
3. remove_silence
   {"type": "remove_silence", "threshold": -30, "minDuration": 1, "padding": 0.2}
4. add_captions
   {"type": "add_captions", "style": {"fontFamily": "Arial", "fontSize": 24, "fontColor": "#FFFFFF",
    "backgroundColor": "#000000CC", "position": "bottom" | "top" | "center", "outline": true}, "language": "en"}
5. color_correction: adjustments each -1 to 1, preset optional
   {"type": "color_correction", "adjustments": {"brightness": 0, "contrast": 0, "saturation": 0,
    "temperature": 0, "tint": 0, "exposure": 0},
    "preset": "cinematic" | "vintage" | "vibrant" | "moody" | "warm" | "cool" | "noir"}
6. audio
   {"type": "audio", "action": "normalize" | "reduce_noise" | "add_music" | "adjust_volume" | "ducking" | "fade_in" | "fade_out",
    "params": {"volume": 0-2, "musicVolume": 0-1, "fadeDuration": 1, "noiseReduction": 0-1}}
7. transition
   {"type": "transition", "transitionType": "fade" | "dissolve" | "wipe" | "slide" | "zoom" | "blur",
    "duration": 1, "position": "between_clips" | "start" | "end" | "all"}
8. effect: intensity 0 to 1
   {"type": "effect", "effectName": "blur" | "sharpen" | "vignette" | "film_grain" | "slow_motion" | "speed_up"
    | "stabilize" | "zoom_in" | "zoom_out", "intensity": 0.5, "params": {}}
9. export
   {"type": "export", "format": "mp4" | "mov" | "webm" | "gif", "resolution": "4k" | "1080p" | "720p" | "480p" | "original",
    "aspectRatio": "16:9" | "9:16" | "1:1" | "4:5" | "21:9" | "original", "quality": "high" | "medium" | "low", "fps": 30}
10. thumbnail
   {"type": "thumbnail", "count": 3, "style": "auto" | "text_overlay" | "collage", "timestamps": [optional seconds]}

Reading times:
- "first 10 seconds" -> startTime 0, endTime 10
- "from 1:30 to 2:15" -> startTime 90, endTime 135
- "last 30 seconds" needs the video duration
- "the beginning" / "the end" -> roughly the first / last 5 seconds

Combine several commands, in execution order, for compound requests."""

USER_PROMPT_TEMPLATE = """\
{context}
User request: "{prompt}"

Parse this request into video editing commands."""

CONTEXT_TEMPLATE = """\
Video context:
- Duration: {duration} seconds ({duration_mmss})
- Has audio: {has_audio}
- Resolution: {resolution}
"""

FALLBACK_EXPLANATION = "I couldn't understand that request. Please try rephrasing."
FALLBACK_WARNING = "Failed to parse the request. Please try again with a clearer description."


def build_chat_model(config: Settings = settings) -> BaseChatModel:
    return ChatAnthropic(
        model=config.parser_model,
        api_key=config.anthropic_api_key,
        temperature=0,
        max_tokens=config.parser_max_tokens,
    )


def fallback_result() -> ParsedPromptResult:
    return ParsedPromptResult(
        commands=[],
        explanation=FALLBACK_EXPLANATION,
        confidence=0.0,
        warnings=[FALLBACK_WARNING],
    )


def _format_context(video_context: VideoContext | None) -> str:
    if video_context is None:
        return ""
    duration = video_context.duration
    resolution = video_context.resolution
    return CONTEXT_TEMPLATE.format(
        duration=duration if duration is not None else "unknown",
        duration_mmss=format_time(duration) if duration is not None else "unknown",
        has_audio=str(video_context.has_audio).lower(),
        resolution=f"{resolution.width}x{resolution.height}" if resolution else "unknown",
    )


class PromptParser:
    """Language-understanding collaborator.

    The chat model is injected so callers (and tests) control its lifecycle.
    ``parse`` never raises: any failure yields ``fallback_result()``.
    """

    def __init__(self, llm: BaseChatModel):
        self.llm = llm

    async def parse(
        self,
        prompt: str,
        video_context: VideoContext | None = None,
    ) -> ParsedPromptResult:
        logger.info("parser.parse.start", prompt_length=len(prompt))
        user_content = USER_PROMPT_TEMPLATE.format(
            context=_format_context(video_context),
            prompt=prompt,
        )

        try:
            structured_llm = self.llm.with_structured_output(ParsedPromptResult)
            result: ParsedPromptResult | None = await structured_llm.ainvoke(
                [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": user_content},
                ]
            )
            if result is None:
                raise ValueError("No structured result from model")
        except Exception:
            logger.exception("parser.parse.failed")
            return fallback_result()

        duration = video_context.duration if video_context else None
        commands = validate_commands(result.commands, duration)
        logger.info(
            "parser.parse.done",
            num_commands=len(commands),
            confidence=result.confidence,
        )
        return result.model_copy(update={"commands": commands})
