"""FastAPI route handlers for prompt processing."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from promptcut.api.dependencies import get_prompt_parser
from promptcut.api.schemas import ProcessRequest, ProcessResponse, ProcessResult
from promptcut.compiler import PipelineCompiler
from promptcut.config import settings
from promptcut.parser import PromptParser

logger = structlog.get_logger()

router = APIRouter(prefix="/api")


def _error_response(status_code: int, message: str) -> JSONResponse:
    body = ProcessResponse(success=False, error=message)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True, mode="json"),
    )


@router.post("/process", response_model=ProcessResponse, response_model_exclude_none=True)
async def process_prompt(
    request: ProcessRequest,
    parser: PromptParser = Depends(get_prompt_parser),
):
    """Parse an editing prompt and, given a video context, compile ffmpeg commands."""
    if not request.prompt or not request.prompt.strip():
        return _error_response(400, "Prompt is required")

    try:
        parsed = await parser.parse(request.prompt, request.video_context)

        ffmpeg_commands: list[str] = []
        if parsed.commands and request.video_context is not None:
            compiler = PipelineCompiler(settings.source_name, settings.work_dir)
            pipeline = compiler.compile(parsed.commands, request.video_context)
            ffmpeg_commands = pipeline.commands
    except Exception as exc:
        logger.exception("process.failed")
        return _error_response(500, str(exc) or "An error occurred")

    logger.info(
        "process.done",
        num_commands=len(parsed.commands),
        num_ffmpeg_commands=len(ffmpeg_commands),
        confidence=parsed.confidence,
    )
    return ProcessResponse(
        success=True,
        result=ProcessResult(
            commands=parsed.commands,
            explanation=parsed.explanation,
            confidence=parsed.confidence,
            warnings=parsed.warnings,
            ffmpeg_commands=ffmpeg_commands,
        ),
    )
