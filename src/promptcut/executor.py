"""Pipeline execution — runs compiled operations through ffmpeg, one at a time."""

from __future__ import annotations

import subprocess
from pathlib import Path

import structlog
from moviepy import VideoFileClip

from promptcut.config import settings
from promptcut.models.context import Resolution, VideoContext
from promptcut.models.pipeline import ProcessingOperation, ProcessingPipeline

logger = structlog.get_logger()


class PipelineExecutionError(RuntimeError):
    """An operation exited non-zero; later operations were not run."""

    def __init__(self, operation: ProcessingOperation, returncode: int, stderr: str):
        self.operation = operation
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"{operation.kind} operation failed with exit code {returncode}: {stderr[-300:]}"
        )


def probe_video_context(video_path: str) -> VideoContext:
    """Read duration, audio presence and frame size with MoviePy."""
    clip = VideoFileClip(video_path)
    try:
        width, height = clip.size
        return VideoContext(
            duration=clip.duration,
            has_audio=clip.audio is not None,
            resolution=Resolution(width=width, height=height),
        )
    finally:
        clip.close()


class PipelineExecutor:
    """Execute a pipeline strictly in order.

    Each operation reads the artifact written by the one before it, so a
    failure stops the run.
    """

    def __init__(self, timeout: int | None = None):
        self.timeout = timeout or settings.ffmpeg_timeout_sec

    def run(self, pipeline: ProcessingPipeline) -> str:
        """Run every operation and return the final output path."""
        if pipeline.operations:
            Path(pipeline.operations[0].output_file).parent.mkdir(parents=True, exist_ok=True)

        for index, operation in enumerate(pipeline.operations):
            logger.info(
                "executor.operation.start",
                index=index,
                kind=operation.kind,
                description=operation.description,
                output_file=operation.output_file,
            )
            result = subprocess.run(
                operation.ffmpeg.to_args(),
                capture_output=True,
                timeout=self.timeout,
            )
            if result.returncode != 0:
                stderr = result.stderr.decode(errors="replace")
                logger.error(
                    "executor.operation.failed",
                    index=index,
                    kind=operation.kind,
                    returncode=result.returncode,
                    stderr=stderr[-300:],
                )
                raise PipelineExecutionError(operation, result.returncode, stderr)

        logger.info(
            "executor.pipeline.done",
            num_operations=len(pipeline.operations),
            final_output=pipeline.final_output,
        )
        return pipeline.final_output
