"""Pipeline compiler — turns validated edit commands into a linear ffmpeg plan.

Each recognised command yields exactly one operation whose input is the
previous operation's output. Nothing is executed here; operations carry a
structured ``FFmpegCommand`` that the executor renders at the boundary.
"""

from __future__ import annotations

from typing import Optional, Sequence

import structlog

from promptcut.config import settings
from promptcut.filters import (
    ASPECT_RATIOS,
    CAPTION_ALIGNMENT,
    COLOR_PRESETS,
    DEFAULT_CAPTION_ALIGNMENT,
    QUALITY_PRESETS,
    RESOLUTIONS,
    WEBM_QUALITY_PRESETS,
    escape_filter_value,
    fmt_number,
    format_time,
    hex_to_ass,
    temperature_kelvin,
)
from promptcut.models.commands import (
    AddCaptionsCommand,
    AudioCommand,
    ColorCorrectionCommand,
    CutCommand,
    EffectCommand,
    ExportCommand,
    RemoveSilenceCommand,
    ThumbnailCommand,
    TimeRange,
    TransitionCommand,
    TrimCommand,
    VideoCommand,
)
from promptcut.models.context import VideoContext
from promptcut.models.pipeline import FFmpegCommand, ProcessingOperation, ProcessingPipeline
from promptcut.validator import clamp

logger = structlog.get_logger()

MIN_EXPORT_FPS = 1
MAX_EXPORT_FPS = 120
THUMBNAIL_WIDTH = 1920


def complement_segments(
    segments: Sequence[TimeRange],
    duration: Optional[float],
) -> list[tuple[float, Optional[float]]]:
    """Return the ``(start, end)`` ranges kept after removing *segments*.

    Segments are visited in start-time order. Overlapping removals are not
    merged, so the result can contain overlapping keep ranges. With an unknown
    *duration* the final range is open (``end`` is ``None``).
    """
    keep: list[tuple[float, Optional[float]]] = []
    last_end = 0.0
    for seg in sorted(segments, key=lambda s: s.start_time):
        if seg.start_time > last_end:
            keep.append((last_end, seg.start_time))
        last_end = seg.end_time

    if duration is None:
        keep.append((last_end, None))
    elif last_end < duration:
        keep.append((last_end, duration))
    return keep


class PipelineCompiler:
    """Compile command lists against one source artifact.

    Temp artifact numbering and the running timeline duration are reset on
    every ``compile`` call; use one instance per request.
    """

    def __init__(
        self,
        source: str,
        work_dir: str | None = None,
        ffmpeg_binary: str | None = None,
    ):
        self.source = source
        self.work_dir = (work_dir or settings.work_dir).rstrip("/")
        self.ffmpeg_binary = ffmpeg_binary or settings.ffmpeg_binary
        self._temp_counter = 0
        self._duration: Optional[float] = None
        self._has_audio = True
        self._builders = {
            "trim": self._trim,
            "cut": self._cut,
            "remove_silence": self._remove_silence,
            "add_captions": self._add_captions,
            "color_correction": self._color_correction,
            "audio": self._audio,
            "transition": self._transition,
            "effect": self._effect,
            "export": self._export,
            "thumbnail": self._thumbnail,
        }

    def compile(
        self,
        commands: Sequence[VideoCommand],
        context: VideoContext | None = None,
    ) -> ProcessingPipeline:
        self._temp_counter = 0
        self._duration = context.duration if context else None
        self._has_audio = context.has_audio if context else True

        operations: list[ProcessingOperation] = []
        current = self.source
        for cmd in commands:
            builder = self._builders.get(cmd.type)
            if builder is None:
                logger.debug("compiler.command.skipped", command_type=cmd.type)
                continue
            operation = builder(cmd, current)
            operations.append(operation)
            current = operation.output_file

        logger.info(
            "compiler.compile.done",
            source=self.source,
            num_commands=len(commands),
            num_operations=len(operations),
            final_output=current,
        )
        return ProcessingPipeline(operations=operations, final_output=current)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _temp_file(self, extension: str = "mp4") -> str:
        self._temp_counter += 1
        return f"{self.work_dir}/temp_{self._temp_counter}.{extension}"

    def _ffmpeg(self, input_path: str, output_path: str, **kwargs) -> FFmpegCommand:
        return FFmpegCommand(
            input_path=input_path,
            output_path=output_path,
            binary=self.ffmpeg_binary,
            **kwargs,
        )

    def _fade_out_start(self, fade: float) -> float:
        if self._duration is None:
            return 0.0
        return max(0.0, self._duration - fade)

    # ------------------------------------------------------------------
    # Command builders
    # ------------------------------------------------------------------

    def _trim(self, cmd: TrimCommand, input_file: str) -> ProcessingOperation:
        output = self._temp_file()
        length = cmd.end_time - cmd.start_time
        self._duration = max(0.0, length)

        return ProcessingOperation(
            kind=cmd.type,
            params={"start": cmd.start_time, "duration": length},
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                output_options=[
                    "-ss", fmt_number(cmd.start_time),
                    "-t", fmt_number(length),
                    "-c", "copy",
                ],
            ),
            description=(
                f"Trim video from {format_time(cmd.start_time)} to {format_time(cmd.end_time)}"
            ),
            estimated_duration=max(0.0, length) * 0.1,
            output_file=output,
        )

    def _cut(self, cmd: CutCommand, input_file: str) -> ProcessingOperation:
        output = self._temp_file()
        source_duration = self._duration
        keep = complement_segments(cmd.segments, source_duration)
        description = f"Cut {len(cmd.segments)} segment(s) from video"
        estimate = source_duration * 0.3 if source_duration is not None else 30.0
        params = {"keep_segments": keep}

        if not keep:
            # every frame removed: emit an empty artifact
            self._duration = 0.0
            return ProcessingOperation(
                kind=cmd.type,
                params=params,
                ffmpeg=self._ffmpeg(input_file, output, output_options=["-t", "0"]),
                description=description,
                estimated_duration=estimate,
                output_file=output,
            )

        with_audio = self._has_audio
        parts: list[str] = []
        labels: list[str] = []
        for i, (start, end) in enumerate(keep):
            window = f"start={fmt_number(start)}"
            if end is not None:
                window += f":end={fmt_number(end)}"
            parts.append(f"[0:v]trim={window},setpts=PTS-STARTPTS[v{i}]")
            if with_audio:
                parts.append(f"[0:a]atrim={window},asetpts=PTS-STARTPTS[a{i}]")
                labels.append(f"[v{i}][a{i}]")
            else:
                labels.append(f"[v{i}]")

        outputs = "[outv][outa]" if with_audio else "[outv]"
        concat = f"{''.join(labels)}concat=n={len(keep)}:v=1:a={int(with_audio)}{outputs}"
        filter_complex = "; ".join(parts) + "; " + concat

        if any(end is None for _, end in keep):
            self._duration = None
        else:
            self._duration = sum(end - start for start, end in keep)

        return ProcessingOperation(
            kind=cmd.type,
            params=params,
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                filter_complex=filter_complex,
                maps=["[outv]", "[outa]"] if with_audio else ["[outv]"],
            ),
            description=description,
            estimated_duration=estimate,
            output_file=output,
        )

    def _remove_silence(self, cmd: RemoveSilenceCommand, input_file: str) -> ProcessingOperation:
        output = self._temp_file()
        threshold = (
            cmd.threshold if cmd.threshold is not None else settings.default_silence_threshold_db
        )
        # detect leading silence, reverse, repeat, reverse back: trims both edges
        detect = (
            "silenceremove=start_periods=1"
            f":start_duration={fmt_number(cmd.min_duration)}"
            f":start_threshold={fmt_number(threshold)}dB"
            f":start_silence={fmt_number(cmd.padding)}"
            ":detection=peak"
        )

        return ProcessingOperation(
            kind=cmd.type,
            params={
                "threshold": threshold,
                "min_duration": cmd.min_duration,
                "padding": cmd.padding,
            },
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                audio_filter=",".join([detect, "areverse", detect, "areverse"]),
                output_options=["-c:v", "copy"],
            ),
            description=(
                f"Remove silent parts (threshold: {fmt_number(threshold)}dB, "
                f"min duration: {fmt_number(cmd.min_duration)}s)"
            ),
            estimated_duration=30.0,
            output_file=output,
        )

    def _add_captions(self, cmd: AddCaptionsCommand, input_file: str) -> ProcessingOperation:
        output = self._temp_file()
        style = cmd.style
        force_style = ",".join(
            [
                f"FontName={style.font_family}",
                f"FontSize={style.font_size}",
                f"PrimaryColour=&H{hex_to_ass(style.font_color)}",
                f"BackColour=&H{hex_to_ass(style.background_color)}",
                f"Alignment={CAPTION_ALIGNMENT.get(style.position, DEFAULT_CAPTION_ALIGNMENT)}",
                f"Outline={int(style.outline)}",
            ]
        )
        captions_path = f"{self.work_dir}/{settings.captions_filename}"

        return ProcessingOperation(
            kind=cmd.type,
            params={"captions_file": captions_path, "force_style": force_style},
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                video_filter=(
                    f"subtitles={escape_filter_value(captions_path)}"
                    f":force_style={escape_filter_value(force_style)}"
                ),
                output_options=["-c:a", "copy"],
            ),
            description=f"Add {cmd.language} captions with {style.font_family} font",
            estimated_duration=60.0,
            output_file=output,
        )

    def _color_correction(
        self, cmd: ColorCorrectionCommand, input_file: str
    ) -> ProcessingOperation:
        output = self._temp_file()
        stages: list[str] = []
        if cmd.preset:
            stages.extend(COLOR_PRESETS.get(cmd.preset, []))

        adj = cmd.adjustments
        eq_parts: list[str] = []
        if adj.brightness is not None:
            eq_parts.append(f"brightness={fmt_number(adj.brightness)}")
        if adj.contrast is not None:
            eq_parts.append(f"contrast={fmt_number(1 + adj.contrast)}")
        if adj.saturation is not None:
            eq_parts.append(f"saturation={fmt_number(1 + adj.saturation)}")
        if eq_parts:
            stages.append("eq=" + ":".join(eq_parts))

        if adj.temperature is not None:
            kelvin = temperature_kelvin(adj.temperature)
            stages.append(f"colortemperature=temperature={fmt_number(kelvin)}")

        return ProcessingOperation(
            kind=cmd.type,
            params={"preset": cmd.preset, "stages": stages},
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                video_filter=",".join(stages) or "null",
                output_options=["-c:a", "copy"],
            ),
            description=(
                f"Apply {cmd.preset} color preset" if cmd.preset else "Apply color adjustments"
            ),
            estimated_duration=45.0,
            output_file=output,
        )

    def _audio(self, cmd: AudioCommand, input_file: str) -> ProcessingOperation:
        output = self._temp_file()
        params = cmd.params

        if cmd.action == "normalize":
            audio_filter = "loudnorm=I=-16:TP=-1.5:LRA=11"
            description = "Normalize audio levels"
        elif cmd.action == "reduce_noise":
            reduction = params.noise_reduction if params.noise_reduction is not None else 0.5
            audio_filter = f"afftdn=nf=-{fmt_number(20 + reduction * 30)}"
            description = "Reduce background noise"
        elif cmd.action == "adjust_volume":
            volume = params.volume if params.volume is not None else 1.0
            audio_filter = f"volume={fmt_number(volume)}"
            description = f"Adjust volume to {round(volume * 100)}%"
        elif cmd.action == "fade_in":
            fade = params.fade_duration or 1.0
            audio_filter = f"afade=t=in:st=0:d={fmt_number(fade)}"
            description = f"Add {fmt_number(fade)}s audio fade in"
        elif cmd.action == "fade_out":
            fade = params.fade_duration or 1.0
            start = self._fade_out_start(fade)
            audio_filter = f"afade=t=out:st={fmt_number(start)}:d={fmt_number(fade)}"
            description = f"Add {fmt_number(fade)}s audio fade out"
        else:
            audio_filter = "anull"
            description = "Process audio"

        return ProcessingOperation(
            kind=cmd.type,
            params={"action": cmd.action, "filter": audio_filter},
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                audio_filter=audio_filter,
                output_options=["-c:v", "copy"],
            ),
            description=description,
            estimated_duration=20.0,
            output_file=output,
        )

    def _transition(self, cmd: TransitionCommand, input_file: str) -> ProcessingOperation:
        output = self._temp_file()
        duration = fmt_number(cmd.duration)

        if cmd.transition_type == "fade":
            stages = []
            if cmd.position in ("start", "all"):
                stages.append(f"fade=t=in:st=0:d={duration}")
            if cmd.position in ("end", "all"):
                start = fmt_number(self._fade_out_start(cmd.duration))
                stages.append(f"fade=t=out:st={start}:d={duration}")
            video_filter = ",".join(stages) or "null"
        elif cmd.transition_type == "blur":
            video_filter = (
                "boxblur=luma_radius=min(h\\,w)/20:luma_power=1"
                f":enable='between(t,0,{duration})'"
            )
        else:
            # dissolve/wipe/slide/zoom have no single-input rendering yet
            logger.warning(
                "compiler.transition.fallback",
                transition_type=cmd.transition_type,
                fallback="fade_in",
            )
            video_filter = f"fade=t=in:st=0:d={duration}"

        return ProcessingOperation(
            kind=cmd.type,
            params={"transition_type": cmd.transition_type, "position": cmd.position},
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                video_filter=video_filter,
                output_options=["-c:a", "copy"],
            ),
            description=f"Add {cmd.transition_type} transition",
            estimated_duration=15.0,
            output_file=output,
        )

    def _effect(self, cmd: EffectCommand, input_file: str) -> ProcessingOperation:
        output = self._temp_file()
        intensity = cmd.intensity
        audio_filter = None
        output_options = ["-c:a", "copy"]

        if cmd.effect_name == "blur":
            radius = round(intensity * 10)
            video_filter = f"boxblur={radius}:{radius}"
        elif cmd.effect_name == "sharpen":
            amount = fmt_number(intensity * 2)
            video_filter = f"unsharp=5:5:{amount}:5:5:{amount}"
        elif cmd.effect_name == "vignette":
            video_filter = f"vignette=angle={fmt_number(0.5 + intensity * 0.5)}"
        elif cmd.effect_name == "film_grain":
            video_filter = f"noise=alls={round(intensity * 50)}:allf=t"
        elif cmd.effect_name in ("slow_motion", "speed_up"):
            if cmd.effect_name == "slow_motion":
                factor = 1 + intensity
            else:
                factor = 1 - intensity * 0.5
            video_filter = f"setpts={fmt_number(factor)}*PTS"
            if self._has_audio:
                audio_filter = f"atempo={fmt_number(1 / factor)}"
                output_options = []
            if self._duration is not None:
                self._duration *= factor
        elif cmd.effect_name == "stabilize":
            video_filter = "vidstabdetect,vidstabtransform"
        elif cmd.effect_name == "zoom_in":
            zoom = fmt_number(1 + intensity * 0.5)
            video_filter = (
                f"scale=trunc(iw*{zoom}/2)*2:trunc(ih*{zoom}/2)*2,crop=iw/{zoom}:ih/{zoom}"
            )
        elif cmd.effect_name == "zoom_out":
            zoom = fmt_number(1 + intensity * 0.5)
            video_filter = (
                f"scale=trunc(iw/{zoom}/2)*2:trunc(ih/{zoom}/2)*2,"
                f"pad=trunc(iw*{zoom}/2)*2:trunc(ih*{zoom}/2)*2:(ow-iw)/2:(oh-ih)/2"
            )
        else:
            video_filter = "null"

        return ProcessingOperation(
            kind=cmd.type,
            params={"effect_name": cmd.effect_name, "intensity": intensity},
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                video_filter=video_filter,
                audio_filter=audio_filter,
                output_options=output_options,
            ),
            description=f"Apply {cmd.effect_name} effect",
            estimated_duration=30.0,
            output_file=output,
        )

    def _export(self, cmd: ExportCommand, input_file: str) -> ProcessingOperation:
        output = f"{self.work_dir}/output.{cmd.format}"
        stages: list[str] = []

        if cmd.resolution in RESOLUTIONS:
            width, height = RESOLUTIONS[cmd.resolution]
            stages.append(f"scale={width}:{height}:force_original_aspect_ratio=decrease")
        if cmd.aspect_ratio in ASPECT_RATIOS:
            stages.append(f"crop=ih*{ASPECT_RATIOS[cmd.aspect_ratio]}:ih")

        fps = clamp(cmd.fps, MIN_EXPORT_FPS, MAX_EXPORT_FPS)
        output_options = ["-r", fmt_number(fps)]
        if cmd.format == "gif":
            output_options.append("-an")
        elif cmd.format == "webm":
            output_options += WEBM_QUALITY_PRESETS.get(
                cmd.quality, WEBM_QUALITY_PRESETS["medium"]
            )
            output_options += ["-c:a", "libopus"]
        else:
            output_options += QUALITY_PRESETS.get(cmd.quality, QUALITY_PRESETS["medium"])
            output_options += ["-c:a", "aac"]

        return ProcessingOperation(
            kind=cmd.type,
            params={
                "format": cmd.format,
                "resolution": cmd.resolution,
                "aspect_ratio": cmd.aspect_ratio,
                "quality": cmd.quality,
                "fps": fps,
            },
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                video_filter=",".join(stages) or None,
                output_options=output_options,
            ),
            description=(
                f"Export as {cmd.resolution} {cmd.format.upper()} ({cmd.aspect_ratio})"
            ),
            estimated_duration=60.0,
            output_file=output,
        )

    def _thumbnail(self, cmd: ThumbnailCommand, input_file: str) -> ProcessingOperation:
        output = f"{self.work_dir}/thumbnail_%03d.jpg"
        count = max(1, cmd.count)

        if cmd.timestamps:
            timestamps = list(cmd.timestamps)
        elif self._duration is not None:
            # count + 1 gaps keep samples off the first and last frame
            interval = self._duration / (count + 1)
            timestamps = [interval * (i + 1) for i in range(count)]
        else:
            timestamps = []

        if timestamps:
            # first frame at or after each timestamp
            select = "+".join(
                f"gte(t,{fmt_number(t)})*(isnan(prev_t)+lt(prev_t,{fmt_number(t)}))"
                for t in timestamps
            )
            video_filter = f"select='{select}',scale={THUMBNAIL_WIDTH}:-1"
            frames = len(timestamps)
        else:
            video_filter = f"fps=1,scale={THUMBNAIL_WIDTH}:-1"
            frames = count

        return ProcessingOperation(
            kind=cmd.type,
            params={"count": frames, "style": cmd.style, "timestamps": timestamps},
            ffmpeg=self._ffmpeg(
                input_file,
                output,
                video_filter=video_filter,
                output_options=["-vsync", "vfr", "-frames:v", str(frames)],
            ),
            description=f"Generate {frames} thumbnail(s)",
            estimated_duration=10.0,
            output_file=output,
        )


def compile_pipeline(
    commands: Sequence[VideoCommand],
    context: VideoContext | None,
    source: str,
    work_dir: str | None = None,
) -> ProcessingPipeline:
    """Compile *commands* with a fresh compiler instance."""
    return PipelineCompiler(source, work_dir).compile(commands, context)
