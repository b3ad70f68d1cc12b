"""Tests for pipeline compilation."""

import pytest
from pydantic import TypeAdapter

from promptcut.compiler import PipelineCompiler, compile_pipeline, complement_segments
from promptcut.filters import COLOR_PRESETS
from promptcut.models.commands import (
    AddCaptionsCommand,
    AudioCommand,
    AudioParams,
    CaptionStyle,
    ColorAdjustments,
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
from promptcut.validator import validate_commands

SOURCE = "/media/source.mp4"


def _cut(*ranges):
    return CutCommand(segments=[TimeRange(start_time=s, end_time=e) for s, e in ranges])


def _all_kinds():
    return [
        TrimCommand(start_time=0, end_time=90),
        _cut((10, 20)),
        RemoveSilenceCommand(),
        AddCaptionsCommand(),
        ColorCorrectionCommand(preset="noir"),
        AudioCommand(action="normalize"),
        TransitionCommand(transition_type="fade", duration=1, position="all"),
        EffectCommand(effect_name="vignette", intensity=0.5),
        ExportCommand(),
        ThumbnailCommand(count=2),
    ]


# ---------------------------------------------------------------------------
# Pipeline shape
# ---------------------------------------------------------------------------


def test_empty_command_list_is_identity(compiler, context):
    pipeline = compiler.compile([], context)

    assert pipeline.operations == []
    assert pipeline.final_output == SOURCE


def test_operations_form_a_linear_chain(compiler, context):
    pipeline = compiler.compile(_all_kinds(), context)
    ops = pipeline.operations

    assert len(ops) == 10
    assert ops[0].input_file == SOURCE
    for previous, following in zip(ops, ops[1:]):
        assert following.input_file == previous.output_file
    assert pipeline.final_output == ops[-1].output_file


def test_commands_compiled_in_list_order(compiler, context):
    pipeline = compiler.compile(_all_kinds(), context)

    assert [op.kind for op in pipeline.operations] == [cmd.type for cmd in _all_kinds()]


def test_temp_artifact_names_are_unique(compiler, context):
    commands = [EffectCommand(effect_name="blur", intensity=0.5) for _ in range(6)]
    pipeline = compiler.compile(commands, context)
    names = [op.output_file for op in pipeline.operations]

    assert names == [f"/work/temp_{i}.mp4" for i in range(1, 7)]
    assert len(set(names)) == 6


def test_counter_restarts_for_each_compile(compiler, context):
    commands = [AudioCommand(action="normalize")]
    first = compiler.compile(commands, context)
    second = compiler.compile(commands, context)

    assert first.final_output == second.final_output == "/work/temp_1.mp4"


def test_unknown_command_is_skipped(compiler, context):
    commands = TypeAdapter(list[VideoCommand]).validate_python(
        [
            {"type": "trim", "startTime": 5, "endTime": 15},
            {"type": "speed_ramp", "factor": 2},
        ]
    )
    pipeline = compiler.compile(commands, context)

    assert len(pipeline.operations) == 1
    assert pipeline.final_output == pipeline.operations[0].output_file


def test_compile_pipeline_uses_fresh_compiler(context):
    pipeline = compile_pipeline([TrimCommand(start_time=0, end_time=5)], context, SOURCE, "/out/")

    assert pipeline.final_output == "/out/temp_1.mp4"


def test_command_string_renders_descriptor(compiler, context):
    [op] = compiler.compile([TrimCommand(start_time=5, end_time=15)], context).operations

    assert op.command == "ffmpeg -y -i /media/source.mp4 -ss 5 -t 10 -c copy /work/temp_1.mp4"


# ---------------------------------------------------------------------------
# trim / cut
# ---------------------------------------------------------------------------


def test_trim_offset_and_length(compiler, context):
    [op] = compiler.compile([TrimCommand(start_time=5, end_time=15)], context).operations

    assert op.params == {"start": 5, "duration": 10}
    assert op.ffmpeg.to_args() == [
        "ffmpeg", "-y", "-i", SOURCE, "-ss", "5", "-t", "10", "-c", "copy", "/work/temp_1.mp4",
    ]
    assert op.estimated_duration == pytest.approx(1.0)
    assert op.description == "Trim video from 0:05 to 0:15"


def test_cut_keeps_complement_of_removed_segments(compiler, context):
    [op] = compiler.compile([_cut((10, 20), (40, 50))], context).operations

    assert op.params["keep_segments"] == [(0, 10), (20, 40), (50, 100)]
    assert op.ffmpeg.filter_complex == (
        "[0:v]trim=start=0:end=10,setpts=PTS-STARTPTS[v0]; "
        "[0:a]atrim=start=0:end=10,asetpts=PTS-STARTPTS[a0]; "
        "[0:v]trim=start=20:end=40,setpts=PTS-STARTPTS[v1]; "
        "[0:a]atrim=start=20:end=40,asetpts=PTS-STARTPTS[a1]; "
        "[0:v]trim=start=50:end=100,setpts=PTS-STARTPTS[v2]; "
        "[0:a]atrim=start=50:end=100,asetpts=PTS-STARTPTS[a2]; "
        "[v0][a0][v1][a1][v2][a2]concat=n=3:v=1:a=1[outv][outa]"
    )
    assert op.ffmpeg.maps == ["[outv]", "[outa]"]
    assert op.estimated_duration == pytest.approx(30.0)


def test_cut_segments_sorted_before_complement():
    keep = complement_segments(
        [TimeRange(start_time=40, end_time=50), TimeRange(start_time=10, end_time=20)], 100
    )

    assert keep == [(0, 10), (20, 40), (50, 100)]


def test_overlapping_cut_segments_are_not_merged():
    # known edge case: the inner removal's end rewinds the cursor
    keep = complement_segments(
        [TimeRange(start_time=10, end_time=50), TimeRange(start_time=20, end_time=30)], 100
    )

    assert keep == [(0, 10), (30, 100)]


def test_cut_without_duration_leaves_final_segment_open(compiler):
    [op] = compiler.compile([_cut((10, 20))], VideoContext()).operations

    assert op.params["keep_segments"] == [(0, 10), (20, None)]
    assert "[0:v]trim=start=20,setpts=PTS-STARTPTS[v1]" in op.ffmpeg.filter_complex


def test_cut_of_silent_video_omits_audio_streams(compiler):
    [op] = compiler.compile([_cut((10, 20))], VideoContext(duration=30, has_audio=False)).operations

    assert "[0:a]" not in op.ffmpeg.filter_complex
    assert op.ffmpeg.filter_complex.endswith("[v0][v1]concat=n=2:v=1:a=0[outv]")
    assert op.ffmpeg.maps == ["[outv]"]


def test_cut_of_whole_video_emits_empty_artifact(compiler, context):
    [op] = compiler.compile([_cut((0, 100))], context).operations

    assert op.params["keep_segments"] == []
    assert op.ffmpeg.filter_complex is None
    assert op.ffmpeg.output_options == ["-t", "0"]


def test_inverted_trim_compiles_without_error(compiler, context):
    [op] = compiler.compile([TrimCommand(start_time=20, end_time=10)], context).operations

    assert op.params["duration"] == -10
    assert op.estimated_duration == 0


def test_cut_after_trim_uses_trimmed_duration(compiler, context):
    pipeline = compiler.compile(
        [TrimCommand(start_time=0, end_time=60), _cut((10, 20))], context
    )

    assert pipeline.operations[1].params["keep_segments"] == [(0, 10), (20, 60)]


# ---------------------------------------------------------------------------
# silence / captions
# ---------------------------------------------------------------------------


def test_silence_removal_double_pass_with_default_threshold(compiler, context):
    [op] = compiler.compile([RemoveSilenceCommand(min_duration=0.5, padding=0.1)], context).operations
    detect = (
        "silenceremove=start_periods=1:start_duration=0.5:start_threshold=-30dB"
        ":start_silence=0.1:detection=peak"
    )

    assert op.ffmpeg.audio_filter == f"{detect},areverse,{detect},areverse"
    assert op.ffmpeg.output_options == ["-c:v", "copy"]
    assert op.params["threshold"] == -30
    assert op.estimated_duration == 30


def test_silence_removal_explicit_threshold(compiler, context):
    [op] = compiler.compile([RemoveSilenceCommand(threshold=-42)], context).operations

    assert "start_threshold=-42dB" in op.ffmpeg.audio_filter


def test_captions_force_style(compiler, context):
    command = AddCaptionsCommand(
        style=CaptionStyle(
            font_family="Inter",
            font_size=32,
            font_color="#FF8000",
            background_color="#000000CC",
            position="top",
            outline=False,
        ),
        language="es",
    )
    [op] = compiler.compile([command], context).operations

    assert op.params["force_style"] == (
        "FontName=Inter,FontSize=32,PrimaryColour=&H000080FF,BackColour=&H33000000,"
        "Alignment=8,Outline=0"
    )
    assert op.ffmpeg.video_filter == (
        r"subtitles=/work/captions.srt:force_style=FontName=Inter\,FontSize=32\,"
        r"PrimaryColour=&H000080FF\,BackColour=&H33000000\,Alignment=8\,Outline=0"
    )
    assert op.description == "Add es captions with Inter font"


def test_captions_malformed_color_falls_back_to_white(compiler, context):
    command = AddCaptionsCommand(style=CaptionStyle(font_color="red"))
    [op] = compiler.compile([command], context).operations

    assert "PrimaryColour=&H00FFFFFF" in op.ffmpeg.video_filter


def test_captions_unknown_position_aligns_bottom(compiler, context):
    command = AddCaptionsCommand(style=CaptionStyle(position="middle"))
    [op] = compiler.compile([command], context).operations

    assert "Alignment=2," in op.params["force_style"]


def test_captions_font_name_is_escaped_for_the_filtergraph(compiler, context):
    command = AddCaptionsCommand(style=CaptionStyle(font_family="O'Neil: Bold, Italic"))
    [op] = compiler.compile([command], context).operations

    assert op.ffmpeg.video_filter.startswith(
        r"subtitles=/work/captions.srt:force_style=FontName=O\\\'Neil\\: Bold\, Italic\,FontSize=24"
    )


# ---------------------------------------------------------------------------
# color
# ---------------------------------------------------------------------------


def test_clamped_brightness_reaches_eq_stage(compiler, context):
    commands = validate_commands(
        [ColorCorrectionCommand(adjustments=ColorAdjustments(brightness=5))], 100
    )
    [op] = compiler.compile(commands, context).operations

    assert op.ffmpeg.video_filter == "eq=brightness=1"


def test_preset_followed_by_contrast_only_eq(compiler, context):
    command = ColorCorrectionCommand(preset="cinematic", adjustments=ColorAdjustments(contrast=0.2))
    [op] = compiler.compile([command], context).operations

    assert op.params["stages"] == [*COLOR_PRESETS["cinematic"], "eq=contrast=1.2"]
    assert op.ffmpeg.video_filter == ",".join(op.params["stages"])
    assert op.description == "Apply cinematic color preset"


@pytest.mark.parametrize(
    "temperature, expected",
    [(0.5, "colortemperature=temperature=8000"), (-0.4, "colortemperature=temperature=5500")],
)
def test_temperature_uses_asymmetric_slopes(compiler, context, temperature, expected):
    command = ColorCorrectionCommand(adjustments=ColorAdjustments(temperature=temperature))
    [op] = compiler.compile([command], context).operations

    assert op.ffmpeg.video_filter == expected


def test_full_adjustment_stage_order(compiler, context):
    command = ColorCorrectionCommand(
        adjustments=ColorAdjustments(brightness=0.1, contrast=-0.5, saturation=0.3, temperature=0)
    )
    [op] = compiler.compile([command], context).operations

    assert op.params["stages"] == [
        "eq=brightness=0.1:contrast=0.5:saturation=1.3",
        "colortemperature=temperature=6500",
    ]


def test_color_without_stages_uses_identity_filter(compiler, context):
    command = ColorCorrectionCommand(adjustments=ColorAdjustments(tint=0.4))
    [op] = compiler.compile([command], context).operations

    assert op.ffmpeg.video_filter == "null"


def test_unknown_preset_contributes_no_stages(compiler, context):
    command = ColorCorrectionCommand(preset="sepia", adjustments=ColorAdjustments(brightness=0.1))
    [op] = compiler.compile([command], context).operations

    assert op.params["stages"] == ["eq=brightness=0.1"]
    assert op.description == "Apply sepia color preset"


# ---------------------------------------------------------------------------
# audio
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "action, params, expected",
    [
        ("normalize", AudioParams(), "loudnorm=I=-16:TP=-1.5:LRA=11"),
        ("reduce_noise", AudioParams(), "afftdn=nf=-35"),
        ("reduce_noise", AudioParams(noise_reduction=1), "afftdn=nf=-50"),
        ("adjust_volume", AudioParams(volume=1.5), "volume=1.5"),
        ("adjust_volume", AudioParams(volume=0), "volume=0"),
        ("fade_in", AudioParams(fade_duration=2), "afade=t=in:st=0:d=2"),
        ("fade_out", AudioParams(fade_duration=2), "afade=t=out:st=98:d=2"),
        ("add_music", AudioParams(music_url="https://example.com/a.mp3"), "anull"),
        ("ducking", AudioParams(), "anull"),
    ],
)
def test_audio_action_selects_filter(compiler, context, action, params, expected):
    [op] = compiler.compile([AudioCommand(action=action, params=params)], context).operations

    assert op.ffmpeg.audio_filter == expected
    assert op.ffmpeg.video_filter is None
    assert op.ffmpeg.output_options == ["-c:v", "copy"]


def test_volume_description(compiler, context):
    command = AudioCommand(action="adjust_volume", params=AudioParams(volume=1.5))
    [op] = compiler.compile([command], context).operations

    assert op.description == "Adjust volume to 150%"


# ---------------------------------------------------------------------------
# transitions / effects
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "position, expected",
    [
        ("start", "fade=t=in:st=0:d=1.5"),
        ("end", "fade=t=out:st=98.5:d=1.5"),
        ("all", "fade=t=in:st=0:d=1.5,fade=t=out:st=98.5:d=1.5"),
        ("between_clips", "null"),
    ],
)
def test_fade_transition_positions(compiler, context, position, expected):
    command = TransitionCommand(transition_type="fade", duration=1.5, position=position)
    [op] = compiler.compile([command], context).operations

    assert op.ffmpeg.video_filter == expected


def test_blur_transition(compiler, context):
    command = TransitionCommand(transition_type="blur", duration=2, position="start")
    [op] = compiler.compile([command], context).operations

    assert op.ffmpeg.video_filter == (
        "boxblur=luma_radius=min(h\\,w)/20:luma_power=1:enable='between(t,0,2)'"
    )


@pytest.mark.parametrize("transition_type", ["dissolve", "wipe", "slide", "zoom"])
def test_other_transitions_fall_back_to_fade_in(compiler, context, transition_type):
    # flagged: these types silently become a fade-in
    command = TransitionCommand(transition_type=transition_type, duration=1, position="end")
    [op] = compiler.compile([command], context).operations

    assert op.ffmpeg.video_filter == "fade=t=in:st=0:d=1"
    assert op.description == f"Add {transition_type} transition"


@pytest.mark.parametrize(
    "effect_name, expected",
    [
        ("blur", "boxblur=5:5"),
        ("sharpen", "unsharp=5:5:1:5:5:1"),
        ("vignette", "vignette=angle=0.75"),
        ("film_grain", "noise=alls=25:allf=t"),
        ("stabilize", "vidstabdetect,vidstabtransform"),
        ("zoom_in", "scale=trunc(iw*1.25/2)*2:trunc(ih*1.25/2)*2,crop=iw/1.25:ih/1.25"),
        ("mirror", "null"),
    ],
)
def test_effect_filters(compiler, context, effect_name, expected):
    [op] = compiler.compile([EffectCommand(effect_name=effect_name, intensity=0.5)], context).operations

    assert op.ffmpeg.video_filter == expected
    assert op.ffmpeg.output_options == ["-c:a", "copy"]


def test_slow_motion_retimes_video_and_audio(compiler, context):
    [op] = compiler.compile([EffectCommand(effect_name="slow_motion", intensity=0.5)], context).operations

    assert op.ffmpeg.video_filter == "setpts=1.5*PTS"
    assert op.ffmpeg.audio_filter == "atempo=0.666667"
    assert op.ffmpeg.output_options == []


def test_speed_up_without_audio_only_retimes_video(compiler):
    context = VideoContext(duration=10, has_audio=False)
    [op] = compiler.compile([EffectCommand(effect_name="speed_up", intensity=0.5)], context).operations

    assert op.ffmpeg.video_filter == "setpts=0.75*PTS"
    assert op.ffmpeg.audio_filter is None


def test_speed_change_scales_later_fade_out(compiler, context):
    pipeline = compiler.compile(
        [
            EffectCommand(effect_name="slow_motion", intensity=1),
            TransitionCommand(transition_type="fade", duration=2, position="end"),
        ],
        context,
    )

    assert pipeline.operations[1].ffmpeg.video_filter == "fade=t=out:st=198:d=2"


# ---------------------------------------------------------------------------
# export / thumbnail
# ---------------------------------------------------------------------------


def test_export_scales_crops_and_encodes(compiler, context):
    command = ExportCommand(format="mp4", resolution="1080p", aspect_ratio="9:16", quality="high", fps=30)
    [op] = compiler.compile([command], context).operations

    assert op.output_file == "/work/output.mp4"
    assert op.ffmpeg.video_filter == (
        "scale=1920:1080:force_original_aspect_ratio=decrease,crop=ih*9/16:ih"
    )
    assert op.ffmpeg.output_options == ["-r", "30", "-crf", "18", "-preset", "slow", "-c:a", "aac"]
    assert op.description == "Export as 1080p MP4 (9:16)"


def test_export_original_keeps_frame_and_defaults_quality(compiler, context):
    command = ExportCommand(format="mov", quality="ultra", fps=0)
    [op] = compiler.compile([command], context).operations

    assert op.ffmpeg.video_filter is None
    assert op.ffmpeg.output_options == ["-r", "1", "-crf", "23", "-preset", "medium", "-c:a", "aac"]


def test_export_gif_drops_audio(compiler, context):
    [op] = compiler.compile([ExportCommand(format="gif", resolution="480p")], context).operations

    assert op.output_file == "/work/output.gif"
    assert op.ffmpeg.output_options == ["-r", "30", "-an"]


def test_export_webm_uses_vp9_and_opus(compiler, context):
    [op] = compiler.compile([ExportCommand(format="webm", quality="high")], context).operations

    assert op.output_file == "/work/output.webm"
    assert op.ffmpeg.output_options == [
        "-r", "30", "-c:v", "libvpx-vp9", "-crf", "24", "-b:v", "0", "-c:a", "libopus",
    ]


def test_export_fractional_fps_is_kept(compiler, context):
    [op] = compiler.compile([ExportCommand(fps=29.97)], context).operations

    assert op.ffmpeg.output_options[:2] == ["-r", "29.97"]
    assert op.params["fps"] == 29.97


def test_export_unknown_format_passes_through(compiler, context):
    [op] = compiler.compile([ExportCommand(format="avi")], context).operations

    assert op.output_file == "/work/output.avi"
    assert op.ffmpeg.output_options == ["-r", "30", "-crf", "23", "-preset", "medium", "-c:a", "aac"]
    assert op.description == "Export as original AVI (original)"


def test_export_is_named_output_even_when_not_last(compiler, context):
    pipeline = compiler.compile(
        [ExportCommand(format="webm"), TrimCommand(start_time=0, end_time=5)], context
    )
    export, trim = pipeline.operations

    assert export.output_file == "/work/output.webm"
    assert trim.input_file == "/work/output.webm"
    assert trim.output_file == "/work/temp_1.mp4"


def test_thumbnails_evenly_spaced_away_from_edges(compiler, context):
    [op] = compiler.compile([ThumbnailCommand(count=3)], context).operations

    assert op.params["timestamps"] == pytest.approx([25, 50, 75])
    assert 0 not in op.params["timestamps"]
    assert op.output_file == "/work/thumbnail_%03d.jpg"
    assert op.ffmpeg.output_options == ["-vsync", "vfr", "-frames:v", "3"]
    assert op.ffmpeg.video_filter.startswith("select='gte(t,25)*(isnan(prev_t)+lt(prev_t,25))+")


def test_thumbnails_at_explicit_timestamps(compiler, context):
    [op] = compiler.compile([ThumbnailCommand(count=5, timestamps=[1.5, 30])], context).operations

    assert op.params["timestamps"] == [1.5, 30]
    assert op.ffmpeg.video_filter == (
        "select='gte(t,1.5)*(isnan(prev_t)+lt(prev_t,1.5))"
        "+gte(t,30)*(isnan(prev_t)+lt(prev_t,30))',scale=1920:-1"
    )
    assert op.description == "Generate 2 thumbnail(s)"


def test_thumbnails_without_duration_sample_each_second(compiler):
    [op] = compiler.compile([ThumbnailCommand(count=0)], None).operations

    assert op.ffmpeg.video_filter == "fps=1,scale=1920:-1"
    assert op.params["count"] == 1
