"""Fixed ffmpeg filter tables and small formatting helpers used by the compiler."""

from __future__ import annotations

import re

# Colour-grading presets: each is a fixed chain of filter stages.
COLOR_PRESETS: dict[str, list[str]] = {
    "cinematic": [
        "eq=contrast=1.1:brightness=0.05:saturation=0.9",
        "curves=preset=cross_process",
        "colorbalance=rs=0.1:gs=-0.05:bs=-0.1",
    ],
    "vintage": [
        "eq=saturation=0.7:contrast=1.1",
        "colorbalance=rs=0.2:gs=0.1:bs=-0.1",
        "curves=preset=vintage",
    ],
    "vibrant": [
        "eq=saturation=1.4:contrast=1.1:brightness=0.02",
        "vibrance=intensity=0.3",
    ],
    "moody": [
        "eq=contrast=1.2:brightness=-0.05:saturation=0.7",
        "colorbalance=rs=-0.1:gs=-0.1:bs=0.15",
    ],
    "warm": [
        "colortemperature=temperature=6500",
        "eq=saturation=1.1",
        "colorbalance=rs=0.1:gs=0.05:bs=-0.1",
    ],
    "cool": [
        "colortemperature=temperature=4500",
        "eq=saturation=0.95",
        "colorbalance=rs=-0.1:gs=0:bs=0.1",
    ],
    "noir": [
        "eq=saturation=0:contrast=1.3:brightness=-0.1",
        "curves=preset=darker",
    ],
}

NEUTRAL_TEMPERATURE_K = 6500
WARM_SLOPE_K = 3000
COOL_SLOPE_K = 2500

# Export targets, scaled down to fit while keeping the aspect ratio.
RESOLUTIONS: dict[str, tuple[int, int]] = {
    "4k": (3840, 2160),
    "1080p": (1920, 1080),
    "720p": (1280, 720),
    "480p": (854, 480),
}

# Crop width expressed as a fraction of input height.
ASPECT_RATIOS: dict[str, str] = {
    "16:9": "16/9",
    "9:16": "9/16",
    "1:1": "1/1",
    "4:5": "4/5",
    "21:9": "21/9",
}

QUALITY_PRESETS: dict[str, list[str]] = {
    "high": ["-crf", "18", "-preset", "slow"],
    "medium": ["-crf", "23", "-preset", "medium"],
    "low": ["-crf", "28", "-preset", "fast"],
}

# VP9 constant-quality mode needs -b:v 0; webm cannot carry AAC.
WEBM_QUALITY_PRESETS: dict[str, list[str]] = {
    "high": ["-c:v", "libvpx-vp9", "-crf", "24", "-b:v", "0"],
    "medium": ["-c:v", "libvpx-vp9", "-crf", "31", "-b:v", "0"],
    "low": ["-c:v", "libvpx-vp9", "-crf", "38", "-b:v", "0"],
}

# ASS numpad alignment
CAPTION_ALIGNMENT = {"bottom": 2, "center": 5, "top": 8}
DEFAULT_CAPTION_ALIGNMENT = CAPTION_ALIGNMENT["bottom"]

_ASS_WHITE = "00FFFFFF"
_HEX_DIGITS = re.compile(r"^[0-9A-Fa-f]+$")

# option-value specials, then filtergraph specials
_OPTION_SPECIAL = "\\':"
_GRAPH_SPECIAL = "\\'[],;"


def fmt_number(value: float) -> str:
    """Render a number for a filter argument: ``10`` not ``10.0``, ``1.2`` not ``1.2000000000000002``."""
    value = round(float(value), 6)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def format_time(seconds: float) -> str:
    """Format seconds as ``m:ss`` for human-readable descriptions."""
    mins = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{mins}:{secs:02d}"


def _backslash_escape(text: str, special: str) -> str:
    return "".join(f"\\{ch}" if ch in special else ch for ch in text)


def escape_filter_value(value: str) -> str:
    """Escape *value* for use as a filter option inside a ``-vf`` graph.

    ffmpeg unescapes twice: once when splitting the graph, once when
    splitting the filter's ``key=value`` options.
    """
    return _backslash_escape(_backslash_escape(value, _OPTION_SPECIAL), _GRAPH_SPECIAL)


def hex_to_ass(color: str) -> str:
    """Convert ``#RRGGBB`` / ``#RRGGBBAA`` to the ASS ``AABBGGRR`` form.

    ASS alpha is inverted (``00`` is opaque). Anything else is opaque white.
    """
    clean = color.strip().removeprefix("#")
    if len(clean) not in (6, 8) or not _HEX_DIGITS.match(clean):
        return _ASS_WHITE
    red, green, blue = clean[0:2], clean[2:4], clean[4:6]
    alpha = "00" if len(clean) == 6 else f"{255 - int(clean[6:8], 16):02X}"
    return f"{alpha}{blue}{green}{red}".upper()


def temperature_kelvin(value: float) -> float:
    """Map a signed -1..1 temperature adjustment to an absolute colour temperature."""
    slope = WARM_SLOPE_K if value > 0 else COOL_SLOPE_K
    return NEUTRAL_TEMPERATURE_K + value * slope
