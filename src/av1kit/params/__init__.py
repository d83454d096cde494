"""Encode parameter resolution from ffprobe metadata.

This package derives the per-file encode parameters handed to ffmpeg from the
flat ``key=value`` output of ffprobe. Every function here is pure: it takes
probe text (or a parsed `ProbeRecord`) and returns a value or raises a typed
error, without touching the filesystem or spawning processes.

Package organization:
- probe: Parsing of flat probe text and field lookup.
- color: Probed color metadata with height-based fallbacks.
- gop: Keyframe interval (ten seconds of frames) from the frame rate.
- audio: Passthrough vs. transcode decision with bitrate and layout.
- core: `EncodeParameterSet`, the aggregate of all of the above.
- errors: `MetadataError` and `InvalidAttribute`.

Example:
    from av1kit import params
    p = params.build_encode_parameters(video_text, audio_text, crf=23, preset=3)
"""
from .audio import (
    AudioPlan,
    PASSTHROUGH,
    Passthrough,
    Transcode,
    resolve_audio_plan,
)
from .color import (
    ColorAttribute,
    FALLBACK_TABLE,
    ResolvedColorParams,
    resolve_color,
    resolve_color_params,
)
from .core import EncodeParameterSet, build_encode_parameters
from .errors import InvalidAttribute, MetadataError, ParameterError
from .gop import estimate_gop, parse_frame_rate
from .probe import ProbeRecord, extract_field, parse_probe_text

__all__ = [
    # Probe parsing
    "ProbeRecord",
    "extract_field",
    "parse_probe_text",
    # Color
    "ColorAttribute",
    "FALLBACK_TABLE",
    "ResolvedColorParams",
    "resolve_color",
    "resolve_color_params",
    # GOP
    "estimate_gop",
    "parse_frame_rate",
    # Audio
    "AudioPlan",
    "PASSTHROUGH",
    "Passthrough",
    "Transcode",
    "resolve_audio_plan",
    # Aggregate
    "EncodeParameterSet",
    "build_encode_parameters",
    # Errors
    "InvalidAttribute",
    "MetadataError",
    "ParameterError",
]
