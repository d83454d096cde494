"""Video transcoding to AV1.

This package provides two levels of functionality:
- core: Low-level ffprobe/ffmpeg utilities (probing, verification, command building, encoding)
- batch: High-level orchestration (single file processing, file discovery, batch runs)
"""

from .core import (
    audio_args,
    build_ffmpeg_cmd,
    build_ffprobe_cmd,
    fix_video,
    probe_duration,
    probe_stream,
    transcode_video,
    verify_video,
)
from .batch import (
    BatchSummary,
    EncodeOptions,
    iter_video_files,
    run_batch,
    transcode_one,
)

__all__ = [
    # Probing
    "build_ffprobe_cmd",
    "probe_stream",
    "probe_duration",
    # Verification
    "verify_video",
    "fix_video",
    # Encoding
    "audio_args",
    "build_ffmpeg_cmd",
    "transcode_video",
    # Batch
    "BatchSummary",
    "EncodeOptions",
    "iter_video_files",
    "run_batch",
    "transcode_one",
]
