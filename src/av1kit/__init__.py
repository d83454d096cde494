"""
Batch AV1 encoding on top of ffmpeg and ffprobe.

This package converts folders of video files to AV1 (SVT-AV1) with optional
Opus audio. All media work is done by the external ffmpeg/ffprobe binaries;
the package decides how to call them.

The module is organized into several categories:
- Resolving encode parameters (color metadata, keyframe interval, audio plan)
  from ffprobe metadata.
- Probing, verifying, repairing and encoding files with ffmpeg.
- Batch processing of a source folder into a destination folder.
- Installing a prebuilt ffmpeg build.
"""

__version__ = "1.0.0"

# Debug flag for controlling verbose output
DEBUG: bool = False

__all__ = ["__version__", "DEBUG"]
