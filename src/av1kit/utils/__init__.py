"""
Constants, logging and system helpers shared by the AV1 encode pipeline.

This package collects the configuration constants (with `.env` overrides),
the structured logger, subprocess helpers and small file/time utilities used
by the parameter resolvers, the transcode layer and the installer.
"""

from .constants import (
    DEFAULT_AUDIO_CODEC,
    DEFAULT_CRF,
    DEFAULT_GOP,
    DEFAULT_PRESET,
    STATUS_DRY_RUN,
    STATUS_FAIL,
    STATUS_OK,
    STATUS_SKIP,
    VIDEO_CODEC,
    WORKERS,
)
from .logger import LogLevel

__all__ = [
    "DEFAULT_AUDIO_CODEC",
    "DEFAULT_CRF",
    "DEFAULT_GOP",
    "DEFAULT_PRESET",
    "STATUS_DRY_RUN",
    "STATUS_FAIL",
    "STATUS_OK",
    "STATUS_SKIP",
    "VIDEO_CODEC",
    "WORKERS",
    "LogLevel",
]
