"""
Constants and configuration settings for AV1 batch encoding.

This module contains the defaults used by the encode pipeline: source and
destination folders, encoder quality knobs, SVT-AV1 tuning strings, the
sentinel values ffprobe emits for missing metadata, processing status codes
and the prebuilt ffmpeg download location used by the installer. Most run
settings can be overridden from the environment or a `.env` file.
"""

import os
import re

from dotenv import load_dotenv

load_dotenv()

# Folder defaults
DEFAULT_SRC_LOCATION = os.getenv("AV1IFY_SRC", "./todo")
DEFAULT_DST_LOCATION = os.getenv("AV1IFY_DST", "./done")
DEFAULT_FILE_TYPE = os.getenv("AV1IFY_FILE_TYPE", "mkv")
DEFAULT_LOG_FILE = os.getenv("AV1IFY_LOG_FILE")

# Run settings
WORKERS = int(os.getenv("AV1IFY_WORKERS", "1"))
PROGRESS_INTERVAL = 60  # seconds between progress log lines for one encode

# Video encoder settings
VIDEO_CODEC = "libsvtav1"
PIX_FMT = "yuv420p10le"
DEFAULT_CRF = int(os.getenv("AV1IFY_CRF", "23"))
DEFAULT_PRESET = int(os.getenv("AV1IFY_PRESET", "3"))
CRF_RANGE = (0, 63)
PRESET_RANGE = (-2, 13)

# SVT-AV1 tuning per content type
CONTENT_LIVE_ACTION = "live-action"
CONTENT_ANIME = "anime"
AV1_PARAMS = {
    CONTENT_LIVE_ACTION: (
        "tune=0:enable-overlays=1:scd=1:scm=0:film-grain=2:film-grain-denoise=0:enable-tf=0:"
        "enable-tpl-la=1:enable-dlf=1:enable-cdef=1:enable-restoration=1:aq-mode=2"
    ),
    CONTENT_ANIME: (
        "tune=1:enable-overlays=1:scd=1:scm=0:film-grain=0:film-grain-denoise=0:enable-tf=0:"
        "enable-tpl-la=1:enable-dlf=1:enable-cdef=1:enable-restoration=1:aq-mode=2"
    ),
}

# Audio settings
DEFAULT_AUDIO_CODEC = os.getenv("AV1IFY_AUDIO_CODEC", "opus")
AUDIO_ENCODERS = {
    "opus": "libopus",
    "aac": "aac",
    "ac3": "ac3",
    "eac3": "eac3",
    "flac": "flac",
    "vorbis": "libvorbis",
}
AUDIO_STEREO_KBPS = 256
AUDIO_PER_CHANNEL_KBPS = 80
AUDIO_DEFAULT_CHANNELS = 2
AUDIO_CHANNEL_LAYOUTS = {6: "5.1", 8: "7.1"}

# GOP settings
DEFAULT_GOP = 240
GOP_SECONDS = 10

# Sentinel values ffprobe reports for unknown metadata
COLOR_SENTINELS = {"unknown", "N/A"}
FRAME_RATE_SENTINELS = {"0/0", "N/A", "unknown"}

# ffprobe stream fields
VIDEO_PROBE_FIELDS = (
    "color_space",
    "color_primaries",
    "color_transfer",
    "color_range",
    "height",
    "r_frame_rate",
    "avg_frame_rate",
)
AUDIO_PROBE_FIELDS = ("codec_name", "channels", "bit_rate")

# Output file naming
OUTPUT_CODEC_TAG = "AV1"
OUTPUT_EXTENSION = ".mkv"
FIXED_SUFFIX = ".fixed.mkv"
CODEC_TOKEN_REGEX = re.compile(r"[xXhH][._-]?26[45]|HEVC|hevc")
RESOLUTION_TOKEN_REGEX = re.compile(r".\d+p.")

# Prebuilt ffmpeg installer
FFMPEG_URL = (
    "https://github.com/BtbN/FFmpeg-Builds/releases/latest/download/"
    "ffmpeg-master-latest-linux64-gpl-shared.tar.xz"
)
FFMPEG_EXTRACTED_DIR = "ffmpeg-master-latest-linux64-gpl-shared"
FFMPEG_INSTALL_DIR = "/opt/ffmpeg"
PROFILE_DIR = "/etc/profile.d"
PROFILE_SCRIPT = "ffmpeg.sh"
PROFILE_LIB_SCRIPT = "ffmpeg_lib.sh"
DOWNLOAD_CHUNK_SIZE = 1024 * 1024
DOWNLOAD_TIMEOUT = 30

# Processing status codes
STATUS_SKIP = "SKIP"
STATUS_OK = "OK"
STATUS_FAIL = "FAIL"
STATUS_DRY_RUN = "DRY-RUN"
