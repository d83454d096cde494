"""
Output path helpers for encoded files.

The encoded copy keeps the source name with the codec tag swapped for ``AV1``
when one is present, otherwise ``AV1`` is tagged next to the resolution token
(``Movie.1080p.x265.mkv`` -> ``Movie.1080p.AV1.mkv``,
``Show [720p].mp4`` -> ``Show [720p][AV1].mkv``,
``home_video.mp4`` -> ``home_video_AV1.mkv``).
"""
import re
from pathlib import Path

from av1kit.utils.constants import (
    CODEC_TOKEN_REGEX,
    FIXED_SUFFIX,
    OUTPUT_CODEC_TAG,
    OUTPUT_EXTENSION,
    RESOLUTION_TOKEN_REGEX,
)


def output_filename(filename: str) -> str:
    """Build the AV1 output file name for a source file name."""
    stem = Path(filename).stem

    codec = CODEC_TOKEN_REGEX.search(stem)
    if codec:
        tagged = re.sub(re.escape(codec.group(0)), OUTPUT_CODEC_TAG, stem, count=1, flags=re.IGNORECASE)
        return f"{tagged}{OUTPUT_EXTENSION}"

    resolution = RESOLUTION_TOKEN_REGEX.search(stem)
    if resolution:
        token = resolution.group(0)
        first, last = token[0], token[-1]
        if first in (".", " "):
            return f"{stem}{first}{OUTPUT_CODEC_TAG}{OUTPUT_EXTENSION}"
        return f"{stem}{first}{OUTPUT_CODEC_TAG}{last}{OUTPUT_EXTENSION}"

    return f"{stem}_{OUTPUT_CODEC_TAG}{OUTPUT_EXTENSION}"


def fixed_path(src: Path) -> Path:
    """Sibling path used for the remuxed copy of a damaged source."""
    return src.with_name(f"{src.stem}{FIXED_SUFFIX}")
