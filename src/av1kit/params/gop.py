"""Keyframe interval estimation from the probed frame rate."""
import math
import re
from typing import Optional, Union

from av1kit.params.probe import ProbeRecord, as_record
from av1kit.utils import logger, LogLevel
from av1kit.utils.constants import DEFAULT_GOP, FRAME_RATE_SENTINELS, GOP_SECONDS

_RATIO_RE = re.compile(r"^\s*(\d+)\s*/\s*(\d+)\s*$")
_DECIMAL_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)\s*$")


def parse_frame_rate(value: Optional[str]) -> Optional[float]:
    """Parse ``N/D`` or a bare number into frames per second; None if undeterminable."""
    if not value:
        return None
    ratio = _RATIO_RE.match(value)
    if ratio:
        try:
            num, den = int(ratio.group(1)), int(ratio.group(2))
            return num / den if den else None
        except (OverflowError, ValueError):
            return None
    if _DECIMAL_RE.match(value):
        return float(value)
    return None


def _usable(value: Optional[str]) -> bool:
    return bool(value) and value not in FRAME_RATE_SENTINELS


def estimate_gop(probe: Union[str, ProbeRecord]) -> int:
    """
    Estimate a keyframe interval of ten seconds worth of frames.

    ``r_frame_rate`` is preferred and ``avg_frame_rate`` used when it is missing
    or a sentinel. Falls back to `DEFAULT_GOP` when no positive rate is found.
    """
    record = as_record(probe)

    raw = record.find("r_frame_rate")
    source = "r_frame_rate"
    if not _usable(raw):
        raw = record.find("avg_frame_rate")
        source = "avg_frame_rate"

    fps = parse_frame_rate(raw) if _usable(raw) else None
    frames = fps * GOP_SECONDS if fps is not None else math.nan
    if not math.isfinite(frames) or frames <= 0:
        logger.log("gop.default", LogLevel.DEBUG, frame_rate=raw, gop=DEFAULT_GOP)
        return DEFAULT_GOP

    # Round half away from zero; fps is positive here.
    gop = int(math.floor(frames + 0.5))
    logger.log("gop.estimate", LogLevel.TRACE, source=source, fps=round(fps, 3), gop=gop)
    return gop
