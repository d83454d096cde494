"""
Functions to probe media files and drive ffmpeg for AV1 encodes.

This module runs ffprobe in flat ``key=value`` mode to collect the metadata the
parameter resolvers need, verifies and repairs sources with a stream-copy
remux, turns an `EncodeParameterSet` into an ffmpeg command line and runs the
encode while logging progress.
"""
import re
import shutil
import subprocess
import time
from pathlib import Path
from typing import Optional, List, Tuple

from av1kit.params import EncodeParameterSet, Passthrough, Transcode
from av1kit.utils import system_util, logger, time_util, LogLevel
from av1kit.utils.constants import (
    AUDIO_ENCODERS,
    AUDIO_PROBE_FIELDS,
    PIX_FMT,
    PROGRESS_INTERVAL,
    VIDEO_CODEC,
    VIDEO_PROBE_FIELDS,
)
from av1kit.utils.file_util import fixed_path

_STREAM_SELECTORS = {
    "video": ("v:0", VIDEO_PROBE_FIELDS),
    "audio": ("a:0", AUDIO_PROBE_FIELDS),
}


def build_ffprobe_cmd(path: Path, kind: str) -> List[str]:
    """Build the flat-output ffprobe query for the first ``video`` or ``audio`` stream."""
    if kind not in _STREAM_SELECTORS:
        raise ValueError(f"unknown stream kind: {kind!r}")
    selector, fields = _STREAM_SELECTORS[kind]
    return [
        "ffprobe", "-v", "error",
        "-select_streams", selector,
        "-show_entries", "stream=" + ",".join(fields),
        "-of", "default=noprint_wrappers=1",
        str(path),
    ]


def probe_stream(path: Path, kind: str) -> str:
    """Return flat probe text for one stream kind, or "" if ffprobe fails."""
    code, out, err = system_util.run_cmd(build_ffprobe_cmd(path, kind))
    if code != 0:
        logger.log("probe.failed", LogLevel.WARN, file=path.name, stream=kind, exit_code=code,
                   error=err.strip()[:200])
        return ""
    return out


def probe_duration(path: Path) -> Optional[float]:
    """Container duration in seconds, used for progress percentages."""
    cmd = [
        "ffprobe", "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
    ]
    code, out, _ = system_util.run_cmd(cmd)
    if code != 0:
        return None
    try:
        return float(out.strip())
    except ValueError:
        return None


def verify_video(path: Path) -> str:
    """Decode the whole file to the null muxer and return any reported errors."""
    cmd = ["ffmpeg", "-nostdin", "-v", "error", "-i", str(path), "-f", "null", "-"]
    logger.log("verify.start", LogLevel.DEBUG, file=path.name)
    code, out, err = system_util.run_cmd(cmd)
    return (out + err).strip()


def fix_video(path: Path) -> bool:
    """
    Remux ``path`` with regenerated timestamps and replace it on success.

    Fixes timestamp, minor corruption and container problems. Damaged frames
    need a full re-encode and are not repaired by this.
    """
    fixed = fixed_path(path)
    cmd = ["ffmpeg", "-nostdin", "-y", "-v", "error", "-i", str(path),
           "-c", "copy", "-map", "0", "-fflags", "+genpts", str(fixed)]
    code, _, err = system_util.run_cmd(cmd)
    if code != 0:
        logger.log("fix.failed", LogLevel.ERROR, file=path.name, exit_code=code, error=err.strip()[:200])
        fixed.unlink(missing_ok=True)
        return False

    shutil.move(str(fixed), str(path))
    logger.log("fix.complete", LogLevel.INFO, file=path.name)
    return True


def audio_args(plan) -> List[str]:
    """ffmpeg audio flags for an audio plan."""
    if isinstance(plan, Passthrough):
        return ["-c:a", "copy"]
    if isinstance(plan, Transcode):
        # The plan is resolved from the first audio stream; other tracks are copied.
        args = ["-c:a", "copy", "-c:a:0", AUDIO_ENCODERS.get(plan.codec, plan.codec),
                "-b:a:0", f"{plan.bitrate_kbps}k"]
        if plan.channel_layout:
            args += ["-filter:a:0", f"aformat=channel_layouts={plan.channel_layout}"]
        return args
    raise TypeError(f"unsupported audio plan: {plan!r}")


def build_ffmpeg_cmd(src: Path, dst: Path, params: EncodeParameterSet, svtav1_params: str,
                     video_codec: str = VIDEO_CODEC) -> List[str]:
    """Build ffmpeg command for encoding ``src`` to AV1 at ``dst``."""
    color = params.color
    cmd = [
        "ffmpeg",
        "-nostdin",
        "-hide_banner",
        "-loglevel", "error",
        "-stats",
        "-i", str(src),
        "-map", "0:v",
        "-map", "0:a?",
        "-c:v", video_codec,
        "-pix_fmt", PIX_FMT,
        "-colorspace", color.space,
        "-color_primaries", color.primaries,
        "-color_trc", color.transfer,
        "-color_range", color.range,
        "-crf", str(params.crf),
        "-preset", str(params.preset),
        "-g", str(params.gop),
        "-svtav1-params", svtav1_params,
    ]
    cmd += audio_args(params.audio)
    cmd += ["-map", "0:s?", "-c:s", "copy", "-movflags", "+faststart", str(dst)]
    return cmd


def _log_progress(line: str, src: Path, duration: Optional[float]) -> bool:
    """Log one ffmpeg ``-stats`` line; return False if it could not be parsed."""
    time_match = re.search(r'time=(\S+)', line)
    speed_match = re.search(r'speed=\s*(\S+)', line)
    if not (time_match and speed_match):
        return False

    speed_str = speed_match.group(1).rstrip('x')
    elapsed_seconds = time_util.parse_timestamp(time_match.group(1))
    if elapsed_seconds is None:
        return False

    if not duration:
        logger.log("encode.progress", LogLevel.INFO, file=src.name, pct="N/A", eta="N/A",
                   speed=f"{speed_str}x")
        return True

    percent = (elapsed_seconds / duration) * 100
    try:
        speed_val = float(speed_str)
    except ValueError:
        speed_val = 0.0

    if speed_val > 0:
        logger.log("encode.progress", LogLevel.INFO,
                   file=src.name,
                   pct=round(percent, 1),
                   eta=time_util.get_eta_single_file(duration, speed_val, elapsed_seconds),
                   speed=f"{speed_str}x")
    else:
        logger.log("encode.progress", LogLevel.INFO, file=src.name, pct=round(percent, 1),
                   speed=f"{speed_str}x")
    return True


def transcode_video(src: Path, dst: Path, params: EncodeParameterSet, svtav1_params: str,
                    duration: Optional[float] = None, debug: bool = False,
                    video_codec: str = VIDEO_CODEC) -> Tuple[int, str, str]:
    """
    Encode a video file to AV1 with logging and progress updates.

    Args:
        src: Source video file path
        dst: Destination video file path
        params: Resolved encode parameters for ``src``
        svtav1_params: SVT-AV1 tuning string for the content type
        duration: Source duration in seconds, enables percentage/ETA progress
        debug: Log the full command and parameter details
        video_codec: ffmpeg video encoder name

    Returns:
        Tuple of (exit_code, stdout, stderr)
    """
    dst.parent.mkdir(parents=True, exist_ok=True)
    cmd = build_ffmpeg_cmd(src, dst, params, svtav1_params, video_codec)

    logger.log("encode.start", LogLevel.INFO, file=src.name, dst=dst.name)
    if debug:
        audio = params.audio
        logger.log("encode.details", LogLevel.DEBUG,
                   encoder=video_codec,
                   crf=params.crf,
                   preset=params.preset,
                   gop=params.gop,
                   color_space=params.color.space,
                   color_primaries=params.color.primaries,
                   color_trc=params.color.transfer,
                   color_range=params.color.range,
                   audio="copy" if isinstance(audio, Passthrough) else f"{audio.codec} {audio.bitrate_kbps}k",
                   cmd=" ".join(cmd))

    process = subprocess.Popen(
        cmd,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True
    )

    stderr_output = []
    last_progress_log = time.time()

    # Text mode translates the \r-terminated -stats lines into separate lines.
    while True:
        line = process.stderr.readline()
        if not line and process.poll() is not None:
            break
        if not line:
            continue

        stderr_output.append(line)
        if "time=" in line and "speed=" in line:
            now = time.time()
            if now - last_progress_log >= PROGRESS_INTERVAL:
                _log_progress(line, src, duration)
                last_progress_log = now

    stdout, remaining_stderr = process.communicate()
    stderr_output.append(remaining_stderr)

    stderr_text = ''.join(stderr_output)
    code = process.returncode

    if code != 0:
        logger.log("encode.failed", LogLevel.ERROR,
                   file=src.name,
                   exit_code=code,
                   error=stderr_text.strip()[-200:] if debug else "see logs")
        dst.unlink(missing_ok=True)
    else:
        logger.log("encode.complete", LogLevel.INFO, file=src.name, dst=dst.name)

    return code, stdout, stderr_text
