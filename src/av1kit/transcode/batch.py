"""
This module provides per-file AV1 encoding and batch orchestration over a
source folder.

Each file is processed independently: an existing output is skipped, the
source is optionally verified and repaired, its streams are probed, encode
parameters are resolved and ffmpeg is run. A file whose parameters cannot be
resolved is reported as failed and the batch moves on.
"""
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from tqdm import tqdm

from av1kit.params import MetadataError, build_encode_parameters
from av1kit.utils import (
    DEFAULT_AUDIO_CODEC,
    DEFAULT_CRF,
    DEFAULT_PRESET,
    STATUS_DRY_RUN,
    STATUS_FAIL,
    STATUS_OK,
    STATUS_SKIP,
    VIDEO_CODEC,
    LogLevel,
    logger,
)
from av1kit.utils.constants import AV1_PARAMS, CONTENT_LIVE_ACTION
from av1kit.utils.file_util import output_filename
from . import core

Result = Tuple[Path, Optional[Path], str]


@dataclass(frozen=True)
class EncodeOptions:
    """Run-wide settings applied to every file in a batch."""
    crf: int = DEFAULT_CRF
    preset: int = DEFAULT_PRESET
    svtav1_params: str = AV1_PARAMS[CONTENT_LIVE_ACTION]
    verify: bool = True
    transcode_audio: bool = True
    audio_codec: str = DEFAULT_AUDIO_CODEC
    video_codec: str = VIDEO_CODEC
    dry_run: bool = False
    debug: bool = False


@dataclass
class BatchSummary:
    results: List[Result] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for _, _, s in self.results if s.startswith(status))

    @property
    def unprocessed(self) -> List[Path]:
        """Outputs (or sources, when no output exists) of files that were skipped or failed."""
        return [dst or src for src, dst, s in self.results
                if s.startswith(STATUS_SKIP) or s.startswith(STATUS_FAIL)]


def iter_video_files(root: Path, file_type: str) -> List[Path]:
    """Find all files with extension ``file_type`` recursively, sorted by path."""
    suffix = "." + file_type.lstrip(".").lower()
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() == suffix)


def _verify_and_fix(src: Path) -> None:
    errors = core.verify_video(src)
    if not errors:
        logger.log("verify.clean", LogLevel.INFO, file=src.name)
        return

    logger.log("verify.errors", LogLevel.WARN, file=src.name, errors=errors[:500])
    if core.fix_video(src):
        logger.log("verify.fixed", LogLevel.INFO, file=src.name, msg="original replaced with fixed copy")
    else:
        logger.log("verify.keep_original", LogLevel.WARN, file=src.name, msg="fix failed, keeping original")


def transcode_one(src: Path, dst_root: Path, options: EncodeOptions) -> Result:
    """Encode a single video file into ``dst_root``."""
    dst = dst_root / output_filename(src.name)

    if dst.exists():
        return src, dst, f"{STATUS_SKIP} (already exists)"

    # Fixing rewrites the source, so a dry run only probes.
    if options.verify and not options.dry_run:
        _verify_and_fix(src)

    video_probe = core.probe_stream(src, "video")
    if not video_probe:
        return src, None, f"{STATUS_FAIL} (ffprobe found no video stream)"
    audio_probe = core.probe_stream(src, "audio") if options.transcode_audio else ""

    try:
        params = build_encode_parameters(
            video_probe,
            audio_probe,
            crf=options.crf,
            preset=options.preset,
            target_audio_codec=options.audio_codec,
            transcode_audio=options.transcode_audio,
        )
    except MetadataError as e:
        logger.log("params.failed", LogLevel.ERROR, file=src.name, error=str(e))
        return src, None, f"{STATUS_FAIL} (metadata: {e})"

    if options.dry_run:
        logger.log("encode.dry_run", LogLevel.INFO, file=src.name, dst=dst.name, gop=params.gop)
        return src, dst, STATUS_DRY_RUN

    code, _, _ = core.transcode_video(
        src,
        dst,
        params,
        options.svtav1_params,
        duration=core.probe_duration(src),
        debug=options.debug,
        video_codec=options.video_codec,
    )
    if code != 0:
        return src, None, f"{STATUS_FAIL} (ffmpeg code {code})"

    return src, dst, STATUS_OK


def run_batch(files: List[Path], dst_root: Path, options: EncodeOptions, workers: int = 1,
              should_stop: Callable[[], bool] = lambda: False,
              executor_hook: Callable[[Optional[ThreadPoolExecutor]], None] = lambda ex: None) -> BatchSummary:
    """
    Encode ``files`` into ``dst_root`` with ``workers`` concurrent ffmpeg processes.

    ``should_stop`` is polled between completions so a signal handler can stop
    the loop; ``executor_hook`` receives the executor (and None when done) so the
    caller can shut it down on exit.
    """
    dst_root.mkdir(parents=True, exist_ok=True)
    summary = BatchSummary()

    executor = ThreadPoolExecutor(max_workers=max(1, workers))
    executor_hook(executor)
    try:
        futs = {executor.submit(transcode_one, src, dst_root, options): src for src in files}
        for fut in tqdm(as_completed(futs), total=len(futs), desc="Encoding", unit="file"):
            if fut.cancelled():
                continue
            try:
                src, dst, status = fut.result()
            except Exception as e:
                src, dst, status = futs[fut], None, f"{STATUS_FAIL} ({type(e).__name__}: {e})"
            summary.results.append((src, dst, status))
            logger.log("batch.result", LogLevel.INFO, file=src.name, status=status,
                       dst=str(dst) if dst else None)
            if should_stop():
                logger.safe_print("Shutdown requested, stopping new jobs...")
                break
    finally:
        executor.shutdown(wait=True, cancel_futures=True)
        executor_hook(None)

    return summary
