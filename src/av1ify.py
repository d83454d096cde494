"""
AV1 batch encoder: scan a folder and encode every matching file to AV1.

Also installs a prebuilt ffmpeg build with the ``install-ffmpeg`` command.
"""

import argparse
import atexit
import signal
import sys
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import av1kit as av1kit_module
from av1kit import install, transcode
from av1kit.utils import LogLevel, logger, system_util, time_util
from av1kit.utils.constants import (
    AV1_PARAMS,
    CONTENT_ANIME,
    CONTENT_LIVE_ACTION,
    CRF_RANGE,
    DEFAULT_AUDIO_CODEC,
    DEFAULT_CRF,
    DEFAULT_DST_LOCATION,
    DEFAULT_FILE_TYPE,
    DEFAULT_LOG_FILE,
    DEFAULT_PRESET,
    DEFAULT_SRC_LOCATION,
    FFMPEG_INSTALL_DIR,
    FFMPEG_URL,
    PRESET_RANGE,
    PROFILE_DIR,
    STATUS_DRY_RUN,
    STATUS_FAIL,
    STATUS_OK,
    STATUS_SKIP,
    VIDEO_CODEC,
    WORKERS,
)

_executor: ThreadPoolExecutor | None = None
_shutdown_requested: bool = False


def _signal_handler(signum, frame):
    """Stop scheduling new encodes; running ffmpeg processes finish."""
    global _shutdown_requested
    _shutdown_requested = True
    if getattr(av1kit_module, "DEBUG", False):
        try:
            sig_name = signal.Signals(signum).name
        except ValueError:
            sig_name = str(signum)
        logger.safe_print(f"[DEBUG] Signal received: {sig_name} ({signum})")
    logger.safe_print("\nShutdown signal received. Waiting for current encodes to complete...")

    if _executor:
        _executor.shutdown(wait=False, cancel_futures=True)


def _cleanup():
    if _executor:
        _executor.shutdown(wait=False, cancel_futures=True)


def _set_executor(executor):
    global _executor
    _executor = executor


class _TeeStream:
    def __init__(self, *streams):
        self._streams = streams

    def write(self, data):
        for stream in self._streams:
            stream.write(data)
        return len(data)

    def flush(self):
        for stream in self._streams:
            stream.flush()

    def isatty(self):
        return any(getattr(stream, "isatty", lambda: False)() for stream in self._streams)


def _tee_to_file(log_file: str) -> Path:
    log_path = Path(log_file).expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handle = open(log_path, "a", encoding="utf-8", buffering=1)
    sys.stdout = _TeeStream(sys.stdout, handle)
    sys.stderr = _TeeStream(sys.stderr, handle)
    atexit.register(handle.close)
    return log_path


def _bounded_int(low: int, high: int):
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"{value!r} is not an integer")
        if not low <= number <= high:
            raise argparse.ArgumentTypeError(f"{number} is outside {low}..{high}")
        return number
    return parse


def _print_banner(args, src_root: Path, dst_root: Path) -> None:
    logger.safe_print("====================")
    logger.safe_print("Data provided:")
    logger.safe_print(f"    File type: \"{args.file_type}\"")
    logger.safe_print(f"    Source file location: \"{src_root}\"")
    logger.safe_print(f"    Destination file location: \"{dst_root}\"")
    logger.safe_print(f"    CRF value: {args.crf}")
    logger.safe_print(f"    Codec: {VIDEO_CODEC}")
    logger.safe_print(f"    Preset: {args.preset}")
    logger.safe_print(f"    AV1 Parameters ({args.content}): \"{AV1_PARAMS[args.content]}\"")
    logger.safe_print(f"    Audio: {'copy' if args.copy_audio else args.audio_codec}")
    logger.safe_print(f"    Performing verification of file before encoding it: {not args.no_verify}")
    logger.safe_print("====================")


def _print_unprocessed(summary: transcode.BatchSummary) -> None:
    unprocessed = summary.unprocessed
    if not unprocessed:
        return
    if len(unprocessed) == 1:
        logger.safe_print("\nThe following file was not processed:")
    else:
        logger.safe_print("\nThe following files were not processed:")
    for path in unprocessed:
        logger.safe_print(f"- {path}")


def cmd_encode(args) -> int:
    av1kit_module.DEBUG = args.debug
    logger.set_log_level(LogLevel.DEBUG if args.debug else LogLevel.INFO)

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)
    atexit.register(_cleanup)

    system_util.which_or_die("ffmpeg")
    system_util.which_or_die("ffprobe")

    src_root = Path(args.src).expanduser().resolve()
    dst_root = Path(args.dst).expanduser().resolve()
    if not src_root.is_dir():
        logger.log("startup.error", LogLevel.ERROR, msg="Source directory does not exist", src=str(src_root))
        return 2

    _print_banner(args, src_root, dst_root)

    logger.safe_print(f"Scanning directory: \"{src_root}\" for files of type: \"{args.file_type}\"")
    files = transcode.iter_video_files(src_root, args.file_type)
    if not files:
        logger.safe_print(f"No files of type '{args.file_type}' found in directory: \"{src_root}\".")
        return 1

    options = transcode.EncodeOptions(
        crf=args.crf,
        preset=args.preset,
        svtav1_params=AV1_PARAMS[args.content],
        verify=not args.no_verify,
        transcode_audio=not args.copy_audio,
        audio_codec=args.audio_codec,
        dry_run=args.dry_run,
        debug=args.debug,
    )

    start_time = time.time()
    logger.log("av1ify.start", LogLevel.INFO, files_found=len(files), src=str(src_root), dst=str(dst_root),
               workers=args.workers, dry_run=args.dry_run)

    summary = transcode.run_batch(files, dst_root, options, workers=args.workers,
                                  should_stop=lambda: _shutdown_requested,
                                  executor_hook=_set_executor)

    _print_unprocessed(summary)
    logger.log("av1ify.end", LogLevel.INFO,
               runtime=time_util.format_runtime(time.time() - start_time),
               ok=summary.count(STATUS_OK),
               skip=summary.count(STATUS_SKIP),
               fail=summary.count(STATUS_FAIL),
               dry_run=summary.count(STATUS_DRY_RUN))
    return 0


def cmd_install(args) -> int:
    try:
        version = install.install_ffmpeg(
            url=args.url,
            install_dir=Path(args.install_dir),
            download_dir=Path(args.download_dir) if args.download_dir else None,
            profile_dir=Path(args.profile_dir),
        )
    except install.InstallError as e:
        logger.log("install.failed", LogLevel.ERROR, error=str(e))
        return 1
    logger.safe_print(f"{version}\n\nffmpeg installed successfully! Open a new shell to pick up the PATH changes.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="av1ify",
        description="Batch encode video files to AV1 (SVT-AV1) with ffmpeg.",
        epilog="Example: av1ify encode --src ./todo --dst ./done --crf 23 --preset 3",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {av1kit_module.__version__}")
    parser.add_argument("--log-file", default=DEFAULT_LOG_FILE,
                        help="Also write console output to this file (default: $AV1IFY_LOG_FILE)")
    sub = parser.add_subparsers(dest="command", required=True)

    enc = sub.add_parser("encode", help="Encode every matching file under --src into --dst")
    enc.add_argument("--src", default=DEFAULT_SRC_LOCATION, help=f"Source folder (default: {DEFAULT_SRC_LOCATION})")
    enc.add_argument("--dst", default=DEFAULT_DST_LOCATION,
                     help=f"Destination folder (default: {DEFAULT_DST_LOCATION})")
    enc.add_argument("--file-type", default=DEFAULT_FILE_TYPE,
                     help=f"File extension to search for (default: {DEFAULT_FILE_TYPE})")
    enc.add_argument("--crf", type=_bounded_int(*CRF_RANGE), default=DEFAULT_CRF,
                     help=f"Constant Rate Factor, lower is better quality and larger (default: {DEFAULT_CRF}). "
                          "18-20 is near visually lossless, 21-24 is high quality with better compression.")
    enc.add_argument("--preset", type=_bounded_int(*PRESET_RANGE), default=DEFAULT_PRESET,
                     help=f"SVT-AV1 preset, lower is slower and more efficient (default: {DEFAULT_PRESET})")
    enc.add_argument("--content", choices=[CONTENT_LIVE_ACTION, CONTENT_ANIME], default=CONTENT_LIVE_ACTION,
                     help="Content type selecting the SVT-AV1 tuning (default: live-action)")
    enc.add_argument("--no-verify", action="store_true",
                     help="Skip the decode check and timestamp/container fix before encoding")
    enc.add_argument("--copy-audio", action="store_true", help="Always copy audio instead of re-encoding")
    enc.add_argument("--audio-codec", default=DEFAULT_AUDIO_CODEC,
                     help=f"Target audio codec for re-encoded audio (default: {DEFAULT_AUDIO_CODEC})")
    enc.add_argument("--workers", type=_bounded_int(1, 64), default=WORKERS,
                     help=f"Concurrent encodes (default: {WORKERS})")
    enc.add_argument("--dry-run", action="store_true", help="Show what would be encoded without running ffmpeg")
    enc.add_argument("--debug", action="store_true", help="Enable debug output")
    enc.set_defaults(func=cmd_encode)

    ins = sub.add_parser("install-ffmpeg", help="Download and install a prebuilt ffmpeg build")
    ins.add_argument("--url", default=FFMPEG_URL, help="Tarball URL")
    ins.add_argument("--install-dir", default=FFMPEG_INSTALL_DIR,
                     help=f"Installation directory (default: {FFMPEG_INSTALL_DIR})")
    ins.add_argument("--download-dir", help="Download directory (default: ~/Downloads of the invoking user)")
    ins.add_argument("--profile-dir", default=PROFILE_DIR,
                     help=f"Directory for PATH profile scripts (default: {PROFILE_DIR})")
    ins.set_defaults(func=cmd_install)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.log_file:
        print(f"Logging to: {_tee_to_file(args.log_file)}")
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
