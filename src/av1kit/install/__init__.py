"""Installation of a prebuilt ffmpeg build with SVT-AV1 and libopus."""

from .core import InstallError, default_download_dir, install_ffmpeg

__all__ = ["InstallError", "default_download_dir", "install_ffmpeg"]
