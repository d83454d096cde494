"""
Installer for the prebuilt BtbN ffmpeg build.

Downloads the latest ``linux64-gpl-shared`` tarball, unpacks it into the
install directory (``/opt/ffmpeg`` by default, replacing any previous copy) and
drops two ``/etc/profile.d`` scripts that put ``bin/`` on PATH and ``lib/`` on
LD_LIBRARY_PATH. Needs write access to the install and profile directories,
which usually means running under sudo.
"""
import getpass
import os
import shutil
import tarfile
from pathlib import Path
from typing import Optional

import requests
from tqdm import tqdm

from av1kit.utils import system_util, logger, LogLevel
from av1kit.utils.constants import (
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_TIMEOUT,
    FFMPEG_EXTRACTED_DIR,
    FFMPEG_INSTALL_DIR,
    FFMPEG_URL,
    PROFILE_DIR,
    PROFILE_LIB_SCRIPT,
    PROFILE_SCRIPT,
)

ARCHIVE_NAME = "ffmpeg.tar.xz"


class InstallError(Exception):
    """Raised when any installation step fails."""


def default_download_dir() -> Path:
    """``~/Downloads`` of the invoking user, also when running under sudo."""
    sudo_user = os.getenv("SUDO_USER")
    if getpass.getuser() == "root" and sudo_user:
        return Path("/home") / sudo_user / "Downloads"
    return Path.home() / "Downloads"


def _nearest_existing(path: Path) -> Path:
    while not path.exists() and path != path.parent:
        path = path.parent
    return path


def check_writable(path: Path) -> None:
    """Fail early if ``path`` (or the directory that would hold it) is not writable."""
    target = _nearest_existing(path)
    if not os.access(target, os.W_OK):
        raise InstallError(f"no write permission for {target} (try running with sudo)")


def download(url: str, dest: Path, session: Optional[requests.Session] = None) -> Path:
    """Stream ``url`` to ``dest`` with a progress bar."""
    http = session or requests
    try:
        with http.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT) as resp:
            resp.raise_for_status()
            total = int(resp.headers.get("content-length", 0)) or None
            with open(dest, "wb") as fh, tqdm(total=total, unit="B", unit_scale=True,
                                               desc=f"Downloading {dest.name}") as bar:
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
                        bar.update(len(chunk))
    except requests.RequestException as e:
        dest.unlink(missing_ok=True)
        raise InstallError(f"failed to download ffmpeg from '{url}': {e}") from e

    logger.log("install.downloaded", LogLevel.INFO, url=url, path=str(dest))
    return dest


def extract(archive: Path, workdir: Path, extracted_name: str = FFMPEG_EXTRACTED_DIR) -> Path:
    """Unpack the tarball into ``workdir`` and return the extracted top-level directory."""
    try:
        with tarfile.open(archive, "r:*") as tar:
            tar.extractall(workdir, filter="data")
    except (tarfile.TarError, OSError) as e:
        raise InstallError(f"failed to extract {archive}: {e}") from e

    extracted = workdir / extracted_name
    if not extracted.is_dir():
        raise InstallError(f"archive did not contain '{extracted_name}'")
    return extracted


def place(extracted: Path, install_dir: Path) -> None:
    """Replace ``install_dir`` with the freshly extracted build."""
    try:
        if install_dir.exists():
            shutil.rmtree(install_dir)
        install_dir.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(extracted), str(install_dir))
    except OSError as e:
        raise InstallError(f"failed to move '{extracted}' to '{install_dir}': {e}") from e


def write_profiles(install_dir: Path, profile_dir: Path) -> list:
    """Create the PATH and LD_LIBRARY_PATH profile scripts unless they already exist."""
    scripts = {
        profile_dir / PROFILE_SCRIPT: f'export PATH="{install_dir}/bin:$PATH"\n',
        profile_dir / PROFILE_LIB_SCRIPT: f'export LD_LIBRARY_PATH=$LD_LIBRARY_PATH:{install_dir}/lib\n',
    }
    written = []
    for path, content in scripts.items():
        if path.exists():
            continue
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise InstallError(f"failed to write {path}: {e}") from e
        written.append(path)
        logger.log("install.profile", LogLevel.INFO, path=str(path))
    return written


def verify(install_dir: Path) -> str:
    """Run the installed ffmpeg and return its version banner line."""
    env = os.environ.copy()
    lib_dir = str(install_dir / "lib")
    env["LD_LIBRARY_PATH"] = f"{env['LD_LIBRARY_PATH']}:{lib_dir}" if env.get("LD_LIBRARY_PATH") else lib_dir
    try:
        code, out, err = system_util.run_cmd([str(install_dir / "bin" / "ffmpeg"), "-version"], env=env)
    except OSError as e:
        raise InstallError(f"installed ffmpeg could not be run: {e}") from e
    if code != 0:
        raise InstallError(f"installed ffmpeg exited with code {code}: {err.strip()[:200]}")
    return out.splitlines()[0] if out else ""


def install_ffmpeg(url: str = FFMPEG_URL,
                   install_dir: Path = Path(FFMPEG_INSTALL_DIR),
                   download_dir: Optional[Path] = None,
                   profile_dir: Path = Path(PROFILE_DIR),
                   session: Optional[requests.Session] = None) -> str:
    """
    Download, unpack and register the prebuilt ffmpeg build.

    Returns:
        The ``ffmpeg -version`` banner of the installed binary.

    Raises:
        InstallError: Any step failed; earlier steps are not rolled back.
    """
    download_dir = download_dir or default_download_dir()
    check_writable(install_dir.parent)
    check_writable(profile_dir)

    download_dir.mkdir(parents=True, exist_ok=True)
    logger.log("install.start", LogLevel.INFO, url=url, install_dir=str(install_dir),
               download_dir=str(download_dir))

    archive = download(url, download_dir / ARCHIVE_NAME, session=session)
    extracted = extract(archive, download_dir)
    place(extracted, install_dir)
    write_profiles(install_dir, profile_dir)

    version = verify(install_dir)
    logger.log("install.complete", LogLevel.INFO, install_dir=str(install_dir), version=version)
    return version
