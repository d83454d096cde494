import io
import tarfile
from pathlib import Path

import pytest
import requests

from av1kit.install import InstallError, default_download_dir, install_ffmpeg
from av1kit.install import core as install_core
from av1kit.utils import system_util

EXTRACTED = "ffmpeg-master-latest-linux64-gpl-shared"


def _tarball() -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:xz") as tar:
        for name, data in ((f"{EXTRACTED}/bin/ffmpeg", b"#!/bin/sh\n"), (f"{EXTRACTED}/lib/libavcodec.so", b"")):
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class _FakeResponse:
    def __init__(self, payload: bytes, status: int = 200):
        self.payload = payload
        self.status = status
        self.headers = {"content-length": str(len(payload))}

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.payload), chunk_size):
            yield self.payload[i:i + chunk_size]


class _FakeSession:
    def __init__(self, response):
        self.response = response
        self.urls = []

    def get(self, url, stream=False, timeout=None):
        self.urls.append(url)
        return self.response


@pytest.fixture
def dirs(tmp_path):
    return {
        "install_dir": tmp_path / "opt" / "ffmpeg",
        "download_dir": tmp_path / "Downloads",
        "profile_dir": tmp_path / "profile.d",
    }


@pytest.fixture
def fake_version(monkeypatch):
    calls = []

    def run_cmd(cmd, env=None):
        calls.append((cmd, env))
        return 0, "ffmpeg version N-12345 Copyright (c)\nbuilt with gcc\n", ""

    monkeypatch.setattr(system_util, "run_cmd", run_cmd)
    return calls


def test_install_ffmpeg_end_to_end(dirs, fake_version):
    session = _FakeSession(_FakeResponse(_tarball()))
    version = install_ffmpeg(url="https://example.invalid/ffmpeg.tar.xz", session=session, **dirs)

    assert version == "ffmpeg version N-12345 Copyright (c)"
    assert session.urls == ["https://example.invalid/ffmpeg.tar.xz"]
    assert (dirs["install_dir"] / "bin" / "ffmpeg").is_file()
    assert not (dirs["download_dir"] / EXTRACTED).exists()

    path_script = (dirs["profile_dir"] / "ffmpeg.sh").read_text()
    lib_script = (dirs["profile_dir"] / "ffmpeg_lib.sh").read_text()
    assert f'{dirs["install_dir"]}/bin' in path_script
    assert f'{dirs["install_dir"]}/lib' in lib_script

    cmd, env = fake_version[0]
    assert cmd == [str(dirs["install_dir"] / "bin" / "ffmpeg"), "-version"]
    assert str(dirs["install_dir"] / "lib") in env["LD_LIBRARY_PATH"]


def test_install_replaces_previous_install(dirs, fake_version):
    stale = dirs["install_dir"] / "stale.txt"
    stale.parent.mkdir(parents=True)
    stale.write_text("old")
    install_ffmpeg(session=_FakeSession(_FakeResponse(_tarball())), **dirs)
    assert not stale.exists()


def test_existing_profile_scripts_are_kept(dirs, fake_version):
    dirs["profile_dir"].mkdir()
    (dirs["profile_dir"] / "ffmpeg.sh").write_text("# custom\n")
    install_ffmpeg(session=_FakeSession(_FakeResponse(_tarball())), **dirs)
    assert (dirs["profile_dir"] / "ffmpeg.sh").read_text() == "# custom\n"


def test_download_http_error(dirs, fake_version):
    with pytest.raises(InstallError, match="failed to download"):
        install_ffmpeg(session=_FakeSession(_FakeResponse(b"", status=404)), **dirs)
    assert not (dirs["download_dir"] / "ffmpeg.tar.xz").exists()


def test_bad_archive(dirs, fake_version):
    with pytest.raises(InstallError, match="failed to extract"):
        install_ffmpeg(session=_FakeSession(_FakeResponse(b"not a tarball")), **dirs)


def test_archive_without_expected_directory(tmp_path):
    archive = tmp_path / "ffmpeg.tar.xz"
    archive.write_bytes(_tarball())
    with pytest.raises(InstallError, match="did not contain"):
        install_core.extract(archive, tmp_path, "other-name")


def test_verify_failure(dirs, monkeypatch):
    monkeypatch.setattr(system_util, "run_cmd", lambda cmd, env=None: (127, "", "libavdevice.so: not found"))
    with pytest.raises(InstallError, match="exited with code 127"):
        install_ffmpeg(session=_FakeSession(_FakeResponse(_tarball())), **dirs)


def test_unwritable_install_dir_fails_early(dirs, monkeypatch):
    monkeypatch.setattr(install_core.os, "access", lambda path, mode: False)
    session = _FakeSession(_FakeResponse(_tarball()))
    with pytest.raises(InstallError, match="no write permission"):
        install_ffmpeg(session=session, **dirs)
    assert session.urls == []


def test_default_download_dir_under_sudo(monkeypatch):
    monkeypatch.setattr(install_core.getpass, "getuser", lambda: "root")
    monkeypatch.setenv("SUDO_USER", "alex")
    assert default_download_dir() == Path("/home/alex/Downloads")


def test_default_download_dir_regular_user(monkeypatch):
    monkeypatch.setattr(install_core.getpass, "getuser", lambda: "alex")
    monkeypatch.delenv("SUDO_USER", raising=False)
    assert default_download_dir() == Path.home() / "Downloads"


def test_extract_rejects_members_outside_workdir(tmp_path):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:xz") as tar:
        info = tarfile.TarInfo("../escaped.txt")
        info.size = 2
        tar.addfile(info, io.BytesIO(b"hi"))
    archive = tmp_path / "work" / "ffmpeg.tar.xz"
    archive.parent.mkdir()
    archive.write_bytes(buf.getvalue())

    with pytest.raises(InstallError, match="failed to extract"):
        install_core.extract(archive, archive.parent)
    assert not (tmp_path / "escaped.txt").exists()
