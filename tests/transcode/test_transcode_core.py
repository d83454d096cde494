import io
from pathlib import Path

import pytest

from av1kit.params import PASSTHROUGH, EncodeParameterSet, ResolvedColorParams, Transcode
from av1kit.transcode import core
from av1kit.utils import system_util

COLOR = ResolvedColorParams(range="tv", space="bt709", transfer="bt709", primaries="bt709")


def _params(audio=PASSTHROUGH):
    return EncodeParameterSet(color=COLOR, gop=240, audio=audio, crf=23, preset=3)


def _flag(cmd, name):
    return cmd[cmd.index(name) + 1]


def test_build_ffprobe_cmd_uses_flat_output(tmp_path):
    f = tmp_path / "video.mkv"
    cmd = core.build_ffprobe_cmd(f, "video")
    assert cmd[0] == "ffprobe"
    assert _flag(cmd, "-select_streams") == "v:0"
    assert _flag(cmd, "-of") == "default=noprint_wrappers=1"
    entries = _flag(cmd, "-show_entries")
    for field in ("color_space", "color_primaries", "color_transfer", "color_range", "height",
                  "r_frame_rate", "avg_frame_rate"):
        assert field in entries
    assert cmd[-1] == str(f)


def test_build_ffprobe_cmd_audio():
    cmd = core.build_ffprobe_cmd(Path("a.mkv"), "audio")
    assert _flag(cmd, "-select_streams") == "a:0"
    assert _flag(cmd, "-show_entries") == "stream=codec_name,channels,bit_rate"


def test_build_ffprobe_cmd_rejects_unknown_kind():
    with pytest.raises(ValueError):
        core.build_ffprobe_cmd(Path("a.mkv"), "subtitle")


def test_probe_stream_returns_stdout(monkeypatch):
    monkeypatch.setattr(system_util, "run_cmd", lambda cmd: (0, "height=1080\n", ""))
    assert core.probe_stream(Path("a.mkv"), "video") == "height=1080\n"


def test_probe_stream_failure_is_empty(monkeypatch):
    monkeypatch.setattr(system_util, "run_cmd", lambda cmd: (1, "", "Invalid data found"))
    assert core.probe_stream(Path("a.mkv"), "audio") == ""


@pytest.mark.parametrize("result,expected", [
    ((0, "5400.120000\n", ""), 5400.12),
    ((0, "N/A\n", ""), None),
    ((1, "", "boom"), None),
])
def test_probe_duration(monkeypatch, result, expected):
    monkeypatch.setattr(system_util, "run_cmd", lambda cmd: result)
    assert core.probe_duration(Path("a.mkv")) == expected


def test_build_ffmpeg_cmd_video_flags():
    cmd = core.build_ffmpeg_cmd(Path("in.mkv"), Path("out.mkv"), _params(), "tune=0")
    assert cmd[0] == "ffmpeg"
    assert "-nostdin" in cmd
    assert _flag(cmd, "-i") == "in.mkv"
    assert _flag(cmd, "-c:v") == "libsvtav1"
    assert _flag(cmd, "-pix_fmt") == "yuv420p10le"
    assert _flag(cmd, "-colorspace") == "bt709"
    assert _flag(cmd, "-color_primaries") == "bt709"
    assert _flag(cmd, "-color_trc") == "bt709"
    assert _flag(cmd, "-color_range") == "tv"
    assert _flag(cmd, "-crf") == "23"
    assert _flag(cmd, "-preset") == "3"
    assert _flag(cmd, "-g") == "240"
    assert _flag(cmd, "-svtav1-params") == "tune=0"
    assert _flag(cmd, "-c:s") == "copy"
    assert cmd[-1] == "out.mkv"


def test_build_ffmpeg_cmd_passthrough_audio():
    cmd = core.build_ffmpeg_cmd(Path("in.mkv"), Path("out.mkv"), _params(), "tune=0")
    assert _flag(cmd, "-c:a") == "copy"
    assert "-b:a" not in cmd


def test_audio_args_transcode_with_layout():
    args = core.audio_args(Transcode(codec="opus", bitrate_kbps=384, channel_layout="5.1"))
    assert args == ["-c:a", "copy", "-c:a:0", "libopus", "-b:a:0", "384k",
                    "-filter:a:0", "aformat=channel_layouts=5.1"]


def test_audio_args_transcode_without_layout():
    args = core.audio_args(Transcode(codec="opus", bitrate_kbps=256))
    assert args == ["-c:a", "copy", "-c:a:0", "libopus", "-b:a:0", "256k"]


def test_audio_args_unknown_codec_used_as_encoder_name():
    assert core.audio_args(Transcode(codec="libfdk_aac", bitrate_kbps=192))[3] == "libfdk_aac"


def test_audio_args_rejects_unknown_plan():
    with pytest.raises(TypeError):
        core.audio_args("copy")


def test_verify_video_returns_combined_output(monkeypatch):
    seen = {}

    def fake(cmd):
        seen["cmd"] = cmd
        return 0, "", "[h264] error while decoding MB 1 2\n"

    monkeypatch.setattr(system_util, "run_cmd", fake)
    assert core.verify_video(Path("a.mkv")) == "[h264] error while decoding MB 1 2"
    assert seen["cmd"][-3:] == ["-f", "null", "-"]


def test_fix_video_replaces_original_on_success(tmp_path, monkeypatch):
    src = tmp_path / "movie.mkv"
    src.write_bytes(b"broken")

    def fake(cmd):
        Path(cmd[-1]).write_bytes(b"fixed")
        return 0, "", ""

    monkeypatch.setattr(system_util, "run_cmd", fake)
    assert core.fix_video(src) is True
    assert src.read_bytes() == b"fixed"
    assert not (tmp_path / "movie.fixed.mkv").exists()


def test_fix_video_keeps_original_on_failure(tmp_path, monkeypatch):
    src = tmp_path / "movie.mkv"
    src.write_bytes(b"broken")

    def fake(cmd):
        Path(cmd[-1]).write_bytes(b"partial")
        return 1, "", "error"

    monkeypatch.setattr(system_util, "run_cmd", fake)
    assert core.fix_video(src) is False
    assert src.read_bytes() == b"broken"
    assert not (tmp_path / "movie.fixed.mkv").exists()


class _FakeProcess:
    def __init__(self, stderr_text, returncode):
        self.stderr = io.StringIO(stderr_text)
        self.returncode = returncode

    def poll(self):
        return self.returncode

    def communicate(self):
        return "", ""


def test_transcode_video_success(tmp_path, monkeypatch):
    calls = {}

    def fake_popen(cmd, **kwargs):
        calls["cmd"] = cmd
        return _FakeProcess("frame=1 time=00:00:01.00 bitrate=1k speed=1.5x\n", 0)

    monkeypatch.setattr(core.subprocess, "Popen", fake_popen)
    dst = tmp_path / "out" / "movie.AV1.mkv"
    code, out, err = core.transcode_video(tmp_path / "movie.mkv", dst, _params(), "tune=0", duration=10.0)
    assert code == 0
    assert "speed=1.5x" in err
    assert dst.parent.is_dir()
    assert calls["cmd"][-1] == str(dst)


def test_transcode_video_failure_removes_partial_output(tmp_path, monkeypatch):
    dst = tmp_path / "movie.AV1.mkv"
    dst.write_bytes(b"partial")
    monkeypatch.setattr(core.subprocess, "Popen", lambda cmd, **kw: _FakeProcess("Error\n", 1))
    code, _, err = core.transcode_video(tmp_path / "movie.mkv", dst, _params(), "tune=0")
    assert code == 1
    assert "Error" in err
    assert not dst.exists()


def test_transcoded_audio_only_touches_first_track():
    cmd = core.build_ffmpeg_cmd(Path("in.mkv"), Path("out.mkv"),
                                _params(Transcode(codec="opus", bitrate_kbps=384, channel_layout="5.1")), "tune=0")
    assert _flag(cmd, "-c:a") == "copy"
    assert _flag(cmd, "-c:a:0") == "libopus"
    assert "-af" not in cmd and "-b:a" not in cmd


def test_log_progress_with_duration(capsys):
    line = "frame=250 fps=5.0 q=30.0 size=1024kB time=00:00:50.00 bitrate=167.8kbits/s speed=2.0x"
    assert core._log_progress(line, Path("movie.mkv"), 100.0) is True
    out = capsys.readouterr().out
    assert "encode.progress" in out
    assert "pct=50.0" in out
    assert "(25s)" in out
    assert 'speed="2.0x"' in out


def test_log_progress_unknown_speed_has_no_eta(capsys):
    line = "frame=1 fps=0.0 q=0.0 size=0kB time=00:00:10.00 bitrate=N/A speed=N/A"
    assert core._log_progress(line, Path("movie.mkv"), 100.0) is True
    out = capsys.readouterr().out
    assert "pct=10.0" in out
    assert "eta=" not in out


def test_log_progress_without_duration(capsys):
    line = "frame=1 time=00:00:10.00 bitrate=1k speed=1.0x"
    assert core._log_progress(line, Path("movie.mkv"), None) is True
    assert 'pct="N/A"' in capsys.readouterr().out


def test_log_progress_ignores_unparseable_lines(capsys):
    assert core._log_progress("frame=0 time=N/A bitrate=N/A speed=N/A", Path("movie.mkv"), 100.0) is False
    assert core._log_progress("Stream mapping:", Path("movie.mkv"), 100.0) is False
    assert capsys.readouterr().out == ""


def test_transcode_video_logs_progress_lines(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(core, "PROGRESS_INTERVAL", 0)
    monkeypatch.setattr(core.subprocess, "Popen",
                        lambda cmd, **kwargs: _FakeProcess("frame=1 time=00:00:05.00 bitrate=1k speed=1.0x\n", 0))
    core.transcode_video(tmp_path / "movie.mkv", tmp_path / "movie_AV1.mkv", _params(), "tune=0", duration=10.0)
    assert "pct=50.0" in capsys.readouterr().out
