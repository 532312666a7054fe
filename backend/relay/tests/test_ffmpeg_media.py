"""Tests for the ffmpeg conversion / thumbnail client (subprocess mocked)."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from relay.clients.ffmpeg_media import FFmpegMediaClient, jpeg_qscale
from relay.core.errors import TranscodeError


@pytest.fixture
def ffmpeg():
    return FFmpegMediaClient(ffmpeg_path="/usr/bin/ffmpeg", ffprobe_path="/usr/bin/ffprobe", timeout_s=30)


@pytest.fixture
def video_file(tmp_path):
    path = tmp_path / "clip.webm"
    path.write_bytes(b"\x1a\x45\xdf\xa3fake-webm")
    return path


def test_jpeg_qscale_bounds():
    assert jpeg_qscale(100) == 2
    assert jpeg_qscale(90) == 5
    assert jpeg_qscale(1) == 31
    assert jpeg_qscale(500) == 2


def test_convert_to_mp4_command(ffmpeg, video_file, tmp_path):
    out_path = tmp_path / "clip_converted.mp4"

    def fake_run(cmd, *args, **kwargs):
        if cmd[0] == "/usr/bin/ffmpeg":
            out_path.write_bytes(b"mp4")
            return MagicMock(stdout="", stderr="")
        return MagicMock(stdout="3.5\n")

    with patch("relay.clients.ffmpeg_media.subprocess.run", side_effect=fake_run) as mock_run:
        result = ffmpeg.convert_to_mp4(str(video_file), str(out_path))

    assert result == str(out_path)
    cmd = mock_run.call_args_list[0][0][0]
    assert cmd[:4] == ["/usr/bin/ffmpeg", "-y", "-i", str(video_file)]
    assert cmd[cmd.index("-c:v") + 1] == "libx264"
    assert cmd[cmd.index("-c:a") + 1] == "aac"
    assert cmd[cmd.index("-b:v") + 1] == "1000k"
    assert cmd[cmd.index("-preset") + 1] == "fast"
    assert cmd[cmd.index("-movflags") + 1] == "+faststart"
    assert "force_divisible_by=2" in cmd[cmd.index("-vf") + 1]
    assert cmd[-1] == str(out_path)
    assert mock_run.call_args_list[0][1]["timeout"] == 30


def test_convert_failure_raises_transcode_error(ffmpeg, video_file, tmp_path):
    error = subprocess.CalledProcessError(1, ["ffmpeg"], stderr="Invalid data found when processing input")
    with patch("relay.clients.ffmpeg_media.subprocess.run", side_effect=error):
        with pytest.raises(TranscodeError, match="Invalid data found"):
            ffmpeg.convert_to_mp4(str(video_file), str(tmp_path / "out.mp4"))


def test_convert_timeout(ffmpeg, video_file, tmp_path):
    with patch("relay.clients.ffmpeg_media.subprocess.run", side_effect=subprocess.TimeoutExpired("ffmpeg", 30)):
        with pytest.raises(TranscodeError, match="timeout"):
            ffmpeg.convert_to_mp4(str(video_file), str(tmp_path / "out.mp4"))


def test_convert_missing_input(ffmpeg, tmp_path):
    with pytest.raises(FileNotFoundError):
        ffmpeg.convert_to_mp4(str(tmp_path / "missing.webm"), str(tmp_path / "out.mp4"))


def test_thumbnail_returns_jpeg_bytes(ffmpeg, video_file):
    with patch("relay.clients.ffmpeg_media.subprocess.run") as mock_run:
        mock_run.return_value = MagicMock(stdout=b"\xff\xd8jpeg")

        data = ffmpeg.thumbnail(str(video_file), max_width=720, quality=90)

    assert data == b"\xff\xd8jpeg"
    cmd = mock_run.call_args[0][0]
    assert cmd[cmd.index("-frames:v") + 1] == "1"
    assert cmd[cmd.index("-vf") + 1] == "scale='min(720,iw)':-2"
    assert cmd[cmd.index("-q:v") + 1] == "5"
    assert cmd[-1] == "pipe:1"
    assert mock_run.call_args[1]["text"] is False


def test_thumbnail_empty_output(ffmpeg, video_file):
    with patch("relay.clients.ffmpeg_media.subprocess.run") as mock_run:
        mock_run.return_value = MagicMock(stdout=b"")

        with pytest.raises(TranscodeError, match="no thumbnail"):
            ffmpeg.thumbnail(str(video_file))


def test_probe_duration_unreadable(ffmpeg, video_file):
    with patch("relay.clients.ffmpeg_media.subprocess.run") as mock_run:
        mock_run.return_value = MagicMock(stdout="N/A\n")
        assert ffmpeg.probe_duration(str(video_file)) is None


def test_check_available_reports_missing_binary(ffmpeg):
    def fake_run(cmd, *args, **kwargs):
        if cmd[0].endswith("ffprobe"):
            raise FileNotFoundError(cmd[0])
        return MagicMock()

    with patch("relay.clients.ffmpeg_media.subprocess.run", side_effect=fake_run):
        with pytest.raises(RuntimeError, match="ffprobe not found"):
            ffmpeg.check_available()
