from __future__ import annotations

import os
import subprocess
from pathlib import Path

from relay.core.config import settings
from relay.core.errors import TranscodeError
from relay.core.logging import log


def jpeg_qscale(quality: int) -> int:
    """Map a 1-100 JPEG quality onto ffmpeg's mjpeg ``-q:v`` scale (2 best, 31 worst)."""
    quality = max(1, min(100, quality))
    return max(2, min(31, round(31 - quality * 29 / 100)))


class FFmpegMediaClient:
    """ffmpeg client for video conversion and thumbnail extraction.

    WebM uploads are converted to H.264/AAC MP4 before upload, and the
    moment thumbnail is the first frame of the final video.
    """

    def __init__(
        self,
        ffmpeg_path: str | None = None,
        ffprobe_path: str | None = None,
        timeout_s: int | None = None,
    ):
        self.ffmpeg_path = ffmpeg_path or settings.ffmpeg_path
        self.ffprobe_path = ffprobe_path or settings.ffprobe_path
        self.timeout_s = timeout_s or settings.ffmpeg_timeout_s

    def check_available(self) -> None:
        """Validate that ffmpeg and ffprobe can be executed.

        Raises:
            RuntimeError: If either binary is missing or broken
        """
        for name, path in (("ffmpeg", self.ffmpeg_path), ("ffprobe", self.ffprobe_path)):
            try:
                subprocess.run(
                    [path, "-version"],
                    capture_output=True,
                    check=True,
                    timeout=5,
                )
            except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired) as e:
                raise RuntimeError(
                    f"{name} not found at '{path}'. "
                    f"Install ffmpeg or set {name.upper()}_PATH in .env"
                ) from e

    def convert_to_mp4(self, video_in: str, out_path: str) -> str:
        """Convert a video (typically WebM) to web-friendly MP4.

        H.264 at 1 Mbps, AAC audio, at most 720p in either orientation,
        moov atom up front.

        Args:
            video_in: Path to input video file
            out_path: Path to output MP4 file

        Returns:
            Path to the converted file

        Raises:
            FileNotFoundError: If input video doesn't exist
            TranscodeError: If ffmpeg fails or produces no output
        """
        if not os.path.exists(video_in):
            raise FileNotFoundError(f"Input video not found: {video_in}")

        # Landscape fits 1280x720, portrait fits 720x1280; never upscale
        scale = (
            "scale="
            "w='if(gte(iw,ih),min(1280,iw),min(720,iw))':"
            "h='if(gte(iw,ih),min(720,ih),min(1280,ih))':"
            "force_original_aspect_ratio=decrease:force_divisible_by=2"
        )

        cmd = [
            self.ffmpeg_path,
            "-y",  # Overwrite output file
            "-i", video_in,
            "-c:v", "libx264",
            "-preset", "fast",
            "-b:v", "1000k",
            "-vf", scale,
            "-c:a", "aac",
            "-movflags", "+faststart",
            "-f", "mp4",
            out_path,
        ]

        log.info(f"FFMPEG_CONVERT START input={Path(video_in).name} output={Path(out_path).name}")
        self._run(cmd, text=True)

        if not os.path.exists(out_path):
            raise TranscodeError(f"ffmpeg did not create output file: {Path(out_path).name}")

        duration = self.probe_duration(out_path)
        log.info(
            f"FFMPEG_CONVERT SUCCESS output={Path(out_path).name} "
            f"size={os.path.getsize(out_path)} duration={duration if duration is not None else 'unknown'}"
        )
        return out_path

    def thumbnail(self, video_in: str, max_width: int | None = None, quality: int | None = None) -> bytes:
        """Extract the first frame of a video as JPEG bytes.

        Args:
            video_in: Path to video file
            max_width: Thumbnail width cap in pixels (aspect ratio kept)
            quality: JPEG quality 1-100

        Returns:
            JPEG encoded bytes

        Raises:
            FileNotFoundError: If input video doesn't exist
            TranscodeError: If no frame could be extracted
        """
        if not os.path.exists(video_in):
            raise FileNotFoundError(f"Input video not found: {video_in}")

        max_width = max_width or settings.thumbnail_max_width
        quality = quality or settings.thumbnail_quality

        cmd = [
            self.ffmpeg_path,
            "-ss", "0",
            "-i", video_in,
            "-frames:v", "1",
            "-vf", f"scale='min({max_width},iw)':-2",
            "-q:v", str(jpeg_qscale(quality)),
            "-f", "image2pipe",
            "-vcodec", "mjpeg",
            "pipe:1",
        ]

        result = self._run(cmd, text=False)
        if not result.stdout:
            raise TranscodeError(f"ffmpeg produced no thumbnail for {Path(video_in).name}")

        log.info(f"FFMPEG_THUMBNAIL video={Path(video_in).name} bytes={len(result.stdout)}")
        return result.stdout

    def probe_duration(self, video_path: str) -> float | None:
        """Get video duration in seconds using ffprobe.

        Returns:
            Duration in seconds, or None if it could not be read
        """
        cmd = [
            self.ffprobe_path,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            video_path,
        ]

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=True,
                timeout=10,
            )
            return float(result.stdout.strip())
        except (subprocess.CalledProcessError, ValueError, subprocess.TimeoutExpired, FileNotFoundError):
            return None

    def _run(self, cmd: list[str], text: bool) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=text,
                check=True,
                timeout=self.timeout_s,
            )
        except subprocess.TimeoutExpired as e:
            raise TranscodeError(f"ffmpeg timeout after {self.timeout_s}s") from e
        except FileNotFoundError as e:
            raise TranscodeError(f"ffmpeg not found at '{self.ffmpeg_path}'") from e
        except subprocess.CalledProcessError as e:
            stderr = e.stderr or ""
            if isinstance(stderr, bytes):
                stderr = stderr.decode("utf-8", errors="replace")
            log.error(f"FFMPEG_FAILED code={e.returncode} stderr={stderr[-500:]}")
            raise TranscodeError(
                f"ffmpeg failed with exit code {e.returncode}: {stderr[-500:]}"
            ) from e
