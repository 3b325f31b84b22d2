from __future__ import annotations

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from .models import VideoAsset

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = ("ffmpeg", "ffprobe")


class ToolNotFoundError(RuntimeError):
    """ffmpeg/ffprobe missing. The only error that aborts a whole run."""


class CommandError(RuntimeError):
    """An external command exited with a non-zero status."""


def _run_command(cmd: list[str]) -> bytes:
    """
    Run a subprocess command with robust error reporting.

    Why:
    - ffmpeg/ffprobe failures are common (codec issues, corrupted files, etc.).
    - We want the caller to receive actionable stderr output.
    """
    logger.debug("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except FileNotFoundError as e:
        # Typically means ffmpeg/ffprobe is not installed or not in PATH.
        raise ToolNotFoundError(
            f"Command not found: {cmd[0]}. "
            "Ensure ffmpeg/ffprobe are installed and available in your PATH."
        ) from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode("utf-8", errors="ignore")
        # ffmpeg prints the banner first; the useful part is at the end.
        tail = "\n".join(stderr.strip().splitlines()[-15:])
        raise CommandError(f"Command failed:\n{' '.join(cmd)}\n\n{tail}") from e
    return proc.stdout


def ensure_tools_available() -> None:
    """
    Check once, before any asset is processed, that ffmpeg and ffprobe exist.

    Raises ToolNotFoundError with install hints otherwise.
    """
    missing = [tool for tool in REQUIRED_TOOLS if shutil.which(tool) is None]
    if missing:
        raise ToolNotFoundError(
            f"Required tool(s) not found in PATH: {', '.join(missing)}.\n"
            "Install FFmpeg:\n"
            "  macOS:   brew install ffmpeg\n"
            "  Ubuntu:  sudo apt install ffmpeg\n"
            "  Windows: https://ffmpeg.org/download.html"
        )


def _stream_rotation(stream: dict) -> int:
    """
    Rotation in degrees from either the legacy `rotate` tag or display-matrix side data.
    """
    rotate = stream.get("tags", {}).get("rotate")
    if rotate is not None:
        try:
            return int(float(rotate)) % 360
        except ValueError:
            return 0
    for side in stream.get("side_data_list", []) or []:
        if "rotation" in side:
            try:
                return int(float(side["rotation"])) % 360
            except (TypeError, ValueError):
                return 0
    return 0


def _parse_duration(info: dict, video_stream: dict) -> Optional[float]:
    for raw in (info.get("format", {}).get("duration"), video_stream.get("duration")):
        if raw is None:
            continue
        try:
            value = float(raw)
        except ValueError:
            continue
        if value > 0:
            return value
    return None


def probe_video(video_path: Path) -> VideoAsset:
    """
    Inspect a video file using ffprobe and return a VideoAsset.

    Notes:
    - width/height are the *displayed* dimensions: a 90/270 degree rotation
      swaps them, because ffmpeg autorotates extracted frames and the region
      catalogue must match what the frames look like.
    - duration may be None for odd containers; the sampler copes with that.
    """
    cmd = [
        "ffprobe",
        "-v", "error",
        "-print_format", "json",
        "-show_streams",
        "-show_format",
        str(video_path),
    ]
    raw = _run_command(cmd)
    info = json.loads(raw.decode("utf-8", errors="ignore"))

    streams = info.get("streams", [])
    video_streams = [s for s in streams if s.get("codec_type") == "video"]
    audio_streams = [s for s in streams if s.get("codec_type") == "audio"]
    if not video_streams:
        raise CommandError(f"No video stream found in {video_path}")

    vs = video_streams[0]
    if vs.get("width") is None or vs.get("height") is None:
        raise CommandError(f"Video stream without dimensions in {video_path}")
    width = int(vs["width"])
    height = int(vs["height"])

    if _stream_rotation(vs) in (90, 270):
        width, height = height, width

    return VideoAsset(
        path=video_path,
        width=width,
        height=height,
        duration_sec=_parse_duration(info, vs),
        has_audio=len(audio_streams) > 0,
    )


def extract_frame(
    video_path: Path,
    out_png_path: Path,
    timestamp_sec: Optional[float] = None,
) -> Path:
    """
    Extract a single frame as PNG.

    - timestamp_sec=None extracts the first decodable frame (no seek at all),
      which is the most tolerant call for containers that reject seeking.
    - -ss before -i performs a fast seek in many cases (good for batch).
    """
    out_png_path.parent.mkdir(parents=True, exist_ok=True)

    cmd = ["ffmpeg", "-y", "-v", "error"]
    if timestamp_sec is not None:
        cmd += ["-ss", f"{timestamp_sec:.3f}"]
    cmd += [
        "-i", str(video_path),
        "-frames:v", "1",
        str(out_png_path),
    ]
    _run_command(cmd)
    if not out_png_path.exists() or out_png_path.stat().st_size == 0:
        # ffmpeg exits 0 when seeking past the last frame but writes nothing.
        raise CommandError(f"No frame written for {video_path} at {timestamp_sec}")
    return out_png_path


def run_ffmpeg(args: list[str]) -> None:
    """Run ffmpeg with the given arguments (overwrite, errors only)."""
    _run_command(["ffmpeg", "-y", "-v", "error", *args])
