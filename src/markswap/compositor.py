from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .config import PipelineSettings
from .ffmpeg_tools import CommandError, run_ffmpeg
from .models import CompositingJob, SelectedLocation, VideoAsset

logger = logging.getLogger(__name__)

# ffmpeg unescapes twice: once when splitting the graph into filters, once
# when splitting a filter's arguments into key=value options.
_OPTION_SPECIAL = "\\':"
_GRAPH_SPECIAL = "\\',;[]"


@dataclass(frozen=True)
class ComposeResult:
    success: bool
    output_size: Optional[int] = None
    error: Optional[str] = None


def _backslash_escape(value: str, special: str) -> str:
    return "".join("\\" + ch if ch in special else ch for ch in value)


def escape_filter_value(value: str) -> str:
    """Escape an option value for use inside a `-vf` filtergraph string."""
    return _backslash_escape(_backslash_escape(value, _OPTION_SPECIAL), _GRAPH_SPECIAL)


def partial_path(output_path: Path) -> Path:
    """Where the encode is written before the size guard promotes it."""
    return output_path.with_name(f"{output_path.stem}.part{output_path.suffix}")


def build_job(
    asset: VideoAsset,
    location: SelectedLocation,
    output_path: Path,
    settings: PipelineSettings,
) -> CompositingJob:
    """
    Turn a selected location into a compositing job.

    - font is smaller for portrait because the portrait boxes are narrower
    - the brand is inset by a few pixels from the blotted region so it does not
      sit exactly on the residual compression artifacts of the old mark
    """
    region = location.region
    font_size = settings.font_size_portrait if asset.is_portrait else settings.font_size_landscape
    return CompositingJob(
        input_path=asset.path,
        output_path=output_path,
        region=region,
        brand_text=settings.brand_text,
        font_size=font_size,
        brand_x=region.x + settings.brand_offset_px,
        brand_y=region.y + settings.brand_offset_px,
    )


def build_filter_graph(job: CompositingJob, settings: PipelineSettings) -> str:
    """
    Two-stage graph: blot the region, then draw the brand mark.

    delogo interpolates the rectangle from its surrounding pixels (show=0 means
    no debug outline), so the old mark is replaced rather than boxed out.
    """
    r = job.region
    blot = f"delogo=x={r.x}:y={r.y}:w={r.width}:h={r.height}:show=0"

    brand_opts = [
        f"text={escape_filter_value(job.brand_text)}",
        "expansion=none",
        f"fontsize={job.font_size}",
        f"fontcolor={settings.font_color}",
        f"x={job.brand_x}",
        f"y={job.brand_y}",
        "box=1",
        f"boxcolor={settings.box_color}",
        f"boxborderw={settings.box_border_px}",
    ]
    if settings.font_file is not None:
        brand_opts.append(f"fontfile={escape_filter_value(str(settings.font_file))}")

    return f"{blot},drawtext={':'.join(brand_opts)}"


def build_ffmpeg_args(job: CompositingJob, settings: PipelineSettings, out_path: Path) -> List[str]:
    """
    Video is re-encoded (the graph touches pixels); audio is stream-copied.

    `0:a?` keeps the optional audio stream without failing on silent files.
    """
    return [
        "-i", str(job.input_path),
        "-map", "0:v:0",
        "-map", "0:a?",
        "-vf", build_filter_graph(job, settings),
        "-c:v", settings.video_codec,
        "-preset", settings.preset,
        "-crf", str(settings.crf),
        "-pix_fmt", "yuv420p",
        "-c:a", "copy",
        "-movflags", "+faststart",
        str(out_path),
    ]


def compose(job: CompositingJob, settings: PipelineSettings) -> ComposeResult:
    """
    Run the job and promote the result to job.output_path only if it looks sane.

    Notes:
    - ffmpeg writes to a sibling *.part file; an interrupted run therefore never
      leaves a file at the output path that a later run would skip.
    - an output smaller than min_output_ratio of the input is treated as
      truncated/corrupted and discarded.
    """
    part = partial_path(job.output_path)
    job.output_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        run_ffmpeg(build_ffmpeg_args(job, settings, part))

        if not part.exists() or part.stat().st_size == 0:
            return ComposeResult(success=False, error="ffmpeg produced no output")

        input_size = job.input_path.stat().st_size
        output_size = part.stat().st_size
        if output_size < input_size * settings.min_output_ratio:
            logger.warning(
                "Output too small for %s: %.1fMB vs %.1fMB input",
                job.input_path.name, output_size / 1024 / 1024, input_size / 1024 / 1024,
            )
            return ComposeResult(
                success=False,
                output_size=output_size,
                error=f"Output too small ({output_size} < {settings.min_output_ratio:.0%} of {input_size} bytes)",
            )

        os.replace(part, job.output_path)
        return ComposeResult(success=True, output_size=output_size)
    except (CommandError, OSError) as e:
        logger.error("Compositing failed for %s: %s", job.input_path.name, str(e).splitlines()[0])
        return ComposeResult(success=False, error=str(e))
    finally:
        if part.exists():
            part.unlink()
