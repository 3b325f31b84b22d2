from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import cv2

from .ffmpeg_tools import CommandError, ToolNotFoundError, extract_frame
from .models import FrameSample, VideoAsset

logger = logging.getLogger(__name__)

START_OFFSET_SEC = 0.5
MIDDLE_FRACTION = 0.5
END_FRACTION = 0.9


@contextmanager
def scratch_workspace(root: Optional[Path] = None) -> Iterator[Path]:
    """
    Per-asset scratch directory, removed on exit (success or error).

    Only one of these exists at a time in a batch, so at most one asset's
    frames are ever on disk.
    """
    if root is not None:
        root.mkdir(parents=True, exist_ok=True)
    scratch = Path(tempfile.mkdtemp(prefix="markswap-", dir=str(root) if root else None))
    try:
        yield scratch
    finally:
        shutil.rmtree(scratch, ignore_errors=True)


def sample_offsets(duration_sec: Optional[float]) -> List[Tuple[str, float]]:
    """
    Temporal offsets (tag, seconds) for start / middle / end.

    - start is a fixed 0.5s (skips fade-ins and black first frames)
    - middle and end are 50% / 90% of the duration
    Offsets that need a duration are dropped when the duration is unknown.
    """
    if duration_sec is None or duration_sec <= 0:
        return [("start", START_OFFSET_SEC)]

    start = min(START_OFFSET_SEC, duration_sec * MIDDLE_FRACTION)
    return [
        ("start", start),
        ("middle", duration_sec * MIDDLE_FRACTION),
        ("end", duration_sec * END_FRACTION),
    ]


def _load_sample(tag: str, offset: Optional[float], png_path: Path) -> Optional[FrameSample]:
    image = cv2.imread(str(png_path), cv2.IMREAD_COLOR)
    if image is None or image.size == 0:
        logger.warning("Frame '%s' could not be decoded: %s", tag, png_path.name)
        return None
    return FrameSample(tag=tag, offset_sec=offset, path=png_path, image=image)


def _try_extract(
    asset: VideoAsset,
    scratch_dir: Path,
    tag: str,
    offset: Optional[float],
) -> Optional[FrameSample]:
    png_path = scratch_dir / f"frame_{tag}.png"
    try:
        extract_frame(asset.path, png_path, timestamp_sec=offset)
    except ToolNotFoundError:
        raise
    except CommandError as e:
        logger.warning("Frame extraction failed for %s (%s): %s", asset.path.name, tag, str(e).splitlines()[0])
        return None
    return _load_sample(tag, offset, png_path)


def sample_frames(asset: VideoAsset, scratch_dir: Path) -> List[FrameSample]:
    """
    Extract 1-3 frames of `asset` into `scratch_dir`.

    Contract:
    - each failing offset is skipped, the others still run
    - if every offset failed, one unconditioned first-frame extraction is tried
    - [] means the asset is undetectable; the caller goes straight to fallback

    Missing ffmpeg is not an extraction failure and still propagates.
    """
    samples: List[FrameSample] = []
    for tag, offset in sample_offsets(asset.duration_sec):
        sample = _try_extract(asset, scratch_dir, tag, offset)
        if sample is not None:
            samples.append(sample)

    if samples:
        return samples

    logger.info("All offsets failed for %s, trying first frame", asset.path.name)
    first = _try_extract(asset, scratch_dir, "first", None)
    return [first] if first is not None else []
