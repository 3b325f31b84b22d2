from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .compositor import build_job, compose
from .config import VARIANTS, PipelineSettings, validate_settings
from .ffmpeg_tools import ensure_tools_available, probe_video
from .frame_sampler import sample_frames, scratch_workspace
from .models import AssetOutcome, AssetState, BatchRun
from .paths import RunPaths, is_generated_output, make_run_paths
from .regions import generate_regions
from .report_store import format_asset_report, save_run_log
from .scoring import score_frames
from .selector import select_location, top_scored

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = {".mp4", ".mov"}

AssetProcessor = Callable[[Path, Path, PipelineSettings], AssetOutcome]
ProgressCallback = Callable[[int, int, str], None]


def _is_video_file(path: Path) -> bool:
    """Simple extension-based filter."""
    return path.suffix.lower() in VIDEO_EXTENSIONS


def scan_videos(input_dir: Path, ignore_suffixes: Optional[Iterable[str]] = None) -> List[Path]:
    """
    List input videos (non-recursive), sorted by name.

    With ignore_suffixes set, files this tool produced itself (finished
    outputs and .part files) are left out and logged. Pass it only when
    output_dir == input_dir; otherwise every video is an input.
    """
    videos = [p for p in input_dir.iterdir() if p.is_file() and _is_video_file(p)]
    if ignore_suffixes is not None:
        suffixes = tuple(ignore_suffixes)
        kept = []
        for p in videos:
            if is_generated_output(p, suffixes):
                logger.info("Ignoring %s: looks like an output of this tool", p.name)
            else:
                kept.append(p)
        videos = kept
    return sorted(videos, key=lambda p: p.name.lower())


def process_asset(video_path: Path, output_path: Path, settings: PipelineSettings) -> AssetOutcome:
    """
    Full pipeline for one file:
    Pending -> Sampling -> Scoring -> Selecting -> Compositing -> Succeeded | Failed.

    Every per-asset error ends up in outcome.error with state FAILED; nothing
    raises out of here. Frames only exist inside the scratch workspace, which
    is gone before compositing starts.
    """
    outcome = AssetOutcome(input_path=video_path, output_path=output_path)
    t0 = time.monotonic()

    try:
        asset = probe_video(video_path)
        logger.info(
            "Probed %s: %dx%d (%s), %.1fs",
            video_path.name, asset.width, asset.height, asset.orientation.value, asset.duration_sec or 0.0,
        )

        outcome.state = AssetState.SAMPLING
        with scratch_workspace(settings.scratch_root) as scratch:
            frames = sample_frames(asset, scratch)
            outcome.frames_sampled = len(frames)
            if not frames:
                logger.warning("No frame could be extracted from %s; using orientation fallback", video_path.name)

            outcome.state = AssetState.SCORING
            candidates = generate_regions(asset.width, asset.height)
            scored = score_frames(frames, candidates, settings.boost_rules, settings.image_delta_cap)

        outcome.top_regions = top_scored(scored, settings.report_top_n)

        outcome.state = AssetState.SELECTING
        location = select_location(scored, asset, settings.detection_threshold)
        outcome.location = location

        outcome.state = AssetState.COMPOSITING
        job = build_job(asset, location, output_path, settings)
        result = compose(job, settings)
        outcome.output_size = result.output_size
        if result.success:
            outcome.state = AssetState.SUCCEEDED
        else:
            outcome.state = AssetState.FAILED
            outcome.error = result.error
    except Exception as e:
        logger.error("Failed while %s %s: %s", outcome.state.value, video_path.name, str(e).splitlines()[0] if str(e) else type(e).__name__)
        outcome.state = AssetState.FAILED
        outcome.error = str(e) or type(e).__name__
    finally:
        outcome.elapsed_sec = time.monotonic() - t0

    return outcome


def _throttle(handled: int, settings: PipelineSettings, sleep: Callable[[float], None]) -> None:
    """
    Pause before the next processed asset: a long pause after each full batch,
    a short one otherwise. Nothing happens before the first asset.
    """
    if handled <= 0:
        return
    if handled % settings.batch_size == 0:
        logger.info("Batch of %d done, pausing %.0fs", settings.batch_size, settings.batch_delay_sec)
        sleep(settings.batch_delay_sec)
    elif settings.item_delay_sec > 0:
        sleep(settings.item_delay_sec)


def run_batch(
    input_dir: Path,
    output_dir: Path,
    settings: PipelineSettings,
    limit: Optional[int] = None,
    processor: Optional[AssetProcessor] = None,
    progress_callback: Optional[ProgressCallback] = None,
    sleep: Callable[[float], None] = time.sleep,
    check_tools: bool = True,
) -> BatchRun:
    """
    Process every video of input_dir into output_dir, one at a time.

    Contract:
    - ffmpeg/ffprobe are checked once up front (ToolNotFoundError aborts the run)
    - files whose output already exists are skipped, so an interrupted run can
      simply be started again
    - limit caps how many *un-processed* files are handled in this invocation
    - one failing asset never stops the batch
    - progress_callback: optional hook for UI updates (done, total, message)

    Not safe to run twice concurrently against the same output directory.
    """
    input_dir = input_dir.expanduser().resolve()
    output_dir = output_dir.expanduser().resolve()
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    if limit is not None and limit < 0:
        raise ValueError("limit cannot be negative.")

    validate_settings(settings)
    if check_tools:
        ensure_tools_available()

    process = processor or process_asset
    run_paths: RunPaths = make_run_paths(output_dir, settings.output_suffix)

    ignore_suffixes = None
    if input_dir == output_dir:
        ignore_suffixes = {v.output_suffix for v in VARIANTS.values()} | {settings.output_suffix}
    videos = scan_videos(input_dir, ignore_suffixes)
    total = len(videos)

    run = BatchRun(
        run_id=run_paths.run_id,
        input_dir=input_dir,
        output_dir=output_dir,
        files=[v.name for v in videos],
    )
    logger.info("Found %d videos in %s (variant %s)", total, input_dir, settings.variant)

    handled = 0
    for idx, video_path in enumerate(videos, start=1):
        if limit is not None and handled >= limit:
            logger.info("Limit of %d reached, stopping", limit)
            break

        output_path = run_paths.output_path_for(video_path)
        if output_path.exists():
            logger.info("Skipping %s (already processed)", video_path.name)
            run.record(AssetOutcome(input_path=video_path, output_path=output_path, state=AssetState.SKIPPED))
            if progress_callback:
                progress_callback(idx, total, f"[{idx}/{total}] Skipped: {video_path.name}")
            continue

        _throttle(handled, settings, sleep)
        handled += 1

        if progress_callback:
            progress_callback(idx - 1, total, f"[{idx}/{total}] Processing: {video_path.name}")

        try:
            outcome = process(video_path, output_path, settings)
        except Exception as e:
            # process_asset never raises; injected processors might.
            logger.error("Processor crashed on %s: %s", video_path.name, e)
            outcome = AssetOutcome(
                input_path=video_path,
                output_path=output_path,
                state=AssetState.FAILED,
                error=str(e) or type(e).__name__,
            )

        run.record(outcome)
        for line in format_asset_report(outcome):
            logger.info(line)

        if progress_callback:
            progress_callback(idx, total, f"[{idx}/{total}] {outcome.state.value}: {video_path.name}")

    run.finished_at = datetime.now()

    try:
        save_run_log(run, run_paths.run_log_json_path())
    except OSError as e:
        logger.warning("Could not write run log %s: %s", run_paths.run_log_json_path(), e)

    return run
