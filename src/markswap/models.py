from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

import numpy as np


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class Decision(str, Enum):
    DETECTED = "detected"
    FALLBACK = "fallback"


class AssetState(str, Enum):
    """
    Lifecycle of one asset inside a batch.

    Skipped is reachable only from Pending (output already exists).
    There is no retry state: a failed asset stays failed for the run.
    """
    PENDING = "pending"
    SAMPLING = "sampling"
    SCORING = "scoring"
    SELECTING = "selecting"
    COMPOSITING = "compositing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class VideoAsset:
    """Probed input video. Immutable for the whole run."""
    path: Path
    width: int
    height: int
    duration_sec: Optional[float]
    has_audio: bool = True

    @property
    def orientation(self) -> Orientation:
        return Orientation.PORTRAIT if self.height > self.width else Orientation.LANDSCAPE

    @property
    def is_portrait(self) -> bool:
        return self.orientation is Orientation.PORTRAIT


@dataclass(frozen=True)
class RegionCandidate:
    """A named rectangle (pixels) where a watermark may sit."""
    label: str
    x: int
    y: int
    width: int
    height: int
    prior_confidence: float

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def fits_within(self, frame_width: int, frame_height: int) -> bool:
        return (
            self.x >= 0
            and self.y >= 0
            and self.width > 0
            and self.height > 0
            and self.right <= frame_width
            and self.bottom <= frame_height
        )


@dataclass(frozen=True, eq=False)
class FrameSample:
    """
    A decoded still frame and the offset it was taken from.

    Transient: the backing file lives in the per-asset scratch directory and
    disappears when that directory is released.
    """
    tag: str
    offset_sec: Optional[float]
    path: Path
    image: np.ndarray

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


@dataclass(frozen=True)
class ScoredRegion:
    region: RegionCandidate
    score: float
    frame_tag: str


@dataclass(frozen=True)
class SelectedLocation:
    """Reduction of all ScoredRegions of one asset to a single actionable region."""
    region: RegionCandidate
    score: float
    decision: Decision
    frame_tag: Optional[str] = None


@dataclass(frozen=True)
class CompositingJob:
    """One rewrite of one asset. Consumed exactly once by the compositor."""
    input_path: Path
    output_path: Path
    region: RegionCandidate
    brand_text: str
    font_size: int
    brand_x: int
    brand_y: int


@dataclass
class AssetOutcome:
    """Per-file result of the batch (also what ends up in the run log)."""
    input_path: Path
    output_path: Path
    state: AssetState = AssetState.PENDING
    location: Optional[SelectedLocation] = None
    top_regions: List[ScoredRegion] = field(default_factory=list)
    frames_sampled: int = 0
    output_size: Optional[int] = None
    error: Optional[str] = None
    elapsed_sec: float = 0.0


@dataclass
class BatchRun:
    """
    Aggregate state of one batch invocation.

    Mutated incrementally by the orchestrator through record().
    processed counts only assets that went through the pipeline (not skipped).
    """
    run_id: str
    input_dir: Path
    output_dir: Path
    files: List[str] = field(default_factory=list)
    processed: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: List[AssetOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    def record(self, outcome: AssetOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.state is AssetState.SKIPPED:
            self.skipped += 1
            return
        self.processed += 1
        if outcome.state is AssetState.SUCCEEDED:
            self.successful += 1
        else:
            self.failed += 1

    @property
    def success_rate(self) -> float:
        """Successful / processed in [0, 1]; 0.0 when nothing was processed."""
        if self.processed == 0:
            return 0.0
        return self.successful / self.processed
