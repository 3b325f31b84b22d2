from __future__ import annotations

from typing import List, Sequence

from .config import DETECTION_THRESHOLD
from .models import Decision, ScoredRegion, SelectedLocation, VideoAsset
from .regions import fallback_region


def top_scored(scored: Sequence[ScoredRegion], n: int = 5) -> List[ScoredRegion]:
    """Highest scores first; ties keep their original (frame, catalogue) order."""
    if n <= 0:
        return []
    return sorted(scored, key=lambda s: s.score, reverse=True)[:n]


def select_location(
    scored: Sequence[ScoredRegion],
    asset: VideoAsset,
    threshold: float = DETECTION_THRESHOLD,
) -> SelectedLocation:
    """
    Reduce all scored regions of an asset to one actionable location.

    Rules:
    - argmax over every (frame, region) score; the first one wins ties
    - accept it only if max_score > threshold (strict)
    - otherwise use the orientation fallback, whatever the scores say

    An empty input (no frame could be sampled) always falls back.
    """
    best: ScoredRegion | None = None
    for cand in scored:
        if best is None or cand.score > best.score:
            best = cand

    if best is not None and best.score > threshold:
        return SelectedLocation(
            region=best.region,
            score=best.score,
            decision=Decision.DETECTED,
            frame_tag=best.frame_tag,
        )

    return SelectedLocation(
        region=fallback_region(asset.width, asset.height),
        score=best.score if best is not None else 0.0,
        decision=Decision.FALLBACK,
    )
