"""Tests for location selection (threshold gate + orientation fallback)."""

from __future__ import annotations

import unittest
from pathlib import Path

from markswap.models import Decision, RegionCandidate, ScoredRegion, VideoAsset
from markswap.regions import generate_regions
from markswap.selector import select_location, top_scored

PORTRAIT = VideoAsset(path=Path("portrait.mp4"), width=1080, height=1920, duration_sec=8.0)
LANDSCAPE = VideoAsset(path=Path("landscape.mp4"), width=1920, height=1080, duration_sec=8.0)


def _scored(asset: VideoAsset, scores: dict, frame_tag: str = "start") -> list[ScoredRegion]:
    return [
        ScoredRegion(region=r, score=scores.get(r.label, 0.1), frame_tag=frame_tag)
        for r in generate_regions(asset.width, asset.height)
    ]


class SelectLocationTest(unittest.TestCase):

    def test_portrait_detection_picks_the_scored_region(self) -> None:
        scored = _scored(PORTRAIT, {"vertical-bottom-right": 0.95, "vertical-bottom-left": 0.5})
        target = next(s.region for s in scored if s.region.label == "vertical-bottom-right")

        location = select_location(scored, PORTRAIT)

        self.assertEqual(location.decision, Decision.DETECTED)
        self.assertEqual(location.region, target)
        self.assertAlmostEqual(location.score, 0.95)
        self.assertEqual(location.frame_tag, "start")

    def test_low_confidence_landscape_falls_back_to_bottom_left(self) -> None:
        scored = _scored(LANDSCAPE, {r.label: 0.55 for r in generate_regions(1920, 1080)})

        location = select_location(scored, LANDSCAPE)

        self.assertEqual(location.decision, Decision.FALLBACK)
        self.assertIn("bottom-left", location.region.label)
        self.assertIsNone(location.frame_tag)

    def test_low_confidence_portrait_falls_back_to_bottom_right(self) -> None:
        scored = _scored(PORTRAIT, {"vertical-top-left": 0.6})
        location = select_location(scored, PORTRAIT)
        self.assertEqual(location.decision, Decision.FALLBACK)
        self.assertIn("bottom-right", location.region.label)

    def test_threshold_is_strict(self) -> None:
        scored = _scored(LANDSCAPE, {"horizontal-top-right": 0.6})
        self.assertEqual(select_location(scored, LANDSCAPE).decision, Decision.FALLBACK)

        scored = _scored(LANDSCAPE, {"horizontal-top-right": 0.61})
        location = select_location(scored, LANDSCAPE)
        self.assertEqual(location.decision, Decision.DETECTED)
        self.assertEqual(location.region.label, "horizontal-top-right")

    def test_custom_threshold(self) -> None:
        scored = _scored(LANDSCAPE, {"horizontal-top-right": 0.45})
        location = select_location(scored, LANDSCAPE, threshold=0.4)
        self.assertEqual(location.decision, Decision.DETECTED)

    def test_no_scores_goes_straight_to_fallback(self) -> None:
        location = select_location([], PORTRAIT)
        self.assertEqual(location.decision, Decision.FALLBACK)
        self.assertEqual(location.score, 0.0)
        self.assertEqual(location.region.label, "vertical-bottom-right")

    def test_first_max_wins_ties_across_frames(self) -> None:
        region = RegionCandidate("horizontal-bottom-left", 10, 1030, 150, 40, 0.9)
        scored = [
            ScoredRegion(region=region, score=0.9, frame_tag="start"),
            ScoredRegion(region=region, score=0.9, frame_tag="middle"),
        ]
        self.assertEqual(select_location(scored, LANDSCAPE).frame_tag, "start")


class TopScoredTest(unittest.TestCase):

    def test_sorted_and_truncated(self) -> None:
        scored = _scored(LANDSCAPE, {"horizontal-top-left": 0.9, "horizontal-bottom-center": 0.7})
        top = top_scored(scored, n=2)
        self.assertEqual([s.region.label for s in top], ["horizontal-top-left", "horizontal-bottom-center"])
        self.assertEqual(top_scored(scored, n=0), [])


if __name__ == "__main__":
    unittest.main()
