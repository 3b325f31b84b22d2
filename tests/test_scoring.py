"""Tests for the rule-table scorer and the optional image signal."""

from __future__ import annotations

import unittest
from pathlib import Path

import cv2
import numpy as np

from markswap.config import BoostRule
from markswap.models import FrameSample, RegionCandidate
from markswap.regions import generate_regions
from markswap.scoring import rule_boost, score_frames, score_region, text_density_delta


def _frame(width: int, height: int, tag: str = "start", fill: int = 0) -> FrameSample:
    image = np.full((height, width, 3), fill, dtype=np.uint8)
    return FrameSample(tag=tag, offset_sec=0.5, path=Path(f"/tmp/frame_{tag}.png"), image=image)


def _text_frame(width: int, height: int) -> FrameSample:
    """Dark frame with a white 'watermark' drawn in every catalogue corner."""
    frame = _frame(width, height)
    for region in generate_regions(width, height):
        cv2.putText(
            frame.image,
            "ulazai.com",
            (region.x + 4, region.y + region.height - 8),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.6,
            (255, 255, 255),
            1,
            cv2.LINE_AA,
        )
    return frame


class RuleBoostTest(unittest.TestCase):

    def test_rule_table(self) -> None:
        self.assertAlmostEqual(rule_boost("vertical-bottom-right"), 0.20)
        self.assertAlmostEqual(rule_boost("horizontal-bottom-left"), 0.10)
        self.assertAlmostEqual(rule_boost("vertical-bottom-center"), 0.05)
        self.assertAlmostEqual(rule_boost("vertical-mid-right"), 0.0)
        self.assertAlmostEqual(rule_boost("horizontal-top-left"), 0.0)

    def test_custom_rules_are_swappable(self) -> None:
        rules = (BoostRule("top", 0.4),)
        self.assertAlmostEqual(rule_boost("horizontal-top-left", rules), 0.4)
        self.assertAlmostEqual(rule_boost("horizontal-bottom-right", rules), 0.0)


class ScoreRegionTest(unittest.TestCase):

    def test_textual_boosts_on_portrait_catalogue(self) -> None:
        frame = _frame(1080, 1920)
        scores = {r.label: score_region(frame, r) for r in generate_regions(1080, 1920)}
        self.assertAlmostEqual(scores["vertical-bottom-right"], 1.0)
        self.assertAlmostEqual(scores["vertical-bottom-left"], 0.95)
        self.assertAlmostEqual(scores["vertical-bottom-center"], 0.75)
        self.assertAlmostEqual(scores["vertical-mid-left"], 0.60)
        self.assertAlmostEqual(scores["vertical-top-right"], 0.30)

    def test_score_stays_between_prior_and_one(self) -> None:
        for w, h in [(1080, 1920), (1920, 1080)]:
            frame = _text_frame(w, h)
            for region in generate_regions(w, h):
                score = score_region(frame, region, image_delta_cap=0.3)
                self.assertGreaterEqual(score, region.prior_confidence)
                self.assertLessEqual(score, 1.0)

    def test_textual_score_independent_of_frame_content(self) -> None:
        dark = _frame(1920, 1080)
        text = _text_frame(1920, 1080)
        for region in generate_regions(1920, 1080):
            self.assertEqual(score_region(dark, region), score_region(text, region))

    def test_bad_geometry_scores_zero(self) -> None:
        frame = _frame(100, 100)
        outside = RegionCandidate("horizontal-bottom-right", 90, 90, 50, 20, 0.9)
        self.assertEqual(score_region(frame, outside), 0.0)

    def test_image_signal_adds_bounded_delta(self) -> None:
        region = RegionCandidate("horizontal-top-left", 10, 10, 150, 40, 0.5)
        frame = _frame(400, 300)
        cv2.putText(frame.image, "ulazai.com", (14, 40), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1, cv2.LINE_AA)

        plain = score_region(frame, region)
        boosted = score_region(frame, region, image_delta_cap=0.2)
        self.assertAlmostEqual(plain, 0.5)
        self.assertGreater(boosted, plain)
        self.assertLessEqual(boosted, 0.5 + 0.2 + 1e-9)


class TextDensityDeltaTest(unittest.TestCase):

    def test_flat_crop_has_no_signal(self) -> None:
        crop = np.full((40, 150, 3), 128, dtype=np.uint8)
        self.assertEqual(text_density_delta(crop, 0.3), 0.0)

    def test_cap_is_clamped(self) -> None:
        crop = np.zeros((40, 150, 3), dtype=np.uint8)
        cv2.putText(crop, "ulazai.com", (4, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1, cv2.LINE_AA)
        delta = text_density_delta(crop, 5.0)
        self.assertGreater(delta, 0.0)
        self.assertLessEqual(delta, 0.3)

    def test_zero_cap_disables_signal(self) -> None:
        crop = np.zeros((40, 150, 3), dtype=np.uint8)
        cv2.putText(crop, "ulazai.com", (4, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1, cv2.LINE_AA)
        self.assertEqual(text_density_delta(crop, 0.0), 0.0)


class ScoreFramesTest(unittest.TestCase):

    def test_every_frame_times_every_candidate(self) -> None:
        frames = [_frame(1920, 1080, "start"), _frame(1920, 1080, "middle")]
        candidates = generate_regions(1920, 1080)
        scored = score_frames(frames, candidates)

        self.assertEqual(len(scored), len(frames) * len(candidates))
        self.assertEqual([s.frame_tag for s in scored[:len(candidates)]], ["start"] * len(candidates))
        self.assertEqual([s.region for s in scored[len(candidates):]], candidates)

    def test_one_bad_frame_does_not_affect_the_others(self) -> None:
        frames = [_frame(50, 50, "start"), _frame(1920, 1080, "middle")]
        scored = score_frames(frames, generate_regions(1920, 1080))
        start = [s.score for s in scored if s.frame_tag == "start"]
        middle = [s.score for s in scored if s.frame_tag == "middle"]
        self.assertTrue(all(score == 0.0 for score in start))
        self.assertTrue(all(score > 0.0 for score in middle))


if __name__ == "__main__":
    unittest.main()
