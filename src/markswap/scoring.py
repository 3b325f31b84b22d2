from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

import cv2
import numpy as np

from .config import DEFAULT_BOOST_RULES, MAX_IMAGE_DELTA, BoostRule
from .models import FrameSample, RegionCandidate, ScoredRegion

logger = logging.getLogger(__name__)

UPSCALE_FACTOR = 3
# Edge density (fraction of Canny pixels) where rendered text usually sits.
TEXT_DENSITY_PEAK = 0.15
TEXT_DENSITY_MAX = 0.45
CONTRAST_FULL_STD = 64.0


def rule_boost(label: str, rules: Sequence[BoostRule] = DEFAULT_BOOST_RULES) -> float:
    """First matching rule's boost, 0.0 if none matches."""
    for rule in rules:
        if rule.substring in label:
            return rule.boost
    return 0.0


def crop_region(image: np.ndarray, region: RegionCandidate) -> np.ndarray:
    """Crop `region` out of `image`, raising ValueError on geometry that does not fit."""
    h_img, w_img = image.shape[:2]
    if not region.fits_within(w_img, h_img):
        raise ValueError(
            f"Region {region.label} ({region.x},{region.y},{region.width}x{region.height}) "
            f"outside frame {w_img}x{h_img}"
        )
    crop = image[region.y:region.bottom, region.x:region.right]
    if crop.size == 0:
        raise ValueError(f"Empty crop for region {region.label}")
    return crop


def _density_score(density: float) -> float:
    """Triangle around TEXT_DENSITY_PEAK: flat areas and noise both score low."""
    if density <= 0.0:
        return 0.0
    if density <= TEXT_DENSITY_PEAK:
        return density / TEXT_DENSITY_PEAK
    return float(np.clip(1.0 - (density - TEXT_DENSITY_PEAK) / (TEXT_DENSITY_MAX - TEXT_DENSITY_PEAK), 0.0, 1.0))


def text_density_delta(crop: np.ndarray, cap: float) -> float:
    """
    Cheap "looks like text" signal for a cropped region, in [0, cap].

    Approach:
    - upscale 3x and unsharp-mask (small glyphs survive Canny better)
    - edge density near TEXT_DENSITY_PEAK scores high, flat or noisy areas low
    - scaled by local contrast so faint gradients do not count as text

    This is not OCR. It only nudges scores; the rule table dominates.
    """
    cap = float(min(max(cap, 0.0), MAX_IMAGE_DELTA))
    if cap <= 0.0:
        return 0.0

    gray = cv2.cvtColor(crop, cv2.COLOR_BGR2GRAY) if crop.ndim == 3 else crop
    up = cv2.resize(gray, None, fx=UPSCALE_FACTOR, fy=UPSCALE_FACTOR, interpolation=cv2.INTER_CUBIC)
    blur = cv2.GaussianBlur(up, (5, 5), 0)
    sharp = cv2.addWeighted(up, 2.0, blur, -1.0, 0)

    edges = cv2.Canny(sharp, 100, 200)
    density = float(np.mean(edges > 0))
    contrast = float(np.clip(np.std(sharp) / CONTRAST_FULL_STD, 0.0, 1.0))

    return float(np.clip(cap * _density_score(density) * contrast, 0.0, cap))


def score_region(
    frame: FrameSample,
    region: RegionCandidate,
    rules: Sequence[BoostRule] = DEFAULT_BOOST_RULES,
    image_delta_cap: float = 0.0,
) -> float:
    """
    Confidence in [0, 1] that `region` of `frame` holds the watermark.

    score = min(1, prior + rule boost + optional image delta), never below the prior.
    Any crop/analysis error yields 0.0 for this (frame, region) pair only.
    """
    try:
        crop = crop_region(frame.image, region)
        delta = text_density_delta(crop, image_delta_cap) if image_delta_cap > 0 else 0.0
        raw = region.prior_confidence + rule_boost(region.label, rules) + delta
        return float(min(1.0, max(region.prior_confidence, raw)))
    except Exception as e:
        logger.debug("Scoring failed for %s on frame '%s': %s", region.label, frame.tag, e)
        return 0.0


def score_frames(
    frames: Iterable[FrameSample],
    candidates: Sequence[RegionCandidate],
    rules: Sequence[BoostRule] = DEFAULT_BOOST_RULES,
    image_delta_cap: float = 0.0,
) -> List[ScoredRegion]:
    """Score every candidate on every frame (frame-major order)."""
    scored: List[ScoredRegion] = []
    for frame in frames:
        for region in candidates:
            scored.append(
                ScoredRegion(
                    region=region,
                    score=score_region(frame, region, rules, image_delta_cap),
                    frame_tag=frame.tag,
                )
            )
    return scored
