from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class BoostRule:
    """Additive confidence boost applied when `substring` occurs in a region label."""
    substring: str
    boost: float


# Ordered: the first matching rule wins, so "bottom" only fires for
# bottom positions that are not one of the corners.
DEFAULT_BOOST_RULES: Tuple[BoostRule, ...] = (
    BoostRule("bottom-right", 0.20),
    BoostRule("bottom-left", 0.10),
    BoostRule("bottom", 0.05),
)

DETECTION_THRESHOLD = 0.6
MAX_IMAGE_DELTA = 0.3


@dataclass(frozen=True)
class PipelineSettings:
    """
    Settings for one batch run.

    A variant is just a named PipelineSettings (see VARIANTS below); its
    output_suffix is part of the skip-if-exists key.
    """
    variant: str = "enhanced-ai"
    output_suffix: str = "-enhanced-ai"
    brand_text: str = "promptveo3.com"

    # Detection
    detection_threshold: float = DETECTION_THRESHOLD
    boost_rules: Tuple[BoostRule, ...] = DEFAULT_BOOST_RULES
    image_delta_cap: float = 0.1  # 0 disables the image-based signal
    report_top_n: int = 5

    # Brand overlay
    font_size_portrait: int = 14
    font_size_landscape: int = 16
    brand_offset_px: int = 5
    font_color: str = "white"
    box_color: str = "0x2563eb@0.95"
    box_border_px: int = 5
    font_file: Optional[Path] = None

    # Encode
    video_codec: str = "libx264"
    crf: int = 23
    preset: str = "medium"
    min_output_ratio: float = 0.3

    # Throttling
    item_delay_sec: float = 1.0
    batch_delay_sec: float = 10.0
    batch_size: int = 50

    # None -> system temp dir
    scratch_root: Optional[Path] = None


VARIANTS: Dict[str, PipelineSettings] = {
    "enhanced-ai": PipelineSettings(),
    "visual-ai": PipelineSettings(
        variant="visual-ai",
        output_suffix="-visual-ai",
        image_delta_cap=MAX_IMAGE_DELTA,
    ),
    "clean": PipelineSettings(
        variant="clean",
        output_suffix="-clean",
        image_delta_cap=0.0,
        min_output_ratio=0.5,
        item_delay_sec=0.5,
    ),
}


def settings_for_variant(name: str, **overrides) -> PipelineSettings:
    """
    Return the preset for `name` with optional field overrides.

    Raises KeyError for unknown variants, ValueError for out-of-range overrides.
    """
    try:
        base = VARIANTS[name]
    except KeyError:
        raise KeyError(f"Unknown variant '{name}'. Known: {', '.join(sorted(VARIANTS))}") from None

    settings = replace(base, **overrides) if overrides else base
    validate_settings(settings)
    return settings


def validate_settings(settings: PipelineSettings) -> None:
    if not 0.0 <= settings.detection_threshold <= 1.0:
        raise ValueError("detection_threshold must be in [0, 1].")
    if not 0.0 <= settings.image_delta_cap <= MAX_IMAGE_DELTA:
        raise ValueError(f"image_delta_cap must be in [0, {MAX_IMAGE_DELTA}].")
    if not 0.0 <= settings.min_output_ratio < 1.0:
        raise ValueError("min_output_ratio must be in [0, 1).")
    if settings.batch_size <= 0:
        raise ValueError("batch_size must be positive.")
    if settings.item_delay_sec < 0 or settings.batch_delay_sec < 0:
        raise ValueError("Delays cannot be negative.")
    if not settings.output_suffix:
        raise ValueError("output_suffix cannot be empty (outputs would overwrite inputs).")
