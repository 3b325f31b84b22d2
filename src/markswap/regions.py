from __future__ import annotations

from dataclasses import dataclass
from typing import List, Tuple

from .models import RegionCandidate

EDGE_MARGIN_PX = 10
SIZE_FRACTION_OF_WIDTH = 0.14
MID_HEIGHT_FRACTION = 0.8


@dataclass(frozen=True)
class _CatalogueShape:
    """Per-orientation geometry constants."""
    prefix: str
    cap_w: int
    cap_h: int
    bottom_gap: int
    center_scale: float
    center_bottom_gap: int


_PORTRAIT = _CatalogueShape(
    prefix="vertical",
    cap_w=140,
    cap_h=35,
    bottom_gap=25,
    center_scale=6.0 / 7.0,
    center_bottom_gap=20,
)

_LANDSCAPE = _CatalogueShape(
    prefix="horizontal",
    cap_w=150,
    cap_h=40,
    bottom_gap=10,
    center_scale=1.0,
    center_bottom_gap=10,
)


def _box_size(frame_width: int, shape: _CatalogueShape) -> Tuple[int, int]:
    """
    Watermark-sized box: grows with the frame width, capped at (cap_w, cap_h),
    keeping the cap's aspect ratio.
    """
    w = min(shape.cap_w, int(round(frame_width * SIZE_FRACTION_OF_WIDTH)))
    h = min(shape.cap_h, int(round(w * shape.cap_h / shape.cap_w)))
    return w, h


def _portrait_catalogue(width: int, height: int) -> List[RegionCandidate]:
    s = _PORTRAIT
    w, h = _box_size(width, s)
    cw, ch = int(round(w * s.center_scale)), int(round(h * s.center_scale))
    m = EDGE_MARGIN_PX

    bottom_y = height - h - s.bottom_gap
    mid_y = int(height * MID_HEIGHT_FRACTION)
    right_x = width - w - m

    return [
        RegionCandidate(f"{s.prefix}-bottom-left", m, bottom_y, w, h, 0.85),
        RegionCandidate(f"{s.prefix}-bottom-right", right_x, bottom_y, w, h, 0.90),
        RegionCandidate(f"{s.prefix}-bottom-center", (width - cw) // 2, height - ch - s.center_bottom_gap, cw, ch, 0.70),
        RegionCandidate(f"{s.prefix}-mid-left", m, mid_y, w, h, 0.60),
        RegionCandidate(f"{s.prefix}-mid-right", right_x, mid_y, w, h, 0.60),
        RegionCandidate(f"{s.prefix}-top-left", m, m, w, h, 0.30),
        RegionCandidate(f"{s.prefix}-top-right", right_x, m, w, h, 0.30),
    ]


def _landscape_catalogue(width: int, height: int) -> List[RegionCandidate]:
    s = _LANDSCAPE
    w, h = _box_size(width, s)
    m = EDGE_MARGIN_PX

    bottom_y = height - h - s.bottom_gap
    right_x = width - w - m

    return [
        RegionCandidate(f"{s.prefix}-bottom-left", m, bottom_y, w, h, 0.90),
        RegionCandidate(f"{s.prefix}-bottom-right", right_x, bottom_y, w, h, 0.90),
        RegionCandidate(f"{s.prefix}-bottom-center", (width - w) // 2, height - h - s.center_bottom_gap, w, h, 0.70),
        RegionCandidate(f"{s.prefix}-top-left", m, m, w, h, 0.50),
        RegionCandidate(f"{s.prefix}-top-right", right_x, m, w, h, 0.50),
    ]


def generate_regions(width: int, height: int) -> List[RegionCandidate]:
    """
    Candidate catalogue for a frame of (width, height).

    Pure and deterministic: same input, same list, same order.
    Candidates that do not fit the frame are dropped, never clipped.
    """
    if width <= 0 or height <= 0:
        return []

    if height > width:
        catalogue = _portrait_catalogue(width, height)
    else:
        catalogue = _landscape_catalogue(width, height)

    return [c for c in catalogue if c.fits_within(width, height)]


def fallback_region(width: int, height: int) -> RegionCandidate:
    """
    Orientation default used when detection is not confident enough.

    Bottom-right for portrait, bottom-left for landscape (corpus bias, not the
    catalogue priors). Unlike the catalogue, this always returns a region: on
    tiny frames the box is shrunk to keep a 1px border inside the frame.
    """
    if height > width:
        s = _PORTRAIT
        label = f"{s.prefix}-bottom-right"
    else:
        s = _LANDSCAPE
        label = f"{s.prefix}-bottom-left"

    w, h = _box_size(width, s)
    if height > width:
        x = width - w - EDGE_MARGIN_PX
    else:
        x = EDGE_MARGIN_PX
    y = height - h - s.bottom_gap

    # Keep the box strictly inside the frame (delogo rejects edge-touching areas).
    w = max(1, min(w, width - 2))
    h = max(1, min(h, height - 2))
    x = min(max(1, x), max(1, width - w - 1))
    y = min(max(1, y), max(1, height - h - 1))

    return RegionCandidate(label, x, y, w, h, 0.0)
