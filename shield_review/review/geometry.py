"""
Shield geometry on normalised page coordinates.
Pure functions; no state, no I/O.
"""

from typing import Optional

from shield_review.config import settings
from shield_review.schemas.shields import NormalizedBBox


def intersection_area(a: NormalizedBBox, b: NormalizedBBox) -> float:
    """Area of the rectangle shared by two boxes (0.0 when they only touch)."""
    x_overlap = min(a.x2, b.x2) - max(a.x, b.x)
    y_overlap = min(a.y2, b.y2) - max(a.y, b.y)
    if x_overlap <= 0.0 or y_overlap <= 0.0:
        return 0.0
    return x_overlap * y_overlap


def overlap_ratio(shield: NormalizedBBox, zone: NormalizedBBox) -> float:
    """
    Fraction of the SHIELD's area that lies inside the zone.

    A small shield fully inside a large zone is 1.0,
    a large shield grazing a small zone stays near 0.0.
    """
    shield_area = shield.area()
    if shield_area <= 0.0:
        return 0.0
    return min(intersection_area(shield, zone) / shield_area, 1.0)


def iou(a: NormalizedBBox, b: NormalizedBBox) -> float:
    """Intersection over union."""
    inter = intersection_area(a, b)
    union = a.area() + b.area() - inter
    if union <= 0.0:
        return 0.0
    return inter / union


def normalize_pixel_bbox(
    x: int, y: int, width: int, height: int, img_width: int, img_height: int,
) -> NormalizedBBox:
    """Pixel rectangle -> resolution-independent box."""
    if img_width <= 0 or img_height <= 0:
        raise ValueError(f"Invalid image size: {img_width}x{img_height}")
    return NormalizedBBox(
        x=x / img_width,
        y=y / img_height,
        width=width / img_width,
        height=height / img_height,
    )


def denormalize_bbox(bbox: NormalizedBBox, img_width: int, img_height: int) -> tuple[int, int, int, int]:
    """Normalised box -> (x, y, width, height) in pixels, never negative."""
    return (
        max(0, round(bbox.x * img_width)),
        max(0, round(bbox.y * img_height)),
        max(0, round(bbox.width * img_width)),
        max(0, round(bbox.height * img_height)),
    )


def bbox_from_drag(
    start: tuple[float, float],
    end: tuple[float, float],
    min_size: Optional[float] = None,
) -> Optional[NormalizedBBox]:
    """
    Box spanned by a drag gesture in normalised coordinates.
    Returns None for degenerate draws (either side <= min_size, default
    MIN_SHIELD_SIZE).
    """
    if min_size is None:
        min_size = settings.MIN_SHIELD_SIZE
    x = min(start[0], end[0])
    y = min(start[1], end[1])
    width = abs(end[0] - start[0])
    height = abs(end[1] - start[1])
    if width <= min_size or height <= min_size:
        return None
    return NormalizedBBox(x=x, y=y, width=width, height=height)
