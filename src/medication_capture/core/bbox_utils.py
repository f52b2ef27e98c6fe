# ============================================================================
# src/medication_capture/core/bbox_utils.py
# ============================================================================
"""
Bounding box utilities for recognition word coordinates.

This module provides:
- Bbox validation and ordering fixes
- Multi-word bbox merging
- Conversion from image pixels to normalized / percentage rectangles

Coordinate System:
- All bboxes are stored as (x0, y0, x1, y1) tuples
- Source boxes are in image pixel space, (0,0) is top-left
- x0 <= x1 (left to right)
- y0 <= y1 (top to bottom)
"""

from typing import Dict, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

# Type alias for bounding box
BBox = Tuple[float, float, float, float]


def validate_bbox(bbox: Optional[BBox]) -> bool:
    """
    Validate that a bbox is properly formed.

    Args:
        bbox: (x0, y0, x1, y1) tuple

    Returns:
        True if bbox is valid, False otherwise
    """
    if bbox is None:
        return False

    if not isinstance(bbox, (tuple, list)) or len(bbox) != 4:
        return False

    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in bbox):
        return False
    # NaN check: v != v
    if any(v != v or abs(v) == float('inf') for v in bbox):
        return False

    x0, y0, x1, y1 = bbox
    return x0 <= x1 and y0 <= y1


def fix_bbox_ordering(bbox: BBox) -> BBox:
    """
    Ensure bbox has correct ordering (x0 < x1, y0 < y1).

    Some engines report corners in reading order rather than min/max.
    """
    x0, y0, x1, y1 = bbox
    return (
        min(x0, x1),
        min(y0, y1),
        max(x0, x1),
        max(y0, y1)
    )


def merge_bboxes(bboxes: List[BBox]) -> Optional[BBox]:
    """
    Merge multiple bboxes into a single encompassing bbox.

    Useful for multi-word values where each word has its own bbox.

    Args:
        bboxes: List of (x0, y0, x1, y1) tuples

    Returns:
        Merged bbox that encompasses all input bboxes, or None if empty
    """
    valid_bboxes = [b for b in bboxes if validate_bbox(b)]
    if not valid_bboxes:
        return None

    x0 = min(b[0] for b in valid_bboxes)
    y0 = min(b[1] for b in valid_bboxes)
    x1 = max(b[2] for b in valid_bboxes)
    y1 = max(b[3] for b in valid_bboxes)

    return (x0, y0, x1, y1)


def normalize_bbox(
    bbox: BBox,
    image_width: float,
    image_height: float
) -> Optional[BBox]:
    """
    Normalize a pixel bbox to the 0-1 range, clamped to the image.

    Args:
        bbox: (x0, y0, x1, y1) in pixels
        image_width: Source image width in pixels
        image_height: Source image height in pixels

    Returns:
        Normalized bbox or None if the box or the image size is invalid
    """
    if not validate_bbox(bbox) or not image_width or not image_height:
        return None
    if image_width <= 0 or image_height <= 0:
        return None

    x0, y0, x1, y1 = bbox
    result = (
        max(0.0, min(1.0, x0 / image_width)),
        max(0.0, min(1.0, y0 / image_height)),
        max(0.0, min(1.0, x1 / image_width)),
        max(0.0, min(1.0, y1 / image_height)),
    )

    if not validate_bbox(result):
        logger.debug(f"Bbox normalization produced invalid box: {result}")
        return None
    return result


def bbox_to_percent_rect(
    bbox: BBox,
    image_width: float,
    image_height: float
) -> Optional[Dict[str, float]]:
    """
    Convert a pixel bbox into CSS-style percentage placement.

    Returns:
        {"left", "top", "width", "height"} in percent of the image, or None
    """
    normalized = normalize_bbox(bbox, image_width, image_height)
    if normalized is None:
        return None

    nx0, ny0, nx1, ny1 = normalized
    return {
        "left": round(nx0 * 100, 3),
        "top": round(ny0 * 100, 3),
        "width": round((nx1 - nx0) * 100, 3),
        "height": round((ny1 - ny0) * 100, 3),
    }
