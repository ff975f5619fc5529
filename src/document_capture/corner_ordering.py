"""
Corner ordering stage.

Labels the four corners of a quadrilateral as Top-Left, Top-Right,
Bottom-Right, Bottom-Left. The labeling is always a permutation of the
input points; nothing is added, removed or interpolated.
"""

import logging
from typing import Union

import numpy as np

from src.document_capture.errors import DegenerateQuadError
from src.document_capture.types import OrderedQuad

logger = logging.getLogger(__name__)


def order_points(
    pts: Union[np.ndarray, list], coincidence_tolerance: float = 1.0
) -> np.ndarray:
    """
    Order 4 points in a consistent manner: Top-Left, Top-Right, Bottom-Right, Bottom-Left.

    The points are sorted by their angle around the centroid, which in
    image coordinates (y pointing down) walks them clockwise. The cycle is
    then rotated to start at the point with the smallest x + y, which is
    Top-Left; the next three are Top-Right, Bottom-Right and Bottom-Left.
    Walking the cycle keeps the labeling a permutation even for a quad
    rotated by 45 degrees, where independent sum and difference rules
    could give one point two labels.

    Args:
        pts: Array of 4 points with shape (4, 2) or list of [x, y] coordinates.
        coincidence_tolerance: Points closer than this many pixels are
            considered the same point.

    Returns:
        Numpy array of shape (4, 2), float32, in [TL, TR, BR, BL] order.

    Raises:
        ValueError: If input does not contain exactly 4 points.
        DegenerateQuadError: If two or more points coincide.

    Example:
        >>> pts = np.array([[300, 150], [100, 200], [320, 400], [80, 380]])
        >>> order_points(pts)[0]
        array([100., 200.], dtype=float32)
    """
    pts = np.array(pts, dtype=np.float32)

    if pts.shape != (4, 2):
        raise ValueError(
            f"Expected exactly 4 points with shape (4, 2), got shape {pts.shape}"
        )

    for i in range(4):
        for j in range(i + 1, 4):
            distance = float(np.linalg.norm(pts[i] - pts[j]))
            if distance <= coincidence_tolerance:
                raise DegenerateQuadError(
                    f"Corners {pts[i].tolist()} and {pts[j].tolist()} coincide "
                    f"(distance {distance:.2f}px <= {coincidence_tolerance}px)"
                )

    centroid = pts.mean(axis=0)
    angles = np.arctan2(pts[:, 1] - centroid[1], pts[:, 0] - centroid[0])
    cycle = pts[np.argsort(angles, kind="stable")]

    start = int(np.argmin(cycle.sum(axis=1)))
    rect = np.roll(cycle, -start, axis=0)

    logger.debug(
        f"Ordered points: TL={rect[0]}, TR={rect[1]}, BR={rect[2]}, BL={rect[3]}"
    )

    return rect


def order_corners(
    pts: Union[np.ndarray, list], coincidence_tolerance: float = 1.0
) -> OrderedQuad:
    """
    Label the corners of a quadrilateral.

    Same as ``order_points`` but returns an ``OrderedQuad``. Ordering an
    already ordered quad yields the same labeling.
    """
    return OrderedQuad.from_numpy(order_points(pts, coincidence_tolerance))
