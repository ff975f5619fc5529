"""
Contour extraction stage: binary mask to closed boundary curves.
"""

import logging
from typing import Iterator, Optional, Sequence

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def remove_small_components(mask: np.ndarray, min_pixels: int) -> np.ndarray:
    """
    Drop 8-connected foreground components smaller than ``min_pixels``.

    Returns:
        New {0, 255} mask containing only the surviving components.
    """
    num_labels, labels, stats, _ = cv2.connectedComponentsWithStats(
        (mask > 0).astype(np.uint8), connectivity=8
    )

    # Label 0 is the background
    keep = np.flatnonzero(stats[1:, cv2.CC_STAT_AREA] >= min_pixels) + 1
    logger.debug(
        f"{num_labels - 1} components, {len(keep)} with >= {min_pixels} pixels"
    )

    return np.where(np.isin(labels, keep), 255, 0).astype(np.uint8)


def extract_contours(
    mask: np.ndarray,
    min_pixels: int = 64,
    inner_boundary_fraction: float = 0.5,
) -> Iterator[np.ndarray]:
    """
    Trace the boundary of every sufficiently large foreground component.

    Yields one closed polyline per 8-connected component, including
    components nested inside the holes of others. A component whose largest
    hole covers at least ``inner_boundary_fraction`` of its outer area is an
    edge band around a bright region (the inverted threshold marks the dark
    side of a page edge). Its hole boundary is yielded instead of the outer
    one, so the curve hugs the page rather than the desk around it.
    Points keep their trace direction, so the signed area of a contour is
    meaningful. The generator is single-use; call again to re-extract.

    Args:
        mask: Binary mask (nonzero is foreground).
        min_pixels: Components with fewer pixels are ignored as noise.
        inner_boundary_fraction: Minimum hole area, as a fraction of the
            outer area, for a component to be traced along its hole.

    Yields:
        int32 arrays of shape (N, 2) holding [x, y] boundary points.

    Example:
        >>> mask = np.zeros((200, 200), dtype=np.uint8)
        >>> mask[50:150, 40:160] = 255
        >>> contours = list(extract_contours(mask))
        >>> len(contours)
        1
    """
    if mask is None or mask.size == 0:
        return

    filtered = remove_small_components(mask, min_pixels)

    # RETR_CCOMP splits outer boundaries (no parent) from hole boundaries,
    # so a component sitting inside another's hole still gets its own contour
    # and each outer contour lists its holes as children.
    contours, hierarchy = cv2.findContours(
        filtered, cv2.RETR_CCOMP, cv2.CHAIN_APPROX_NONE
    )
    if hierarchy is None:
        logger.debug("No contours found")
        return

    hierarchy = hierarchy[0]
    for index, (_, _, first_child, parent) in enumerate(hierarchy):
        if parent != -1:
            continue

        contour = contours[index]
        hole = _largest_hole(contours, hierarchy, first_child)
        if hole is not None:
            outer_area = cv2.contourArea(contour)
            hole_area = cv2.contourArea(hole)
            if outer_area > 0 and hole_area >= inner_boundary_fraction * outer_area:
                logger.debug(
                    f"Component {index}: tracing hole boundary "
                    f"({hole_area:.0f} of {outer_area:.0f} px area)"
                )
                contour = hole

        yield contour.reshape(-1, 2)


def _largest_hole(
    contours: Sequence[np.ndarray], hierarchy: np.ndarray, first_child: int
) -> Optional[np.ndarray]:
    """Return the hole contour with the largest area, walking the sibling chain."""
    largest, largest_area = None, 0.0
    child = first_child
    while child != -1:
        area = cv2.contourArea(contours[child])
        if area > largest_area:
            largest, largest_area = contours[child], area
        child = hierarchy[child][0]
    return largest
