"""
Quadrilateral selection stage.

Scores traced contours for document-likeness and keeps the largest
eligible four-sided candidate.

Filters, in order:
1. Area: |signed area| within [min_area_fraction, max_area_fraction] of the frame
2. Polygon reduction: Douglas-Peucker must leave exactly 4 vertices
3. Convexity: all consecutive edge cross products share a sign
4. Squareness: shorter / longer opposite-edge pair >= squareness_tolerance
"""

import logging
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from src.document_capture.types import DetectionConfig, Quadrilateral

logger = logging.getLogger(__name__)

# Areas closer than this are treated as a tie; the earlier contour wins
AREA_EPSILON = 1e-6


def signed_area(contour: np.ndarray) -> float:
    """
    Signed polygon area of a contour; the sign follows trace direction.

    Args:
        contour: Points of shape (N, 2) or OpenCV's (N, 1, 2).
    """
    pts = np.asarray(contour, dtype=np.float32).reshape(-1, 1, 2)
    if len(pts) < 3:
        return 0.0
    return float(cv2.contourArea(pts, oriented=True))


def approximate_polygon(contour: np.ndarray, epsilon_fraction: float) -> np.ndarray:
    """
    Reduce a closed contour with Douglas-Peucker.

    The tolerance is ``epsilon_fraction`` of the contour perimeter.

    Returns:
        Vertex array of shape (M, 2), same dtype as the contour.
    """
    pts = np.asarray(contour).reshape(-1, 1, 2)
    if pts.dtype not in (np.int32, np.float32):
        # OpenCV only accepts int32 or float32 point sets
        pts = pts.astype(np.int32 if np.issubdtype(pts.dtype, np.integer) else np.float32)
    perimeter = cv2.arcLength(pts, True)
    approx = cv2.approxPolyDP(pts, epsilon_fraction * perimeter, True)
    return approx.reshape(-1, 2)


def is_convex(polygon: np.ndarray) -> bool:
    """
    Check if a closed polygon is convex and non-self-intersecting.

    A polygon is convex if all cross products of consecutive edge vectors
    have the same sign. For a quadrilateral this also rules out
    self-intersection, since a crossed quad always mixes signs.
    """
    pts = np.asarray(polygon, dtype=np.float64).reshape(-1, 2)
    n = len(pts)
    if n < 3:
        return False

    cross_products = []
    for i in range(n):
        v1 = pts[(i + 1) % n] - pts[i]
        v2 = pts[(i + 2) % n] - pts[(i + 1) % n]
        cross_products.append(v1[0] * v2[1] - v1[1] * v2[0])

    cross_products = np.array(cross_products)
    # Allow small numerical errors near zero
    return bool(np.all(cross_products > 1e-6) or np.all(cross_products < -1e-6))


def squareness_score(quad: np.ndarray) -> float:
    """
    Ratio of the shorter to the longer pair of opposite edges.

    Edges are taken in vertex order, so edges 0/2 and 1/3 are opposite.
    A square scores 1.0, a 2:1 rectangle 0.5 and a sliver close to 0.

    Args:
        quad: 4 vertices in traversal order, shape (4, 2).
    """
    pts = np.asarray(quad, dtype=np.float64).reshape(4, 2)
    edges = np.linalg.norm(np.roll(pts, -1, axis=0) - pts, axis=1)
    pair_a = edges[0] + edges[2]
    pair_b = edges[1] + edges[3]
    longer = max(pair_a, pair_b)
    if longer == 0:
        return 0.0
    return float(min(pair_a, pair_b) / longer)


def evaluate_contour(
    contour: np.ndarray,
    frame_size: Tuple[int, int],
    config: DetectionConfig,
    index: int = 0,
) -> Optional[Quadrilateral]:
    """
    Run one contour through every document-likeness filter.

    Args:
        contour: Traced boundary points, shape (N, 2).
        frame_size: (width, height) of the source frame.
        config: Detection thresholds.
        index: Position of the contour in extraction order.

    Returns:
        The reduced Quadrilateral, or None if any filter rejects it.
    """
    frame_area = float(frame_size[0] * frame_size[1])
    area = signed_area(contour)
    abs_area = abs(area)

    if abs_area < config.min_area_fraction * frame_area:
        return None
    if abs_area > config.max_area_fraction * frame_area:
        logger.debug(f"Contour {index}: area {abs_area:.0f} covers the whole frame")
        return None

    polygon = approximate_polygon(contour, config.approx_epsilon_fraction)
    if len(polygon) != 4:
        logger.debug(f"Contour {index}: {len(polygon)} vertices after reduction")
        return None

    if not is_convex(polygon):
        logger.debug(f"Contour {index}: reduced polygon is not convex")
        return None

    squareness = squareness_score(polygon)
    if squareness < config.squareness_tolerance:
        logger.debug(
            f"Contour {index}: squareness {squareness:.2f} "
            f"< {config.squareness_tolerance}"
        )
        return None

    return Quadrilateral(
        points=polygon, area=area, squareness=squareness, contour_index=index
    )


def select_quadrilateral(
    contours: Iterable[np.ndarray],
    frame_size: Tuple[int, int],
    config: Optional[DetectionConfig] = None,
) -> Optional[Quadrilateral]:
    """
    Pick the largest document-like quadrilateral among the contours.

    Args:
        contours: Contours in trace order (any iterable, consumed once).
        frame_size: (width, height) of the source frame.
        config: Detection thresholds. Defaults are used when None.

    Returns:
        Quadrilateral with the maximum |area|, or None if no contour
        qualifies. On equal areas the first candidate encountered wins.

    Example:
        >>> mask = np.zeros((400, 400), dtype=np.uint8)
        >>> mask[100:250, 100:200] = 255
        >>> quad = select_quadrilateral(extract_contours(mask), (400, 400))
        >>> quad.points.shape
        (4, 2)
    """
    config = config or DetectionConfig()

    best: Optional[Quadrilateral] = None
    examined = 0
    survivors = 0
    for index, contour in enumerate(contours):
        examined += 1
        candidate = evaluate_contour(contour, frame_size, config, index)
        if candidate is None:
            continue
        survivors += 1
        if best is None or abs(candidate.area) > abs(best.area) + AREA_EPSILON:
            best = candidate

    logger.debug(
        f"Examined {examined} contours, {survivors} eligible quadrilaterals"
    )
    if best is not None:
        logger.debug(
            f"Selected contour {best.contour_index}: area={abs(best.area):.0f}, "
            f"squareness={best.squareness:.2f}"
        )

    return best
