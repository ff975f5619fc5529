"""
Homography estimation stage.

Computes the projective transform that maps an ordered document
quadrilateral onto an upright rectangle sized from its own edges.

Technical Note:
    The four correspondences are solved with the normalized Direct Linear
    Transform: both point sets are translated to their centroid and scaled
    to a mean distance of sqrt(2), the 8x9 system is solved by SVD (the
    null vector is the last right-singular vector) and the result is
    denormalized. Invertibility is judged on the normalized matrix, where
    the entries are well scaled regardless of the frame resolution.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from src.document_capture.errors import SingularHomographyError
from src.document_capture.types import Homography, OrderedQuad

logger = logging.getLogger(__name__)


def target_corners(width: int, height: int) -> np.ndarray:
    """
    Destination rectangle corners [TL, TR, BR, BL] for an output size.

    Corners sit on pixel centers, so a ``width`` pixel wide output spans
    0..width-1. A 1 pixel side keeps an extent of 1 so the rectangle never
    collapses.
    """
    right = float(max(width - 1, 1))
    bottom = float(max(height - 1, 1))
    return np.array(
        [[0.0, 0.0], [right, 0.0], [right, bottom], [0.0, bottom]],
        dtype=np.float64,
    )


def _normalization_transform(pts: np.ndarray) -> np.ndarray:
    """Similarity moving the centroid to the origin with mean distance sqrt(2)."""
    mean = pts.mean(axis=0)
    mean_distance = np.linalg.norm(pts - mean, axis=1).mean()
    if mean_distance == 0:
        raise SingularHomographyError("All correspondence points coincide")
    scale = np.sqrt(2) / mean_distance
    return np.array(
        [
            [scale, 0.0, -scale * mean[0]],
            [0.0, scale, -scale * mean[1]],
            [0.0, 0.0, 1.0],
        ]
    )


def _apply(transform: np.ndarray, pts: np.ndarray) -> np.ndarray:
    homogeneous = np.hstack([pts, np.ones((len(pts), 1))]) @ transform.T
    return homogeneous[:, :2] / homogeneous[:, 2:3]


def solve_homography(
    src: np.ndarray, dst: np.ndarray, singular_tolerance: float = 1e-8
) -> Homography:
    """
    Solve the 3x3 transform mapping 4 source points onto 4 destination points.

    Args:
        src: Source points, shape (4, 2).
        dst: Destination points, shape (4, 2), in the same order as ``src``.
        singular_tolerance: Minimum |det| of the normalized matrix scaled
            to unit Frobenius norm.

    Returns:
        Homography normalized so that the bottom-right entry is 1.

    Raises:
        ValueError: If the point arrays are not (4, 2).
        SingularHomographyError: If no invertible transform exists
            (collinear or coincident points).
    """
    src = np.asarray(src, dtype=np.float64)
    dst = np.asarray(dst, dtype=np.float64)
    if src.shape != (4, 2) or dst.shape != (4, 2):
        raise ValueError(
            f"Expected two (4, 2) point arrays, got {src.shape} and {dst.shape}"
        )

    t_src = _normalization_transform(src)
    t_dst = _normalization_transform(dst)
    src_n = _apply(t_src, src)
    dst_n = _apply(t_dst, dst)

    rows = []
    for (x, y), (u, v) in zip(src_n, dst_n):
        rows.append([-x, -y, -1.0, 0.0, 0.0, 0.0, u * x, u * y, u])
        rows.append([0.0, 0.0, 0.0, -x, -y, -1.0, v * x, v * y, v])
    a = np.asarray(rows)

    _, singular_values, vt = np.linalg.svd(a)
    h_normalized = vt[-1].reshape(3, 3)

    # Rank below 8 means the correspondences do not pin down a unique transform
    if singular_values[7] <= singular_tolerance * singular_values[0]:
        raise SingularHomographyError(
            "Point correspondences are degenerate "
            f"(singular values {singular_values.round(6).tolist()})"
        )

    relative_det = abs(np.linalg.det(h_normalized / np.linalg.norm(h_normalized)))
    if not np.isfinite(relative_det) or relative_det < singular_tolerance:
        raise SingularHomographyError(
            f"Homography is not invertible (relative determinant {relative_det:.3e})"
        )

    matrix = np.linalg.inv(t_dst) @ h_normalized @ t_src
    if abs(matrix[2, 2]) < np.finfo(np.float64).eps:
        raise SingularHomographyError("Homography scale entry vanished")
    matrix = matrix / matrix[2, 2]

    if not np.all(np.isfinite(matrix)):
        raise SingularHomographyError("Homography contains non-finite entries")

    return Homography(matrix=matrix)


def estimate_homography(
    quad: OrderedQuad,
    target_size: Optional[Tuple[int, int]] = None,
    singular_tolerance: float = 1e-8,
) -> Tuple[Homography, Tuple[int, int]]:
    """
    Estimate the transform rectifying a document quadrilateral.

    Args:
        quad: Ordered document corners in frame coordinates.
        target_size: Output (width, height). Derived from the quad's edge
            lengths when None.
        singular_tolerance: See ``solve_homography``.

    Returns:
        Tuple of (homography mapping frame to output, (width, height)).

    Raises:
        SingularHomographyError: If the quad cannot be mapped invertibly.

    Example:
        >>> quad = order_corners([[10, 10], [110, 10], [110, 60], [10, 60]])
        >>> homography, size = estimate_homography(quad)
        >>> size
        (100, 50)
    """
    width, height = target_size or quad.target_size()
    dst = target_corners(width, height)
    homography = solve_homography(quad.to_numpy(np.float64), dst, singular_tolerance)

    logger.debug(
        f"Homography to {width}x{height} (det={homography.determinant:.4g}): "
        f"{homography.matrix.round(4).tolist()}"
    )

    return homography, (width, height)
