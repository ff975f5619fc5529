"""
Warping stage: resample the frame through the inverse homography.
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from src.document_capture.types import Homography

logger = logging.getLogger(__name__)

INTERPOLATION_FLAGS = {
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "nearest": cv2.INTER_NEAREST,
    "area": cv2.INTER_AREA,
    "lanczos": cv2.INTER_LANCZOS4,
}


def warp_image(
    image: np.ndarray,
    inverse_homography: Homography,
    size: Tuple[int, int],
    interpolation: str = "linear",
) -> np.ndarray:
    """
    Resample a frame into a rectangle of the given size.

    Each destination pixel is pulled from the source location given by
    ``inverse_homography`` (destination to source). Locations outside the
    frame are clamped to the nearest edge pixel, so no out-of-bounds memory
    is read and no black border is introduced.

    Args:
        image: Source frame, any channel count OpenCV accepts (1 to 4).
        inverse_homography: Transform from output coordinates to frame
            coordinates.
        size: Output (width, height), each at least 1.
        interpolation: One of "linear" (bilinear, default), "cubic",
            "nearest", "area", "lanczos".

    Returns:
        New array of shape (height, width[, channels]) with the frame's dtype.

    Raises:
        ValueError: If the size or interpolation is invalid.
    """
    width, height = int(size[0]), int(size[1])
    if width < 1 or height < 1:
        raise ValueError(f"Output size must be at least 1x1, got {width}x{height}")

    if interpolation not in INTERPOLATION_FLAGS:
        raise ValueError(
            f"Invalid interpolation: {interpolation}. "
            f"Must be one of {list(INTERPOLATION_FLAGS)}"
        )

    # WARP_INVERSE_MAP: the matrix already maps destination to source
    warped = cv2.warpPerspective(
        image,
        inverse_homography.matrix,
        (width, height),
        flags=INTERPOLATION_FLAGS[interpolation] | cv2.WARP_INVERSE_MAP,
        borderMode=cv2.BORDER_REPLICATE,
    )

    # warpPerspective drops a trailing singleton channel axis
    if image.ndim == 3 and warped.ndim == 2:
        warped = warped[:, :, np.newaxis]

    logger.debug(f"Warped {image.shape[1]}x{image.shape[0]} frame to {width}x{height}")

    return warped
