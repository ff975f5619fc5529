"""
Preprocessing stage: frame to binary edge mask.

Converts to grayscale, applies inverted mean adaptive thresholding and a
morphological closing followed by dilation to bridge small gaps in
traced edges.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from src.common.types import ChannelLayout
from src.document_capture.types import PreprocessingConfig

logger = logging.getLogger(__name__)

_GRAY_CONVERSIONS = {
    ChannelLayout.RGB: cv2.COLOR_RGB2GRAY,
    ChannelLayout.RGBA: cv2.COLOR_RGBA2GRAY,
    ChannelLayout.BGR: cv2.COLOR_BGR2GRAY,
    ChannelLayout.BGRA: cv2.COLOR_BGRA2GRAY,
}


def to_grayscale(
    image: np.ndarray, layout: Optional[ChannelLayout] = None
) -> np.ndarray:
    """
    Convert a frame to a single-channel luminance image.

    Uses the ITU-R BT.601 weighting applied by ``cv2.cvtColor``.

    Args:
        image: uint8 array of shape (H, W), (H, W, 1), (H, W, 3) or (H, W, 4).
        layout: Channel order; inferred from the channel count when None.

    Returns:
        New uint8 array of shape (H, W). The input is never modified.
    """
    if layout is None:
        layout = ChannelLayout.infer(image)

    if layout == ChannelLayout.GRAY:
        return image.reshape(image.shape[0], image.shape[1]).copy()

    return cv2.cvtColor(image, _GRAY_CONVERSIONS[layout])


def preprocess(
    image: np.ndarray,
    config: Optional[PreprocessingConfig] = None,
    layout: Optional[ChannelLayout] = None,
) -> np.ndarray:
    """
    Produce a binary edge mask from a captured frame.

    Foreground (255) marks pixels darker than their neighborhood mean minus
    ``threshold_offset`` (THRESH_BINARY_INV semantics), which outlines the
    boundary between a bright page and its background.

    Args:
        image: Input frame (grayscale, RGB(A) or BGR(A)).
        config: Preprocessing parameters. Defaults are used when None.
        layout: Channel order of ``image``; inferred when None.

    Returns:
        uint8 mask with values in {0, 255} and the frame's height and width.
        A zero-area input yields an all-zero mask.

    Example:
        >>> frame = np.zeros((480, 640, 4), dtype=np.uint8)
        >>> mask = preprocess(frame)
        >>> mask.shape
        (480, 640)
    """
    config = config or PreprocessingConfig()

    if image is None or image.size == 0:
        shape = image.shape[:2] if image is not None and image.ndim >= 2 else (0, 0)
        logger.debug("Empty frame, returning all-zero mask")
        return np.zeros(shape, dtype=np.uint8)

    gray = to_grayscale(image, layout)

    if config.blur_kernel_size > 1:
        k = config.blur_kernel_size
        gray = cv2.GaussianBlur(gray, (k, k), 0)

    mask = cv2.adaptiveThreshold(
        gray,
        255,
        cv2.ADAPTIVE_THRESH_MEAN_C,
        cv2.THRESH_BINARY_INV,
        config.block_size,
        config.threshold_offset,
    )

    kernel = cv2.getStructuringElement(
        cv2.MORPH_RECT, (config.morph_kernel_size, config.morph_kernel_size)
    )
    if config.morph_operation == "close_dilate":
        mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, kernel)
    if config.dilate_iterations > 0:
        mask = cv2.dilate(mask, kernel, iterations=config.dilate_iterations)

    logger.debug(
        f"Edge mask {mask.shape[1]}x{mask.shape[0]}: "
        f"{int(np.count_nonzero(mask))} foreground pixels"
    )

    return mask
