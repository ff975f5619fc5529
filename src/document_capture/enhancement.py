"""
Enhancement stage: linear contrast/brightness transform.
"""

import logging
from typing import Optional

import numpy as np

from src.common.types import ChannelLayout
from src.document_capture.types import EnhancementConfig

logger = logging.getLogger(__name__)


def enhance_image(
    image: np.ndarray,
    contrast: float = 1.3,
    brightness: float = 15.0,
    layout: Optional[ChannelLayout] = None,
) -> np.ndarray:
    """
    Apply ``clamp(contrast * value + brightness, 0, 255)`` to every color channel.

    The alpha channel of RGBA/BGRA images is copied through untouched.
    Results are rounded to the nearest integer.

    Args:
        image: uint8 image (grayscale or color).
        contrast: Multiplicative gain.
        brightness: Additive offset.
        layout: Channel order; inferred from the channel count when None.

    Returns:
        New uint8 array with the input's shape.

    Example:
        >>> enhance_image(np.array([[200]], dtype=np.uint8), 1.3, 15)
        array([[255]], dtype=uint8)
    """
    if not (np.isfinite(contrast) and np.isfinite(brightness)):
        raise ValueError(
            f"contrast and brightness must be finite, got {contrast}, {brightness}"
        )

    if image.size == 0:
        return image.copy()

    if layout is None:
        layout = ChannelLayout.infer(image)

    result = image.copy()
    color = result[..., :3] if layout.has_alpha else result

    adjusted = contrast * color.astype(np.float32) + brightness
    color[...] = np.clip(np.rint(adjusted), 0, 255).astype(np.uint8)

    logger.debug(
        f"Enhanced {image.shape[1]}x{image.shape[0]} image "
        f"(contrast={contrast}, brightness={brightness})"
    )

    return result


def enhance(
    image: np.ndarray,
    config: Optional[EnhancementConfig] = None,
    layout: Optional[ChannelLayout] = None,
) -> np.ndarray:
    """Apply ``enhance_image`` with parameters taken from a config section."""
    config = config or EnhancementConfig()
    return enhance_image(image, config.contrast, config.brightness, layout)
