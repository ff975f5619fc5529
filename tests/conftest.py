"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules.
"""

import cv2
import numpy as np
import pytest

PAGE_CORNERS = np.array(
    [[180, 120], [470, 140], [450, 380], [160, 350]], dtype=np.int32
)


@pytest.fixture
def sample_quadrilateral_points():
    """Fixture providing sample 4-corner points in scrambled order."""
    return np.array(
        [
            [300, 150],  # Top-right area
            [100, 200],  # Top-left area
            [320, 400],  # Bottom-right area
            [80, 380],  # Bottom-left area
        ],
        dtype=np.float32,
    )


@pytest.fixture
def rectangle_mask():
    """Binary mask with a single 100x150 axis-aligned white rectangle."""
    mask = np.zeros((300, 300), dtype=np.uint8)
    mask[60:210, 100:200] = 255
    corners = np.array(
        [[100, 60], [199, 60], [199, 209], [100, 209]], dtype=np.float32
    )
    return mask, corners


@pytest.fixture
def document_frame():
    """
    RGBA frame with a bright, slightly skewed page on a dark desk.

    The page carries a few dark text lines so that small components
    compete with the page outline.
    """
    frame = np.zeros((480, 640, 4), dtype=np.uint8)
    frame[..., :3] = 40
    frame[..., 3] = 255

    cv2.fillPoly(frame, [PAGE_CORNERS], (235, 235, 235, 255))
    for y in (190, 230, 270):
        cv2.rectangle(frame, (240, y), (390, y + 8), (30, 30, 30, 255), -1)

    return frame, PAGE_CORNERS.astype(np.float32)


@pytest.fixture
def blank_frame():
    """All-black opaque RGBA frame with nothing to detect."""
    frame = np.zeros((240, 320, 4), dtype=np.uint8)
    frame[..., 3] = 255
    return frame
