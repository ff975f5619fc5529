"""
Document Capture: locate and rectify a document in a single still frame.

Finds the quadrilateral outline of a page, maps it to an upright
rectangle and applies a contrast/brightness enhancement. When no page is
found the enhanced original frame is returned instead.

Pipeline stages:
1. Preprocessing (binary edge mask)
2. Contour extraction
3. Quadrilateral selection
4. Corner ordering
5. Homography estimation
6. Warping
7. Enhancement
"""

from src.document_capture.config_loader import config_from_dict, load_config
from src.document_capture.contour_extraction import extract_contours
from src.document_capture.corner_ordering import order_corners, order_points
from src.document_capture.enhancement import enhance, enhance_image
from src.document_capture.errors import (
    CaptureCancelled,
    DegenerateQuadError,
    DetectionError,
    DocumentCaptureError,
    InvalidInputError,
    NoDocumentFound,
    SingularHomographyError,
)
from src.document_capture.homography import estimate_homography, solve_homography
from src.document_capture.preprocessing import preprocess, to_grayscale
from src.document_capture.processor import (
    DocumentCaptureProcessor,
    process_capture,
    validate_frame,
)
from src.document_capture.quad_selection import select_quadrilateral
from src.document_capture.types import (
    CaptureConfig,
    CaptureResult,
    CaptureStatus,
    DetectionResult,
    FailureReason,
    Homography,
    OrderedQuad,
    Quadrilateral,
)
from src.document_capture.warping import warp_image

__all__ = [
    "DocumentCaptureProcessor",
    "process_capture",
    "validate_frame",
    "load_config",
    "config_from_dict",
    "preprocess",
    "to_grayscale",
    "extract_contours",
    "select_quadrilateral",
    "order_points",
    "order_corners",
    "estimate_homography",
    "solve_homography",
    "warp_image",
    "enhance",
    "enhance_image",
    "CaptureConfig",
    "CaptureResult",
    "CaptureStatus",
    "DetectionResult",
    "FailureReason",
    "Homography",
    "OrderedQuad",
    "Quadrilateral",
    "DocumentCaptureError",
    "InvalidInputError",
    "DetectionError",
    "NoDocumentFound",
    "DegenerateQuadError",
    "SingularHomographyError",
    "CaptureCancelled",
]
