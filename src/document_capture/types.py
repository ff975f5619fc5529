"""
Data types and structures for the Document Capture module.

Provides type-safe containers for configuration, intermediate geometry
and pipeline results.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from src.common.types import Point


class CaptureStatus(Enum):
    """Terminal pipeline outcomes."""

    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    CANCELLED = "CANCELLED"


class FailureReason(Enum):
    """Why no crop was applied."""

    NO_DOCUMENT_FOUND = "No Document Found"
    DEGENERATE_QUAD = "Degenerate Quadrilateral"
    SINGULAR_HOMOGRAPHY = "Singular Homography"
    DETECTION_DISABLED = "Detection Disabled"
    CANCELLED = "Cancelled"
    NONE = "None"  # Document found and rectified


@dataclass
class PreprocessingConfig:
    """Configuration for grayscale conversion, thresholding and morphology."""

    block_size: int = 25  # Adaptive threshold neighborhood (odd)
    threshold_offset: float = 10.0  # C subtracted from the local mean
    morph_kernel_size: int = 5
    morph_operation: str = "close_dilate"  # "close_dilate" or "dilate"
    dilate_iterations: int = 1
    blur_kernel_size: int = 5  # 0 or 1 disables the pre-threshold blur


@dataclass
class DetectionConfig:
    """Configuration for contour filtering and quadrilateral selection."""

    min_component_pixels: int = 64  # Noise floor for connected components
    inner_boundary_fraction: float = 0.5  # Hole / outer area to trace a band's hole
    min_area_fraction: float = 0.1  # |area| / frame area lower bound
    max_area_fraction: float = 0.98  # Rejects near-full-frame outlines
    squareness_tolerance: float = 0.3  # Min ratio of opposite-edge pair sums
    approx_epsilon_fraction: float = 0.02  # Douglas-Peucker epsilon / perimeter
    coincidence_tolerance: float = 1.0  # px; closer corners are degenerate
    singular_tolerance: float = 1e-8  # Relative determinant floor


@dataclass
class EnhancementConfig:
    """Linear contrast/brightness transform: out = contrast * in + brightness."""

    contrast: float = 1.3
    brightness: float = 15.0


@dataclass
class ProcessingConfig:
    """Configuration for pipeline toggles and resampling."""

    enable_document_detection: bool = True
    enhance_image: bool = True
    warp_interpolation: str = "linear"


@dataclass
class CaptureConfig:
    """Complete document capture configuration."""

    preprocessing: PreprocessingConfig = field(default_factory=PreprocessingConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    enhancement: EnhancementConfig = field(default_factory=EnhancementConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)


@dataclass
class Quadrilateral:
    """
    Four unordered corners reduced from a contour.

    Attributes:
        points: Corner array of shape (4, 2) in contour trace order.
        area: Signed area of the source contour (sign is trace direction).
        squareness: Ratio of the shorter to the longer opposite-edge pair.
        contour_index: Position of the source contour in extraction order.
    """

    points: np.ndarray
    area: float
    squareness: float
    contour_index: int


@dataclass
class OrderedQuad:
    """Quadrilateral with labeled corners; a permutation of the input points."""

    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point

    @classmethod
    def from_numpy(cls, points: np.ndarray) -> "OrderedQuad":
        """Build from a (4, 2) array already in [TL, TR, BR, BL] order."""
        points = np.asarray(points)
        if points.shape != (4, 2):
            raise ValueError(
                f"Expected exactly 4 points with shape (4, 2), got shape {points.shape}"
            )
        return cls(*(Point.from_numpy(p) for p in points))

    def to_numpy(self, dtype: type = np.float32) -> np.ndarray:
        """Corners as a (4, 2) array in [TL, TR, BR, BL] order."""
        return np.array(
            [
                self.top_left.to_list(),
                self.top_right.to_list(),
                self.bottom_right.to_list(),
                self.bottom_left.to_list(),
            ],
            dtype=dtype,
        )

    def to_list(self) -> list:
        return self.to_numpy(np.float64).tolist()

    def edge_lengths(self) -> Tuple[float, float, float, float]:
        """Return (top, right, bottom, left) edge lengths."""
        return (
            self.top_left.distance_to(self.top_right),
            self.top_right.distance_to(self.bottom_right),
            self.bottom_right.distance_to(self.bottom_left),
            self.bottom_left.distance_to(self.top_left),
        )

    def target_size(self) -> Tuple[int, int]:
        """
        Rectified (width, height) derived from the edge lengths.

        Width is the longer of the top and bottom edges, height the longer
        of the left and right edges, each rounded and at least 1.
        """
        top, right, bottom, left = self.edge_lengths()
        width = max(int(round(max(top, bottom))), 1)
        height = max(int(round(max(left, right))), 1)
        return width, height


@dataclass
class Homography:
    """Invertible 3x3 projective transform (source plane to destination plane)."""

    matrix: np.ndarray

    def inverse(self) -> "Homography":
        inverse = np.linalg.inv(self.matrix)
        return Homography(matrix=inverse / inverse[2, 2])

    def map_points(self, points: np.ndarray) -> np.ndarray:
        """
        Apply the transform to an (N, 2) array of points.

        Returns:
            Mapped points as an (N, 2) float64 array.
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        homogeneous = np.hstack([points, np.ones((len(points), 1))])
        mapped = homogeneous @ self.matrix.T
        return mapped[:, :2] / mapped[:, 2:3]

    @property
    def determinant(self) -> float:
        return float(np.linalg.det(self.matrix))

    def to_list(self) -> list:
        return self.matrix.tolist()


@dataclass
class DetectionResult:
    """
    Output of the detection stages (preprocessing through homography).

    ``quad`` and ``homography`` are both None when nothing was found; that is
    a valid outcome, with ``failure_reason`` explaining why.
    """

    quad: Optional[OrderedQuad]
    homography: Optional[Homography]
    target_size: Optional[Tuple[int, int]] = None
    failure_reason: FailureReason = FailureReason.NONE

    @property
    def found(self) -> bool:
        return self.quad is not None and self.homography is not None


@dataclass
class CaptureMetadata:
    """Descriptive information attached to every capture."""

    timestamp: str
    width: int
    height: int
    has_document_detection: bool
    has_perspective_correction: bool
    detection_method: str = "contour"


@dataclass
class CaptureResult:
    """
    Output from the document capture pipeline.

    Attributes:
        status: FOUND, NOT_FOUND or CANCELLED.
        found: True when a document was detected and rectified.
        corrected_image: Rectified (and enhanced) document, or the enhanced
            original frame when nothing was found. None if cancelled.
        original_image: Copy of the input pixels. None if cancelled.
        bounds: Ordered document corners in frame coordinates.
        homography: Frame-to-rectified transform.
        width: Input frame width.
        height: Input frame height.
        failure_reason: Why no crop was applied, NONE otherwise.
        metadata: Timestamp and detection flags.
    """

    status: CaptureStatus
    found: bool
    corrected_image: Optional[np.ndarray]
    original_image: Optional[np.ndarray]
    bounds: Optional[OrderedQuad]
    homography: Optional[Homography]
    width: int
    height: int
    failure_reason: FailureReason
    metadata: Optional[CaptureMetadata] = None

    def is_found(self) -> bool:
        """Check if a document was detected and rectified."""
        return self.found

    def get_error_message(self) -> str:
        """Get human-readable status message."""
        if self.found:
            return "Document detected and rectified"

        reason_messages = {
            FailureReason.NO_DOCUMENT_FOUND: (
                "No document outline found, returning the full frame"
            ),
            FailureReason.DEGENERATE_QUAD: (
                "Document corners coincide, returning the full frame"
            ),
            FailureReason.SINGULAR_HOMOGRAPHY: (
                "Perspective transform is not invertible, returning the full frame"
            ),
            FailureReason.DETECTION_DISABLED: "Document detection disabled",
            FailureReason.CANCELLED: "Capture cancelled",
        }

        return reason_messages.get(
            self.failure_reason, f"Not found: {self.failure_reason.value}"
        )
