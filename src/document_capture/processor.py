"""
Main processor for the Document Capture module.

Orchestrates the complete pipeline:
1. Preprocessing (grayscale, adaptive threshold, closing + dilation)
2. Contour extraction
3. Quadrilateral selection
4. Corner ordering
5. Homography estimation
6. Warping
7. Enhancement

Detection failures (stages 3-5) are recovered by falling back to the
enhanced original frame; only malformed input is raised to the caller.
The processor keeps no per-frame state, so one instance can serve
concurrent calls on independent frames.
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

import numpy as np
from pydantic import ValidationError

from src.common.types import ChannelLayout, Frame
from src.document_capture.config_loader import load_config
from src.document_capture.contour_extraction import extract_contours
from src.document_capture.corner_ordering import order_corners
from src.document_capture.enhancement import enhance
from src.document_capture.errors import (
    CaptureCancelled,
    DetectionError,
    InvalidInputError,
    NoDocumentFound,
)
from src.document_capture.homography import estimate_homography
from src.document_capture.preprocessing import preprocess
from src.document_capture.quad_selection import select_quadrilateral
from src.document_capture.types import (
    CaptureConfig,
    CaptureMetadata,
    CaptureResult,
    CaptureStatus,
    DetectionResult,
    FailureReason,
)
from src.document_capture.warping import warp_image

logger = logging.getLogger(__name__)

DETECTION_METHOD = "contour"
TOTAL_STAGES = 7


def validate_frame(
    image: Union[np.ndarray, Frame], layout: Optional[ChannelLayout] = None
) -> Frame:
    """
    Wrap raw pixels in a validated Frame.

    Raises:
        InvalidInputError: If the image is None, empty, not uint8, has an
            unsupported shape or disagrees with ``layout``.
    """
    if isinstance(image, Frame):
        if layout is not None and layout != image.layout:
            raise InvalidInputError(
                f"Invalid input frame: layout {layout.name} given for a "
                f"{image.layout.name} frame"
            )
        return image
    try:
        return Frame(data=image, layout=layout)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid input frame: {e}") from e


class _Checkpoint:
    """Cancellation check evaluated at stage boundaries only."""

    def __init__(
        self,
        should_cancel: Optional[Callable[[], bool]],
        deadline: Optional[float],
    ):
        self.should_cancel = should_cancel
        self.deadline = deadline

    def __call__(self, stage: int, name: str) -> None:
        if self.should_cancel is not None and self.should_cancel():
            raise CaptureCancelled(f"Cancelled before stage {stage} ({name})")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise CaptureCancelled(f"Deadline passed before stage {stage} ({name})")
        logger.info(f"[Stage {stage}/{TOTAL_STAGES}] {name}")


class DocumentCaptureProcessor:
    """
    Main processor for document detection and rectification.

    Example:
        >>> processor = DocumentCaptureProcessor()
        >>> frame = cv2.cvtColor(cv2.imread("page.jpg"), cv2.COLOR_BGR2RGBA)
        >>> result = processor.process(frame)
        >>> if result.is_found():
        ...     print(result.bounds.to_list())
    """

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the document capture processor.

        Args:
            config: Pre-loaded configuration object. If None, will load from file.
            config_path: Path to config file. If None, uses default location.
        """
        if config is not None:
            self.config = config
            logger.info("Using provided configuration")
        else:
            self.config = load_config(config_path) if config_path else load_config()
            logger.info("Loaded configuration from file")

    def detect(
        self,
        frame: Frame,
        checkpoint: Optional[Callable[[int, str], None]] = None,
    ) -> DetectionResult:
        """
        Run stages 1-5 and locate the document.

        Args:
            frame: Validated input frame.
            checkpoint: Called with (stage, name) before each stage; may
                raise CaptureCancelled.

        Returns:
            DetectionResult. When nothing usable is found ``quad`` and
            ``homography`` are None and ``failure_reason`` says why.
        """
        checkpoint = checkpoint or (lambda stage, name: None)
        detection = self.config.detection

        checkpoint(1, "Preprocessing")
        mask = preprocess(frame.data, self.config.preprocessing, frame.layout)

        checkpoint(2, "Contour Extraction")
        contours = list(
            extract_contours(
                mask, detection.min_component_pixels, detection.inner_boundary_fraction
            )
        )
        logger.info(f"Extracted {len(contours)} contours")

        try:
            checkpoint(3, "Quadrilateral Selection")
            quad = select_quadrilateral(
                contours, (frame.width, frame.height), detection
            )
            if quad is None:
                raise NoDocumentFound("No contour passed the document filters")

            checkpoint(4, "Corner Ordering")
            ordered = order_corners(quad.points, detection.coincidence_tolerance)

            checkpoint(5, "Homography Estimation")
            homography, target_size = estimate_homography(
                ordered, singular_tolerance=detection.singular_tolerance
            )
        except DetectionError as e:
            logger.warning(f"Detection failed ({e.reason.value}): {e}")
            return DetectionResult(
                quad=None, homography=None, failure_reason=e.reason
            )

        logger.info(
            f"Document found: corners={ordered.to_list()}, "
            f"target={target_size[0]}x{target_size[1]}"
        )
        return DetectionResult(
            quad=ordered,
            homography=homography,
            target_size=target_size,
            failure_reason=FailureReason.NONE,
        )

    def process(
        self,
        image: Union[np.ndarray, Frame],
        layout: Optional[ChannelLayout] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
        deadline: Optional[float] = None,
    ) -> CaptureResult:
        """
        Execute the complete capture pipeline on one frame.

        Args:
            image: Captured pixels (uint8, grayscale or 3/4 channels) or a Frame.
            layout: Channel order of ``image``; inferred when None.
            should_cancel: Polled between stages; returning True cancels.
            deadline: ``time.monotonic()`` value after which the capture is
                cancelled at the next stage boundary.

        Returns:
            CaptureResult. The corrected image is always usable unless the
            status is CANCELLED, in which case no images are returned.

        Raises:
            InvalidInputError: If the frame is empty or malformed.
        """
        frame = validate_frame(image, layout)
        checkpoint = _Checkpoint(should_cancel, deadline)

        logger.info("=" * 60)
        logger.info(
            f"Starting Document Capture ({frame.width}x{frame.height}, "
            f"{frame.layout.name})"
        )
        logger.info("=" * 60)

        try:
            return self._run(frame, checkpoint)
        except CaptureCancelled as e:
            logger.warning(f"Capture CANCELLED: {e}")
            return CaptureResult(
                status=CaptureStatus.CANCELLED,
                found=False,
                corrected_image=None,
                original_image=None,
                bounds=None,
                homography=None,
                width=frame.width,
                height=frame.height,
                failure_reason=FailureReason.CANCELLED,
                metadata=self._metadata(frame, None),
            )

    def _run(self, frame: Frame, checkpoint: _Checkpoint) -> CaptureResult:
        processing = self.config.processing

        if processing.enable_document_detection:
            detection = self.detect(frame, checkpoint)
        else:
            logger.info("Document detection disabled, skipping stages 1-6")
            detection = DetectionResult(
                quad=None,
                homography=None,
                failure_reason=FailureReason.DETECTION_DISABLED,
            )

        if detection.found:
            checkpoint(6, "Warping")
            corrected = warp_image(
                frame.data,
                detection.homography.inverse(),
                detection.target_size,
                processing.warp_interpolation,
            )
        else:
            corrected = frame.data

        checkpoint(7, "Enhancement")
        if processing.enhance_image:
            corrected = enhance(corrected, self.config.enhancement, frame.layout)
        elif corrected is frame.data:
            corrected = frame.data.copy()

        if detection.found:
            logger.info("=" * 60)
            logger.info("Capture FOUND - document rectified")
            logger.info("=" * 60)
        else:
            logger.info(
                f"Capture NOT FOUND ({detection.failure_reason.value}), "
                "returning full frame"
            )

        return CaptureResult(
            status=CaptureStatus.FOUND if detection.found else CaptureStatus.NOT_FOUND,
            found=detection.found,
            corrected_image=corrected,
            original_image=frame.data.copy(),
            bounds=detection.quad,
            homography=detection.homography,
            width=frame.width,
            height=frame.height,
            failure_reason=detection.failure_reason,
            metadata=self._metadata(frame, detection),
        )

    def _metadata(
        self, frame: Frame, detection: Optional[DetectionResult]
    ) -> CaptureMetadata:
        return CaptureMetadata(
            timestamp=datetime.now(timezone.utc).isoformat(),
            width=frame.width,
            height=frame.height,
            has_document_detection=detection is not None and detection.quad is not None,
            has_perspective_correction=(
                detection is not None and detection.homography is not None
            ),
            detection_method=DETECTION_METHOD,
        )


def process_capture(
    image: Union[np.ndarray, Frame],
    config: Optional[CaptureConfig] = None,
    layout: Optional[ChannelLayout] = None,
) -> CaptureResult:
    """
    Convenience function for one-shot document capture.

    Args:
        image: Captured frame pixels.
        config: Optional custom configuration. Uses default if None.
        layout: Channel order; inferred when None.

    Returns:
        CaptureResult object.

    Example:
        >>> result = process_capture(frame)
        >>> if not result.found:
        ...     print(result.get_error_message())
    """
    processor = DocumentCaptureProcessor(config=config)
    return processor.process(image, layout=layout)
