"""
Integration tests for the main document capture processor.
"""

import time
from concurrent.futures import ThreadPoolExecutor

import cv2
import numpy as np
import pytest

from src.common.types import ChannelLayout, Frame
from src.document_capture import processor as processor_module
from src.document_capture.config_loader import config_from_dict
from src.document_capture.enhancement import enhance_image
from src.document_capture.errors import (
    DegenerateQuadError,
    InvalidInputError,
    SingularHomographyError,
)
from src.document_capture.processor import DocumentCaptureProcessor, process_capture
from src.document_capture.types import CaptureStatus, FailureReason
from src.document_capture.warping import warp_image

# Dilation pulls the traced page boundary a couple of pixels inside the page
CORNER_TOLERANCE_PX = 6


class TestDocumentCaptureProcessor:
    """Tests for DocumentCaptureProcessor class."""

    def test_initialization_default_config(self):
        """Test processor initialization with default config."""
        processor = DocumentCaptureProcessor()

        assert processor.config is not None
        assert processor.config.enhancement.contrast == 1.3

    def test_document_found(self, document_frame):
        """A bright page on a dark desk is located and rectified."""
        frame, corners = document_frame
        result = DocumentCaptureProcessor().process(frame)

        assert result.status == CaptureStatus.FOUND
        assert result.is_found() is True
        assert result.failure_reason == FailureReason.NONE
        np.testing.assert_allclose(
            result.bounds.to_numpy(), corners, atol=CORNER_TOLERANCE_PX
        )
        assert result.homography is not None
        assert result.width == 640 and result.height == 480

    def test_bounds_lie_on_the_page(self, document_frame):
        """Detected corners sit on the page, never out on the desk."""
        frame, corners = document_frame
        result = DocumentCaptureProcessor().process(frame)
        page = corners.reshape(-1, 1, 2)

        for x, y in result.bounds.to_numpy():
            assert cv2.pointPolygonTest(page, (float(x), float(y)), False) >= 0

    def test_rotated_page_corners(self):
        """A page turned by 35 degrees is located as tightly as a square one."""
        frame = np.zeros((480, 640, 4), dtype=np.uint8)
        frame[..., :3] = 40
        frame[..., 3] = 255
        box = cv2.boxPoints(((320.0, 240.0), (260.0, 180.0), 35.0))
        cv2.fillPoly(frame, [np.round(box).astype(np.int32)], (235, 235, 235, 255))

        result = DocumentCaptureProcessor().process(frame)

        assert result.found
        distances = np.linalg.norm(
            result.bounds.to_numpy()[:, np.newaxis] - box[np.newaxis], axis=2
        ).min(axis=1)
        assert distances.max() <= CORNER_TOLERANCE_PX

    def test_corrected_image_is_the_page(self, document_frame):
        """The rectified output is page-sized, bright in the middle, opaque."""
        frame, _ = document_frame
        result = DocumentCaptureProcessor().process(frame)
        corrected = result.corrected_image
        height, width = corrected.shape[:2]

        assert corrected.shape[2] == 4
        assert 280 <= width <= 360
        assert 220 <= height <= 300
        # Blank paper below the text lines
        assert np.all(corrected[int(height * 0.8), width // 2, :3] == 255)
        assert np.median(corrected[..., :3]) == 255
        assert np.all(corrected[..., 3] == 255)

    def test_corrected_image_has_no_desk_margin(self, document_frame):
        """Border rows and columns of the rectified page are page-bright."""
        frame, _ = document_frame
        corrected = DocumentCaptureProcessor().process(frame).corrected_image
        gray = corrected[..., 0]

        for border in (gray[0], gray[-1], gray[:, 0], gray[:, -1], gray[3], gray[:, 3]):
            assert np.mean(border >= 200) >= 0.95

    def test_homography_maps_bounds_to_output_corners(self, document_frame):
        frame, _ = document_frame
        result = DocumentCaptureProcessor().process(frame)
        height, width = result.corrected_image.shape[:2]

        mapped = result.homography.map_points(result.bounds.to_numpy())
        np.testing.assert_allclose(
            mapped,
            [[0, 0], [width - 1, 0], [width - 1, height - 1], [0, height - 1]],
            atol=1e-4,
        )

    def test_original_image_is_an_unmodified_copy(self, document_frame):
        frame, _ = document_frame
        before = frame.copy()
        result = DocumentCaptureProcessor().process(frame)

        np.testing.assert_array_equal(frame, before)
        np.testing.assert_array_equal(result.original_image, before)
        assert result.original_image is not frame

    def test_blank_frame_falls_back(self, blank_frame):
        """No foreground: not found, corrected image is the enhanced original."""
        result = DocumentCaptureProcessor().process(blank_frame)

        assert result.status == CaptureStatus.NOT_FOUND
        assert result.found is False
        assert result.bounds is None
        assert result.homography is None
        assert result.failure_reason == FailureReason.NO_DOCUMENT_FOUND
        np.testing.assert_array_equal(
            result.corrected_image, enhance_image(blank_frame, 1.3, 15)
        )
        assert result.metadata.has_document_detection is False

    def test_grayscale_and_bgr_frames(self, document_frame):
        frame, corners = document_frame
        processor = DocumentCaptureProcessor()

        gray = processor.process(np.ascontiguousarray(frame[..., 0]))
        bgr = processor.process(
            np.ascontiguousarray(frame[..., 2::-1]), layout=ChannelLayout.BGR
        )

        assert gray.found and bgr.found
        assert gray.corrected_image.ndim == 2
        assert bgr.corrected_image.shape[2] == 3

    def test_accepts_frame_model(self, document_frame):
        frame, _ = document_frame
        result = DocumentCaptureProcessor().process(Frame(data=frame))
        assert result.found

    def test_metadata(self, document_frame):
        frame, _ = document_frame
        metadata = DocumentCaptureProcessor().process(frame).metadata

        assert metadata.width == 640 and metadata.height == 480
        assert metadata.has_document_detection is True
        assert metadata.has_perspective_correction is True
        assert metadata.detection_method == "contour"
        assert metadata.timestamp.endswith("+00:00")

    def test_error_message_generation(self, document_frame, blank_frame):
        processor = DocumentCaptureProcessor()

        assert processor.process(document_frame[0]).get_error_message() == (
            "Document detected and rectified"
        )
        assert "No document" in processor.process(blank_frame).get_error_message()


class TestFallbacks:
    """Detection failures degrade to the enhanced original frame."""

    def test_degenerate_quad_falls_back(self, document_frame, monkeypatch):
        frame, _ = document_frame

        def coincident(*args, **kwargs):
            raise DegenerateQuadError("corners coincide")

        monkeypatch.setattr(processor_module, "order_corners", coincident)
        result = DocumentCaptureProcessor().process(frame)

        assert result.found is False
        assert result.failure_reason == FailureReason.DEGENERATE_QUAD
        np.testing.assert_array_equal(
            result.corrected_image, enhance_image(frame, 1.3, 15)
        )

    def test_singular_homography_falls_back(self, document_frame, monkeypatch):
        frame, _ = document_frame

        def singular(*args, **kwargs):
            raise SingularHomographyError("not invertible")

        monkeypatch.setattr(processor_module, "estimate_homography", singular)
        result = DocumentCaptureProcessor().process(frame)

        assert result.status == CaptureStatus.NOT_FOUND
        assert result.failure_reason == FailureReason.SINGULAR_HOMOGRAPHY
        assert result.corrected_image.shape == frame.shape

    @pytest.mark.parametrize(
        "bad_input",
        [
            None,
            np.zeros((0, 0, 4), dtype=np.uint8),
            np.zeros((10, 10, 4), dtype=np.float32),
            np.zeros((10, 10, 2), dtype=np.uint8),
            np.zeros((10,), dtype=np.uint8),
        ],
    )
    def test_invalid_input_raises(self, bad_input):
        """Malformed frames are the only error surfaced to the caller."""
        with pytest.raises(InvalidInputError, match="Invalid input frame"):
            DocumentCaptureProcessor().process(bad_input)

    def test_layout_mismatch_raises(self):
        with pytest.raises(InvalidInputError):
            DocumentCaptureProcessor().process(
                np.zeros((10, 10, 3), dtype=np.uint8), layout=ChannelLayout.RGBA
            )

    def test_frame_layout_conflict_raises(self):
        """A Frame already carries its layout; a different one is refused."""
        frame = Frame(data=np.zeros((10, 10, 4), dtype=np.uint8))

        with pytest.raises(InvalidInputError, match="layout BGRA"):
            DocumentCaptureProcessor().process(frame, layout=ChannelLayout.BGRA)

    def test_frame_with_matching_layout_accepted(self):
        frame = Frame(data=np.zeros((10, 10, 4), dtype=np.uint8))
        result = DocumentCaptureProcessor().process(frame, layout=ChannelLayout.RGBA)

        assert result.status == CaptureStatus.NOT_FOUND


class TestConfigurationToggles:
    """Options carried over from the capture component."""

    def test_detection_disabled(self, document_frame):
        frame, _ = document_frame
        config = config_from_dict({"processing": {"enable_document_detection": False}})
        result = DocumentCaptureProcessor(config=config).process(frame)

        assert result.found is False
        assert result.failure_reason == FailureReason.DETECTION_DISABLED
        np.testing.assert_array_equal(
            result.corrected_image, enhance_image(frame, 1.3, 15)
        )

    def test_enhancement_disabled(self, document_frame):
        """Without enhancement the output is the raw warp."""
        frame, _ = document_frame
        config = config_from_dict({"processing": {"enhance_image": False}})
        result = DocumentCaptureProcessor(config=config).process(frame)
        height, width = result.corrected_image.shape[:2]

        expected = warp_image(frame, result.homography.inverse(), (width, height))
        np.testing.assert_array_equal(result.corrected_image, expected)

    def test_enhancement_disabled_fallback_is_a_copy(self, blank_frame):
        config = config_from_dict({"processing": {"enhance_image": False}})
        result = DocumentCaptureProcessor(config=config).process(blank_frame)

        np.testing.assert_array_equal(result.corrected_image, blank_frame)
        assert result.corrected_image is not blank_frame

    def test_custom_enhancement(self, blank_frame):
        config = config_from_dict({"enhancement": {"contrast": 1.0, "brightness": 40}})
        result = process_capture(blank_frame, config=config)

        assert np.all(result.corrected_image[..., :3] == 40)
        assert np.all(result.corrected_image[..., 3] == 255)


class TestCancellation:
    """Cancellation is honored at stage boundaries only."""

    def test_cancel_immediately(self, document_frame):
        frame, _ = document_frame
        result = DocumentCaptureProcessor().process(frame, should_cancel=lambda: True)

        assert result.status == CaptureStatus.CANCELLED
        assert result.failure_reason == FailureReason.CANCELLED
        assert result.corrected_image is None
        assert result.original_image is None
        assert result.bounds is None

    def test_cancel_mid_pipeline(self, document_frame):
        """A signal raised after stage 3 starts stops before stage 4."""
        frame, _ = document_frame
        polls = []

        def cancel_on_fourth_poll():
            polls.append(1)
            return len(polls) >= 4

        result = DocumentCaptureProcessor().process(
            frame, should_cancel=cancel_on_fourth_poll
        )

        assert result.status == CaptureStatus.CANCELLED
        assert len(polls) == 4
        assert result.corrected_image is None

    def test_expired_deadline(self, document_frame):
        frame, _ = document_frame
        result = DocumentCaptureProcessor().process(
            frame, deadline=time.monotonic() - 1.0
        )

        assert result.status == CaptureStatus.CANCELLED

    def test_generous_deadline(self, document_frame):
        frame, _ = document_frame
        result = DocumentCaptureProcessor().process(
            frame, deadline=time.monotonic() + 600.0
        )

        assert result.status == CaptureStatus.FOUND


class TestConcurrency:
    """Independent frames can be processed in parallel."""

    def test_parallel_invocations_agree(self, document_frame):
        frame, _ = document_frame
        processor = DocumentCaptureProcessor()
        reference = processor.process(frame)

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(processor.process, [frame.copy() for _ in range(8)]))

        for result in results:
            assert result.found
            np.testing.assert_array_equal(
                result.bounds.to_numpy(), reference.bounds.to_numpy()
            )
            np.testing.assert_array_equal(
                result.corrected_image, reference.corrected_image
            )
