"""
Error taxonomy for the document capture pipeline.

Detection failures (``DetectionError`` subclasses) are recovered by the
processor, which falls back to the enhanced original frame. Only
``InvalidInputError`` is surfaced to the caller.
"""

from src.document_capture.types import FailureReason


class DocumentCaptureError(Exception):
    """Root of all document capture errors."""


class InvalidInputError(DocumentCaptureError, ValueError):
    """The input frame is empty or malformed. Fatal, no output is produced."""


class DetectionError(DocumentCaptureError):
    """A detection stage failed; the pipeline degrades to "no crop applied"."""

    reason = FailureReason.NO_DOCUMENT_FOUND


class NoDocumentFound(DetectionError):
    """No contour survived quadrilateral selection."""

    reason = FailureReason.NO_DOCUMENT_FOUND


class DegenerateQuadError(DetectionError, ValueError):
    """Two or more corners coincide, so the corner labeling is ambiguous."""

    reason = FailureReason.DEGENERATE_QUAD


class SingularHomographyError(DetectionError, ValueError):
    """The estimated projective transform is not invertible."""

    reason = FailureReason.SINGULAR_HOMOGRAPHY


class CaptureCancelled(DocumentCaptureError):
    """The caller's cancellation signal fired at a stage boundary."""
