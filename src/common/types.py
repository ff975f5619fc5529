"""
Common type definitions for the document capture pipeline.

This module provides Pydantic-based type definitions for the core data
structures shared by every pipeline stage: captured frames and points.

These types provide:
- Type validation and conversion
- Consistent interfaces across stages
- Helper methods for common operations
- Integration with numpy arrays and OpenCV
"""

from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, Field, field_validator, model_validator


class ChannelLayout(Enum):
    """Channel order of a captured pixel buffer."""

    GRAY = "gray"
    RGB = "rgb"
    RGBA = "rgba"
    BGR = "bgr"
    BGRA = "bgra"

    @property
    def channels(self) -> int:
        """Number of channels this layout carries."""
        return {"gray": 1, "rgb": 3, "bgr": 3, "rgba": 4, "bgra": 4}[self.value]

    @property
    def has_alpha(self) -> bool:
        """Check if the last channel is alpha."""
        return self in (ChannelLayout.RGBA, ChannelLayout.BGRA)

    @classmethod
    def infer(cls, data: np.ndarray) -> "ChannelLayout":
        """
        Infer the layout from an array's channel count.

        Single-channel buffers are grayscale, 3 channels are RGB and
        4 channels are RGBA (the layout a capture surface hands out).
        """
        if data.ndim == 2 or (data.ndim == 3 and data.shape[2] == 1):
            return cls.GRAY
        if data.ndim == 3 and data.shape[2] == 3:
            return cls.RGB
        if data.ndim == 3 and data.shape[2] == 4:
            return cls.RGBA
        raise ValueError(f"Cannot infer channel layout from shape {data.shape}")


class Frame(BaseModel):
    """
    Type-safe wrapper for a captured pixel buffer (numpy.ndarray).

    The pipeline never writes into ``data``; every stage allocates its
    own output.

    Attributes:
        data: The underlying numpy array containing image data.
            Shape: (H, W, C) for color images, (H, W) for grayscale.
            Dtype: uint8 (0-255).
        layout: Channel order of ``data``. Inferred from the channel
            count when not given.

    Example:
        >>> frame = Frame(data=np.zeros((480, 640, 4), dtype=np.uint8))
        >>> print(frame.layout, frame.width, frame.height)
        ChannelLayout.RGBA 640 480
    """

    data: np.ndarray = Field(..., description="Pixel data as numpy array")
    layout: Optional[ChannelLayout] = Field(
        default=None, description="Channel order (inferred when omitted)"
    )

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("data")
    @classmethod
    def _validate_image(cls, v: np.ndarray) -> np.ndarray:
        """
        Validate that the numpy array is a valid frame.

        Raises:
            ValueError: If array is not a valid image format.
        """
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Expected numpy.ndarray, got {type(v)}")

        if v.size == 0:
            raise ValueError("Image array is empty")

        if len(v.shape) not in (2, 3):
            raise ValueError(
                f"Expected 2D (grayscale) or 3D (color) image, got shape {v.shape}"
            )

        if len(v.shape) == 3 and v.shape[2] not in (1, 3, 4):
            raise ValueError(
                f"Expected 1, 3, or 4 channels for color image, got {v.shape[2]}"
            )

        if v.dtype != np.uint8:
            raise ValueError(
                f"Expected uint8 dtype for image, got {v.dtype}. "
                "Images should be in range [0, 255]"
            )

        return v

    @model_validator(mode="after")
    def _resolve_layout(self) -> "Frame":
        """Infer a missing layout and reject one that disagrees with the data."""
        if self.layout is None:
            self.layout = ChannelLayout.infer(self.data)
        elif self.layout.channels != self.channels:
            raise ValueError(
                f"Layout {self.layout.name} expects {self.layout.channels} "
                f"channel(s), image has {self.channels}"
            )
        return self

    @property
    def shape(self) -> Tuple[int, ...]:
        """Get image shape (H, W) or (H, W, C)."""
        return self.data.shape

    @property
    def height(self) -> int:
        """Get image height in pixels."""
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        """Get image width in pixels."""
        return int(self.data.shape[1])

    @property
    def area(self) -> int:
        """Get frame area in pixels."""
        return self.width * self.height

    @property
    def channels(self) -> int:
        """Get number of channels (1 for grayscale, 3 for RGB/BGR, 4 with alpha)."""
        if len(self.data.shape) == 2:
            return 1
        return int(self.data.shape[2])

    @property
    def is_grayscale(self) -> bool:
        """Check if frame is single channel."""
        return self.channels == 1

    @property
    def has_alpha(self) -> bool:
        """Check if frame carries an alpha channel."""
        return self.layout.has_alpha

    def to_numpy(self) -> np.ndarray:
        """Get underlying numpy array."""
        return self.data

    def copy(self) -> "Frame":
        """Create a deep copy of the frame."""
        return Frame(data=self.data.copy(), layout=self.layout)

    def __repr__(self) -> str:
        return f"Frame(shape={self.shape}, layout={self.layout.name})"


class Point(BaseModel):
    """
    Type-safe representation of a 2D point (x, y) in pixel coordinates.

    Attributes:
        x: X-coordinate (horizontal, grows to the right).
        y: Y-coordinate (vertical, grows downwards).

    Example:
        >>> point = Point(x=100, y=200)
        >>> arr = point.to_numpy()  # array([100., 200.])
        >>> point2 = Point.from_numpy(np.array([150, 250]))
    """

    x: float = Field(..., description="X-coordinate (horizontal)")
    y: float = Field(..., description="Y-coordinate (vertical)")

    @field_validator("x", "y", mode="before")
    @classmethod
    def _convert_to_float(cls, v: Union[int, float, np.number]) -> float:
        """Convert numpy scalars and ints to a plain float."""
        if isinstance(v, (int, float, np.number)):
            return float(v)
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "Point":
        """
        Create Point from numpy array.

        Args:
            arr: Numpy array of shape (2,) with [x, y] coordinates.

        Raises:
            ValueError: If array shape is not (2,).
        """
        arr = np.asarray(arr)
        if arr.shape != (2,):
            raise ValueError(f"Expected array of shape (2,), got {arr.shape}")
        return cls(x=arr[0], y=arr[1])

    def to_numpy(self, dtype: type = np.float32) -> np.ndarray:
        """Convert Point to numpy array of shape (2,)."""
        return np.array([self.x, self.y], dtype=dtype)

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_list(self) -> list:
        return [self.x, self.y]

    def distance_to(self, other: "Point") -> float:
        """Euclidean distance to another point."""
        dx = self.x - other.x
        dy = self.y - other.y
        return float(np.sqrt(dx * dx + dy * dy))

    def __repr__(self) -> str:
        return f"Point(x={self.x:g}, y={self.y:g})"
