"""
Common types shared across the document capture pipeline.

This module provides standardized data types for captured frames and
points, so every stage agrees on shapes, dtypes and channel layouts.
"""

from src.common.types import ChannelLayout, Frame, Point

__all__ = ["ChannelLayout", "Frame", "Point"]
