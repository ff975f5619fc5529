"""
Configuration loader for the Document Capture module.

Loads and validates configuration from config.yaml file or an in-memory
mapping. Omitted keys keep their dataclass defaults.
"""

import logging
import math
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from src.document_capture.types import (
    CaptureConfig,
    DetectionConfig,
    EnhancementConfig,
    PreprocessingConfig,
    ProcessingConfig,
)

logger = logging.getLogger(__name__)

# Default configuration path (relative to this file)
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

VALID_INTERPOLATIONS = ["linear", "cubic", "nearest", "area", "lanczos"]
VALID_MORPH_OPERATIONS = ["close_dilate", "dilate"]

_SECTIONS = {
    "preprocessing": PreprocessingConfig,
    "detection": DetectionConfig,
    "enhancement": EnhancementConfig,
    "processing": ProcessingConfig,
}


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> CaptureConfig:
    """
    Load document capture configuration from YAML file.

    Args:
        config_path: Path to the configuration YAML file.

    Returns:
        Validated CaptureConfig object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config is invalid or contains unknown fields.

    Example:
        >>> config = load_config()
        >>> print(config.enhancement.contrast)
        1.3
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.debug(f"Loading document capture config from {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f)

    config = config_from_dict(raw_config)
    logger.info("Successfully loaded document capture configuration")
    return config


def config_from_dict(raw: Optional[Dict[str, Any]]) -> CaptureConfig:
    """
    Build a validated configuration from a nested mapping.

    Args:
        raw: Mapping of section name to option mapping, e.g.
            ``{"enhancement": {"contrast": 1.5}}``. None means all defaults.

    Returns:
        Validated CaptureConfig object.

    Raises:
        ValueError: If a section or option is unknown or a value is invalid.
    """
    try:
        config = _parse_config(raw or {})
        _validate_config(config)
        return config
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration: {e}") from e


def _parse_config(raw: Dict[str, Any]) -> CaptureConfig:
    """Parse raw dictionary into structured config objects."""
    if not isinstance(raw, dict):
        raise TypeError(f"Configuration root must be a mapping, got {type(raw)}")

    unknown_sections = set(raw) - set(_SECTIONS)
    if unknown_sections:
        raise KeyError(f"Unknown configuration sections: {sorted(unknown_sections)}")

    sections = {
        name: _parse_section(section_cls, raw.get(name) or {})
        for name, section_cls in _SECTIONS.items()
    }
    return CaptureConfig(**sections)


def _parse_section(section_cls: type, raw: Dict[str, Any]) -> Any:
    """Coerce each provided option to the type of its default."""
    defaults = section_cls()
    known = {f.name for f in fields(section_cls)}

    unknown = set(raw) - known
    if unknown:
        raise KeyError(
            f"Unknown options for {section_cls.__name__}: {sorted(unknown)}"
        )

    values = {}
    for name, value in raw.items():
        default = getattr(defaults, name)
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise TypeError(f"{name} must be a boolean, got {value!r}")
            values[name] = value
        elif isinstance(default, int):
            # Whole-number floats from YAML (e.g. 25.0) are accepted
            if isinstance(value, bool) or (
                isinstance(value, float) and not value.is_integer()
            ):
                raise TypeError(f"{name} must be a whole number, got {value!r}")
            values[name] = int(value)
        else:
            values[name] = type(default)(value)
    return section_cls(**values)


def _validate_config(config: CaptureConfig) -> None:
    """
    Validate configuration values for logical consistency.

    Raises:
        ValueError: If any configuration value is invalid.
    """
    pre = config.preprocessing
    if pre.block_size < 3 or pre.block_size % 2 == 0:
        raise ValueError(f"block_size must be odd and >= 3, got {pre.block_size}")

    if not math.isfinite(pre.threshold_offset):
        raise ValueError("threshold_offset must be finite")

    if pre.morph_kernel_size < 1:
        raise ValueError("morph_kernel_size must be at least 1")

    if pre.morph_operation not in VALID_MORPH_OPERATIONS:
        raise ValueError(
            f"Invalid morph_operation: {pre.morph_operation}. "
            f"Must be one of {VALID_MORPH_OPERATIONS}"
        )

    if pre.dilate_iterations < 0:
        raise ValueError("dilate_iterations cannot be negative")

    if pre.blur_kernel_size < 0 or (
        pre.blur_kernel_size > 1 and pre.blur_kernel_size % 2 == 0
    ):
        raise ValueError(
            f"blur_kernel_size must be 0, 1 or an odd size, got {pre.blur_kernel_size}"
        )

    det = config.detection
    if det.min_component_pixels < 1:
        raise ValueError("min_component_pixels must be at least 1")

    if not 0 < det.inner_boundary_fraction <= 1:
        raise ValueError(
            "inner_boundary_fraction must be in (0, 1], "
            f"got {det.inner_boundary_fraction}"
        )

    if not 0.0 < det.min_area_fraction < 1.0:
        raise ValueError(
            f"min_area_fraction must be in (0, 1), got {det.min_area_fraction}"
        )

    if not det.min_area_fraction < det.max_area_fraction <= 1.0:
        raise ValueError(
            f"max_area_fraction must be in (min_area_fraction, 1], "
            f"got {det.max_area_fraction}"
        )

    if not 0.0 < det.squareness_tolerance <= 1.0:
        raise ValueError(
            f"squareness_tolerance must be in (0, 1], got {det.squareness_tolerance}"
        )

    if det.approx_epsilon_fraction <= 0:
        raise ValueError("approx_epsilon_fraction must be positive")

    if det.coincidence_tolerance < 0:
        raise ValueError("coincidence_tolerance cannot be negative")

    if det.singular_tolerance <= 0:
        raise ValueError("singular_tolerance must be positive")

    enh = config.enhancement
    if not (math.isfinite(enh.contrast) and math.isfinite(enh.brightness)):
        raise ValueError("contrast and brightness must be finite")

    if config.processing.warp_interpolation not in VALID_INTERPOLATIONS:
        raise ValueError(
            f"Invalid warp_interpolation: {config.processing.warp_interpolation}. "
            f"Must be one of {VALID_INTERPOLATIONS}"
        )

    logger.debug("Configuration validation passed")
