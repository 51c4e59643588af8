"""Configuration for the tracking and stereo front-end.

Every parameter has a default. A YAML file can override any subset:

    tracker:
      max_features: 200
      flow:
        window_size: [21, 21]
    stereo:
      max_vertical_offset: 15.0
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

# Minimum correspondences for the 8-point fundamental matrix estimation
MIN_TWO_VIEW_POINTS = 8


@dataclass
class OpticalFlowParams:
    """Pyramidal Lucas-Kanade parameters."""

    window_size: tuple[int, int] = (21, 21)  # Search window (width, height)
    pyramid_levels: int = 3  # Max pyramid level (0 = no pyramid)
    max_iterations: int = 30  # Termination: iteration count
    epsilon: float = 0.01  # Termination: search window movement
    min_eig_threshold: float = 1e-4  # Reject points with weak gradients

    def __post_init__(self) -> None:
        self.window_size = tuple(int(v) for v in self.window_size)
        if len(self.window_size) != 2 or min(self.window_size) < 3:
            raise ValueError(f"Invalid optical flow window size: {self.window_size}")
        if self.pyramid_levels < 0:
            raise ValueError(f"pyramid_levels must be >= 0, got {self.pyramid_levels}")
        if self.max_iterations <= 0 or self.epsilon <= 0:
            raise ValueError("Optical flow termination criteria must be positive")


@dataclass
class TrackerConfig:
    """Temporal tracking configuration."""

    max_features: int = 150  # Target number of features per frame
    quality_level: float = 0.01  # Corner quality relative to the best corner
    min_distance: float = 30.0  # Min spacing between corners (pixels)
    border_margin: int = 1  # Tracked points closer to the border are dropped
    fundamental_threshold: float = 1.0  # RANSAC inlier threshold (pixels)
    ransac_confidence: float = 0.99
    flow: OpticalFlowParams = field(default_factory=OpticalFlowParams)

    def __post_init__(self) -> None:
        if self.max_features <= 0:
            raise ValueError(f"max_features must be positive, got {self.max_features}")
        if not 0.0 < self.quality_level < 1.0:
            raise ValueError(f"quality_level must be in (0, 1), got {self.quality_level}")
        if self.min_distance < 0:
            raise ValueError(f"min_distance must be >= 0, got {self.min_distance}")
        if self.border_margin < 0:
            raise ValueError(f"border_margin must be >= 0, got {self.border_margin}")
        _check_ransac(self.fundamental_threshold, self.ransac_confidence)


@dataclass
class StereoConfig:
    """Stereo correspondence and depth configuration.

    Thresholds are tuned for unrectified stereo pairs, where matches are
    only approximately on the same image row.
    """

    flow: OpticalFlowParams = field(default_factory=OpticalFlowParams)
    max_flow_error: float = 50.0  # Loose LK error cut for candidate matches
    ransac_threshold: float = 3.0  # Fundamental matrix inlier threshold (pixels)
    ransac_confidence: float = 0.99
    max_epipolar_error: float = 5.0  # Max |x_r^T F x_l|
    min_disparity: float = 0.1  # Exclusive bound
    max_disparity: float = 300.0  # Exclusive bound
    max_vertical_offset: float = 20.0  # Max |v_left - v_right| (pixels)
    min_depth_disparity: float = 0.5  # No depth below this disparity
    min_depth: float = 0.1  # Exclusive bound (meters)
    max_depth: float = 100.0  # Exclusive bound (meters)
    block_size: int = 9  # StereoBM block size (visualization only)
    num_disparities: int = 16  # StereoBM disparity range (visualization only)

    def __post_init__(self) -> None:
        _check_ransac(self.ransac_threshold, self.ransac_confidence)
        if self.min_disparity >= self.max_disparity:
            raise ValueError(
                f"min_disparity ({self.min_disparity}) must be below "
                f"max_disparity ({self.max_disparity})"
            )
        if self.min_depth >= self.max_depth:
            raise ValueError(
                f"min_depth ({self.min_depth}) must be below max_depth ({self.max_depth})"
            )
        if self.block_size < 5 or self.block_size % 2 == 0:
            raise ValueError(f"block_size must be odd and >= 5, got {self.block_size}")
        if self.num_disparities <= 0 or self.num_disparities % 16 != 0:
            raise ValueError(
                f"num_disparities must be a positive multiple of 16, "
                f"got {self.num_disparities}"
            )


@dataclass
class FrontendConfig:
    """Complete front-end configuration."""

    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    stereo: StereoConfig = field(default_factory=StereoConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> FrontendConfig:
        """Build a configuration from nested dictionaries.

        Args:
            data: Mapping with optional "tracker" and "stereo" sections

        Returns:
            FrontendConfig with defaults for all missing keys

        Raises:
            ValueError: On unknown keys or invalid values
        """
        data = dict(data or {})
        unknown = set(data) - {"tracker", "stereo"}
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

        return cls(
            tracker=_build(TrackerConfig, data.get("tracker"), "tracker"),
            stereo=_build(StereoConfig, data.get("stereo"), "stereo"),
        )

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> FrontendConfig:
        """Load configuration from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the file content is invalid
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f)

        if data is not None and not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping in {yaml_path}")

        return cls.from_dict(data)


def _check_ransac(threshold: float, confidence: float) -> None:
    if threshold <= 0:
        raise ValueError(f"RANSAC threshold must be positive, got {threshold}")
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"RANSAC confidence must be in (0, 1), got {confidence}")


def _build(config_cls: type, section: dict[str, Any] | None, name: str):
    section = dict(section or {})
    known = {f.name for f in fields(config_cls)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown keys in '{name}' section: {sorted(unknown)}")

    if "flow" in section:
        flow = section["flow"] or {}
        flow_known = {f.name for f in fields(OpticalFlowParams)}
        flow_unknown = set(flow) - flow_known
        if flow_unknown:
            raise ValueError(
                f"Unknown keys in '{name}.flow' section: {sorted(flow_unknown)}"
            )
        section["flow"] = OpticalFlowParams(**flow)

    return config_cls(**section)
