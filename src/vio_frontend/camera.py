"""Pinhole camera models and stereo rig calibration.

Calibration is read from EuRoC-style `sensor.yaml` files. The stereo pair is
not rectified: the rig only provides the baseline and focal length used for
depth, and each camera undistorts its own points to normalized coordinates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import cv2
import numpy as np
import yaml


@dataclass
class CameraIntrinsics:
    """Camera intrinsic parameters (pinhole model)."""

    fx: float  # Focal length x (pixels)
    fy: float  # Focal length y (pixels)
    cx: float  # Principal point x (pixels)
    cy: float  # Principal point y (pixels)

    def to_matrix(self) -> np.ndarray:
        """Return 3x3 camera intrinsic matrix K."""
        return np.array(
            [[self.fx, 0.0, self.cx], [0.0, self.fy, self.cy], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )


@dataclass
class DistortionCoeffs:
    """Radial-tangential distortion coefficients."""

    k1: float = 0.0
    k2: float = 0.0
    p1: float = 0.0
    p2: float = 0.0

    def to_array(self) -> np.ndarray:
        """Return distortion coefficients as (4,) array for OpenCV."""
        return np.array([self.k1, self.k2, self.p1, self.p2], dtype=np.float64)


@dataclass
class PinholeCamera:
    """A single calibrated camera.

    Attributes:
        intrinsics: Pinhole intrinsics
        distortion: Radial-tangential distortion
        resolution: Image size as (width, height)
        T_BS: 4x4 camera-to-body transform
    """

    intrinsics: CameraIntrinsics
    distortion: DistortionCoeffs = field(default_factory=DistortionCoeffs)
    resolution: tuple[int, int] | None = None
    T_BS: np.ndarray = field(default_factory=lambda: np.eye(4, dtype=np.float64))

    @classmethod
    def from_euroc_yaml(cls, yaml_path: str | Path) -> PinholeCamera:
        """Parse a EuRoC sensor.yaml calibration file.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is invalid
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Calibration file not found: {yaml_path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError(f"Invalid calibration file: {yaml_path}")

        # [fu, fv, cu, cv]
        intrinsics_list = data.get("intrinsics")
        if intrinsics_list is None or len(intrinsics_list) != 4:
            raise ValueError(f"Invalid intrinsics in {yaml_path}")
        fx, fy, cx, cy = (float(v) for v in intrinsics_list)

        # [k1, k2, p1, p2]
        distortion_list = data.get("distortion_coefficients", [0.0] * 4)
        if len(distortion_list) != 4:
            raise ValueError(f"Invalid distortion coefficients in {yaml_path}")

        T_BS_data = (data.get("T_BS") or {}).get("data")
        if T_BS_data is None or len(T_BS_data) != 16:
            raise ValueError(f"Invalid T_BS transform in {yaml_path}")

        resolution = data.get("resolution")
        if resolution is not None:
            if len(resolution) != 2:
                raise ValueError(f"Invalid resolution in {yaml_path}")
            resolution = (int(resolution[0]), int(resolution[1]))

        return cls(
            intrinsics=CameraIntrinsics(fx=fx, fy=fy, cx=cx, cy=cy),
            distortion=DistortionCoeffs(*(float(v) for v in distortion_list)),
            resolution=resolution,
            T_BS=np.array(T_BS_data, dtype=np.float64).reshape(4, 4),
        )

    @property
    def camera_matrix(self) -> np.ndarray:
        return self.intrinsics.to_matrix()

    def normalize(self, points: np.ndarray) -> np.ndarray:
        """Map pixel coordinates to undistorted normalized coordinates.

        Args:
            points: Nx2 pixel coordinates

        Returns:
            Nx2 float32 normalized coordinates (x/z, y/z)
        """
        points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        if len(points) == 0:
            return np.empty((0, 2), dtype=np.float32)

        undistorted = cv2.undistortPoints(
            points.reshape(-1, 1, 2),
            self.camera_matrix,
            self.distortion.to_array(),
        )
        return undistorted.reshape(-1, 2).astype(np.float32)


class StereoRig:
    """Two calibrated cameras with a fixed relative pose."""

    def __init__(self, left: PinholeCamera, right: PinholeCamera) -> None:
        self._left = left
        self._right = right

        # T_right_left = inv(T_BS_right) @ T_BS_left maps left-camera points
        # into the right camera frame
        T_right_left = np.linalg.inv(right.T_BS) @ left.T_BS
        self._R = T_right_left[:3, :3]
        self._T = T_right_left[:3, 3]
        self._baseline = float(np.linalg.norm(self._T))

    @classmethod
    def from_euroc(cls, cam0_yaml: str | Path, cam1_yaml: str | Path) -> StereoRig:
        """Load a rig from the two EuRoC sensor.yaml files."""
        return cls(
            PinholeCamera.from_euroc_yaml(cam0_yaml),
            PinholeCamera.from_euroc_yaml(cam1_yaml),
        )

    @classmethod
    def from_dataset_path(cls, dataset_path: str | Path) -> StereoRig:
        """Load a rig from a EuRoC mav0 directory."""
        path = Path(dataset_path)
        return cls.from_euroc(path / "cam0" / "sensor.yaml", path / "cam1" / "sensor.yaml")

    @property
    def left(self) -> PinholeCamera:
        return self._left

    @property
    def right(self) -> PinholeCamera:
        return self._right

    @property
    def rotation(self) -> np.ndarray:
        """Return 3x3 rotation from left to right camera frame."""
        return self._R

    @property
    def translation(self) -> np.ndarray:
        """Return (3,) translation from left to right camera frame."""
        return self._T

    @property
    def baseline(self) -> float:
        """Return baseline distance between cameras in meters."""
        return self._baseline

    @property
    def focal_length(self) -> float:
        """Return focal length (fx) of the left camera in pixels."""
        return float(self._left.intrinsics.fx)
