"""Shared fixtures: a deterministic stand-in for the OpenCV backend."""

from __future__ import annotations

from typing import Callable

import numpy as np
import pytest

from vio_frontend.camera import CameraIntrinsics, PinholeCamera, StereoRig
from vio_frontend.config import OpticalFlowParams
from vio_frontend.feature import Feature, FeatureIdCounter
from vio_frontend.frame import Frame
from vio_frontend.vision import FlowResult, TwoViewEstimate


def shifted_flow(dx: float = 0.0, dy: float = 0.0) -> Callable[[np.ndarray], FlowResult]:
    """Flow that moves every point by (dx, dy) and always succeeds."""

    def flow(points: np.ndarray) -> FlowResult:
        points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
        return FlowResult(
            points=points + np.array([dx, dy], dtype=np.float32),
            status=np.ones(len(points), dtype=bool),
            error=np.zeros(len(points), dtype=np.float32),
        )

    return flow


def fixed_flow(points, status=None, error=None) -> Callable[[np.ndarray], FlowResult]:
    """Flow that returns the given result regardless of input."""
    points = np.asarray(points, dtype=np.float32).reshape(-1, 2)
    status = np.ones(len(points), dtype=bool) if status is None else np.asarray(status, bool)
    error = np.zeros(len(points), np.float32) if error is None else np.asarray(error, np.float32)

    def flow(_: np.ndarray) -> FlowResult:
        return FlowResult(points=points.copy(), status=status.copy(), error=error.copy())

    return flow


def all_inliers(points_a: np.ndarray, points_b: np.ndarray) -> TwoViewEstimate:
    """Estimator returning a zero matrix (zero residual) with all inliers."""
    return TwoViewEstimate(
        matrix=np.zeros((3, 3), dtype=np.float64),
        inliers=np.ones(len(points_a), dtype=bool),
    )


class FakeBackend:
    """Deterministic `VisionBackend` recording every call."""

    def __init__(
        self,
        corners=None,
        flow: Callable[[np.ndarray], FlowResult] | None = None,
        fundamental: Callable[[np.ndarray, np.ndarray], TwoViewEstimate] | None = None,
    ) -> None:
        self.corners = [] if corners is None else corners
        self.flow = flow or shifted_flow()
        self.fundamental = fundamental or all_inliers

        self.detect_calls: list[dict] = []
        self.track_calls: list[dict] = []
        self.fundamental_calls: list[dict] = []
        self.dense_calls: list[dict] = []

    def detect_corners(self, image, max_count, quality_level, min_distance, mask=None):
        self.detect_calls.append(
            {
                "max_count": max_count,
                "quality_level": quality_level,
                "min_distance": min_distance,
                "mask": None if mask is None else mask.copy(),
            }
        )
        corners = self.corners(image, mask) if callable(self.corners) else self.corners
        return np.asarray(corners, dtype=np.float32).reshape(-1, 2)

    def track_points(self, prev_image, cur_image, prev_points, params: OpticalFlowParams):
        self.track_calls.append({"prev_points": np.array(prev_points), "params": params})
        return self.flow(prev_points)

    def estimate_fundamental(self, points_a, points_b, ransac_threshold, confidence):
        self.fundamental_calls.append(
            {
                "points_a": np.array(points_a),
                "points_b": np.array(points_b),
                "threshold": ransac_threshold,
                "confidence": confidence,
            }
        )
        return self.fundamental(points_a, points_b)

    def dense_stereo_match(self, left_image, right_image, block_size, num_disparities):
        self.dense_calls.append({"block_size": block_size, "num_disparities": num_disparities})
        return np.zeros(left_image.shape[:2], dtype=np.float32)


def make_frame(
    frame_id: int = 0,
    size: tuple[int, int] = (640, 480),
    stereo: bool = False,
    features: list[tuple[int, tuple[float, float]]] | None = None,
) -> Frame:
    """Create a frame with blank images and optional (id, (u, v)) features."""
    width, height = size
    image = np.zeros((height, width), dtype=np.uint8)
    frame = Frame(
        timestamp_ns=1_000_000 * frame_id,
        frame_id=frame_id,
        left_image=image,
        right_image=image if stereo else None,
    )
    for feature_id, coord in features or []:
        frame.add_feature(Feature(id=feature_id, pixel_coord=coord))
    return frame


def grid_points(n: int, start: float = 50.0, step: float = 40.0) -> list[tuple[float, float]]:
    """Return n distinct points on a grid inside a 640x480 image."""
    cols = 10
    return [(start + step * (i % cols), start + step * (i // cols)) for i in range(n)]


@pytest.fixture
def id_counter() -> FeatureIdCounter:
    """Fresh id counter so tests don't depend on the process-wide one."""
    return FeatureIdCounter()


@pytest.fixture
def simple_camera() -> PinholeCamera:
    """Undistorted camera with fx = fy = 300 and principal point (320, 240)."""
    return PinholeCamera(intrinsics=CameraIntrinsics(fx=300.0, fy=300.0, cx=320.0, cy=240.0))


@pytest.fixture
def simple_rig(simple_camera: PinholeCamera) -> StereoRig:
    """Stereo rig with a 0.1 m baseline along x."""
    T_BS_right = np.eye(4)
    T_BS_right[0, 3] = 0.1
    right = PinholeCamera(intrinsics=simple_camera.intrinsics, T_BS=T_BS_right)
    return StereoRig(simple_camera, right)
