"""Vision primitives consumed by the tracker and stereo matcher.

The front-end logic only talks to a `VisionBackend`. `OpenCVBackend` is the
production implementation; tests substitute deterministic fakes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import cv2
import numpy as np

from .config import MIN_TWO_VIEW_POINTS, OpticalFlowParams

logger = logging.getLogger(__name__)


@dataclass
class FlowResult:
    """Result of sparse optical flow.

    Attributes:
        points: Nx2 tracked positions in the target image
        status: (N,) bool, True where the point was found
        error: (N,) float32 tracking error per point
    """

    points: np.ndarray
    status: np.ndarray
    error: np.ndarray

    def __len__(self) -> int:
        return len(self.points)

    @classmethod
    def failed(cls, n_points: int) -> FlowResult:
        """Result where every point failed to track."""
        return cls(
            points=np.zeros((n_points, 2), dtype=np.float32),
            status=np.zeros(n_points, dtype=bool),
            error=np.full(n_points, np.inf, dtype=np.float32),
        )


@dataclass
class TwoViewEstimate:
    """Result of robust two-view estimation.

    Either a model was found (`matrix` is a 3x3 array) or not (`matrix` is
    None). The inlier mask is all False when no model was found.

    Attributes:
        matrix: 3x3 fundamental matrix, or None
        inliers: (N,) bool inlier mask over the input correspondences
    """

    matrix: np.ndarray | None
    inliers: np.ndarray

    @property
    def has_model(self) -> bool:
        return self.matrix is not None

    @property
    def num_inliers(self) -> int:
        return int(np.count_nonzero(self.inliers))

    @classmethod
    def no_model(cls, n_points: int) -> TwoViewEstimate:
        return cls(matrix=None, inliers=np.zeros(n_points, dtype=bool))


class VisionBackend(Protocol):
    """Image primitives used by the front-end."""

    def detect_corners(
        self,
        image: np.ndarray,
        max_count: int,
        quality_level: float,
        min_distance: float,
        mask: np.ndarray | None = None,
    ) -> np.ndarray:
        """Return Nx2 float32 corner positions."""
        ...

    def track_points(
        self,
        prev_image: np.ndarray,
        cur_image: np.ndarray,
        prev_points: np.ndarray,
        params: OpticalFlowParams,
    ) -> FlowResult:
        """Track points from prev_image into cur_image."""
        ...

    def estimate_fundamental(
        self,
        points_a: np.ndarray,
        points_b: np.ndarray,
        ransac_threshold: float,
        confidence: float,
    ) -> TwoViewEstimate:
        """Robustly estimate F such that x_b^T F x_a = 0."""
        ...

    def dense_stereo_match(
        self,
        left_image: np.ndarray,
        right_image: np.ndarray,
        block_size: int,
        num_disparities: int,
    ) -> np.ndarray:
        """Return an HxW float32 disparity map in pixels."""
        ...


def _to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    return image


class OpenCVBackend:
    """`VisionBackend` implemented with OpenCV.

    - Shi-Tomasi corners (cv2.goodFeaturesToTrack)
    - Pyramidal Lucas-Kanade (cv2.calcOpticalFlowPyrLK)
    - 8-point RANSAC fundamental matrix (cv2.findFundamentalMat)
    - Block matching stereo (cv2.StereoBM)

    OpenCV failures are logged and reported as empty results.
    """

    def detect_corners(
        self,
        image: np.ndarray,
        max_count: int,
        quality_level: float,
        min_distance: float,
        mask: np.ndarray | None = None,
    ) -> np.ndarray:
        if max_count <= 0:
            return np.empty((0, 2), dtype=np.float32)

        try:
            corners = cv2.goodFeaturesToTrack(
                _to_gray(image),
                maxCorners=max_count,
                qualityLevel=quality_level,
                minDistance=min_distance,
                mask=mask,
            )
        except cv2.error as e:
            logger.warning("Corner detection failed: %s", e)
            return np.empty((0, 2), dtype=np.float32)

        # goodFeaturesToTrack returns None when nothing is found
        if corners is None:
            return np.empty((0, 2), dtype=np.float32)
        return corners.reshape(-1, 2).astype(np.float32)

    def track_points(
        self,
        prev_image: np.ndarray,
        cur_image: np.ndarray,
        prev_points: np.ndarray,
        params: OpticalFlowParams,
    ) -> FlowResult:
        n_points = len(prev_points)
        if n_points == 0:
            return FlowResult.failed(0)

        criteria = (
            cv2.TERM_CRITERIA_COUNT | cv2.TERM_CRITERIA_EPS,
            params.max_iterations,
            params.epsilon,
        )
        prev_pts = np.asarray(prev_points, dtype=np.float32).reshape(-1, 1, 2)

        try:
            cur_pts, status, error = cv2.calcOpticalFlowPyrLK(
                _to_gray(prev_image),
                _to_gray(cur_image),
                prev_pts,
                None,
                winSize=params.window_size,
                maxLevel=params.pyramid_levels,
                criteria=criteria,
                flags=0,
                minEigThreshold=params.min_eig_threshold,
            )
        except cv2.error as e:
            logger.warning("Optical flow failed: %s", e)
            return FlowResult.failed(n_points)

        if cur_pts is None or status is None:
            return FlowResult.failed(n_points)

        return FlowResult(
            points=cur_pts.reshape(-1, 2).astype(np.float32),
            status=status.reshape(-1).astype(bool),
            error=error.reshape(-1).astype(np.float32),
        )

    def estimate_fundamental(
        self,
        points_a: np.ndarray,
        points_b: np.ndarray,
        ransac_threshold: float,
        confidence: float,
    ) -> TwoViewEstimate:
        n_points = len(points_a)
        if n_points < MIN_TWO_VIEW_POINTS:
            return TwoViewEstimate.no_model(n_points)

        try:
            matrix, mask = cv2.findFundamentalMat(
                np.asarray(points_a, dtype=np.float32).reshape(-1, 2),
                np.asarray(points_b, dtype=np.float32).reshape(-1, 2),
                method=cv2.FM_RANSAC,
                ransacReprojThreshold=ransac_threshold,
                confidence=confidence,
            )
        except cv2.error as e:
            logger.warning("Fundamental matrix estimation failed: %s", e)
            return TwoViewEstimate.no_model(n_points)

        # Degenerate configurations yield None or a stacked set of solutions
        if matrix is None or matrix.shape != (3, 3) or mask is None:
            return TwoViewEstimate.no_model(n_points)

        return TwoViewEstimate(
            matrix=matrix.astype(np.float64),
            inliers=mask.reshape(-1).astype(bool),
        )

    def dense_stereo_match(
        self,
        left_image: np.ndarray,
        right_image: np.ndarray,
        block_size: int,
        num_disparities: int,
    ) -> np.ndarray:
        stereo = cv2.StereoBM_create(numDisparities=num_disparities, blockSize=block_size)
        disparity = stereo.compute(_to_gray(left_image), _to_gray(right_image))
        # StereoBM returns fixed-point disparities with 4 fractional bits
        return disparity.astype(np.float32) / 16.0
