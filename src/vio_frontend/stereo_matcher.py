"""Sparse left-right correspondence for unrectified stereo pairs.

Left features are tracked into the right image with optical flow. Because
the pair is not rectified, matches are not constrained to the same row;
instead they are gated by a fundamental matrix estimated from the candidate
matches themselves, plus loose disparity and row-offset bounds.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import numpy as np

from .config import MIN_TWO_VIEW_POINTS, StereoConfig
from .frame import Frame
from .vision import OpenCVBackend, VisionBackend

logger = logging.getLogger(__name__)


@dataclass
class StereoMatchStats:
    """Bookkeeping for one call to `StereoMatcher.match`."""

    num_candidates: int = 0  # Valid left features submitted
    num_loose: int = 0  # Flow succeeded with error below the loose cut
    fundamental_estimated: bool = False
    num_ransac_inliers: int = 0  # Informational only, not used for gating
    num_matched: int = 0
    total_ms: float = 0.0


def epipolar_residual(
    fundamental: np.ndarray, left_point: np.ndarray, right_point: np.ndarray
) -> float:
    """Return the algebraic epipolar residual x_r^T F x_l."""
    x_l = np.array([left_point[0], left_point[1], 1.0], dtype=np.float64)
    x_r = np.array([right_point[0], right_point[1], 1.0], dtype=np.float64)
    return float(x_r @ np.asarray(fundamental, dtype=np.float64) @ x_l)


def passes_stereo_gates(
    left_point: np.ndarray,
    right_point: np.ndarray,
    fundamental: np.ndarray | None,
    config: StereoConfig,
) -> bool:
    """Decide whether a left-right candidate is an acceptable stereo match.

    Gates (all must hold):
    1. Epipolar: |x_r^T F x_l| <= max_epipolar_error, only when F is known
    2. Disparity: min_disparity < u_left - u_right < max_disparity
    3. Row offset: |v_left - v_right| <= max_vertical_offset

    Args:
        left_point: (2,) pixel coordinates in the left image
        right_point: (2,) pixel coordinates in the right image
        fundamental: 3x3 fundamental matrix, or None to skip the epipolar gate
        config: Gate thresholds
    """
    if fundamental is not None:
        residual = epipolar_residual(fundamental, left_point, right_point)
        if abs(residual) > config.max_epipolar_error:
            return False

    disparity = float(left_point[0]) - float(right_point[0])
    if disparity <= config.min_disparity or disparity >= config.max_disparity:
        return False

    y_diff = abs(float(left_point[1]) - float(right_point[1]))
    return y_diff <= config.max_vertical_offset


def depth_from_disparity(
    disparity: float,
    baseline: float,
    focal_length: float,
    min_disparity: float = 0.5,
    min_depth: float = 0.1,
    max_depth: float = 100.0,
) -> float | None:
    """Convert a stereo disparity to metric depth.

    depth = baseline * focal_length / disparity

    Args:
        disparity: Horizontal disparity in pixels
        baseline: Stereo baseline in meters
        focal_length: Focal length in pixels
        min_disparity: Disparities at or below this give no depth
        min_depth: Exclusive lower depth bound (meters)
        max_depth: Exclusive upper depth bound (meters)

    Returns:
        Depth in meters, or None if the disparity is too small or the depth
        is out of range
    """
    if disparity <= min_disparity:
        return None
    depth = (baseline * focal_length) / disparity
    if min_depth < depth < max_depth:
        return float(depth)
    return None


class StereoMatcher:
    """Matches left-image features into the right image and estimates depth.

    Example:
        >>> matcher = StereoMatcher()
        >>> stats = matcher.match(frame)
        >>> n_depths = matcher.estimate_depth(frame, rig.baseline, rig.focal_length)
    """

    def __init__(
        self,
        backend: VisionBackend | None = None,
        config: StereoConfig | None = None,
    ) -> None:
        """Initialize stereo matcher.

        Args:
            backend: Vision primitives. Uses OpenCV if None.
            config: Matching parameters. Uses defaults if None.
        """
        self._backend = backend or OpenCVBackend()
        self._config = config or StereoConfig()

    def match(self, frame: Frame) -> StereoMatchStats:
        """Find right-image matches for the frame's valid features.

        Pipeline:
        0. Clear stereo results from any earlier call on this frame
        1. Track left features into the right image (optical flow)
        2. Keep loose candidates: flow success and error < max_flow_error
        3. Estimate F from the loose set if it has >= 8 candidates
        4. Gate every loose candidate (epipolar, disparity, row offset)
        5. Record surviving matches on the features

        Args:
            frame: Frame with left and right images

        Returns:
            StereoMatchStats for this frame
        """
        start = time.perf_counter()
        stats = StereoMatchStats()

        if not frame.is_stereo:
            logger.info("Frame %d has no right image, skipping stereo", frame.frame_id)
            return stats
        if not frame.has_left_image:
            logger.warning("Frame %d has no left image, skipping stereo", frame.frame_id)
            return stats

        features = frame.valid_features()
        # Drop matches left by an earlier call on this frame
        for feature in features:
            feature.clear_stereo_match()
        stats.num_candidates = len(features)
        if len(features) == 0:
            logger.info("No features to match in stereo for frame %d", frame.frame_id)
            return stats

        left_pts = frame.pixel_coords()
        flow = self._backend.track_points(
            frame.left_image, frame.right_image, left_pts, self._config.flow
        )

        status = np.asarray(flow.status, dtype=bool)
        error = np.asarray(flow.error, dtype=np.float32)
        right_pts = np.asarray(flow.points, dtype=np.float32).reshape(-1, 2)
        loose = np.flatnonzero(status & (error < self._config.max_flow_error))
        stats.num_loose = len(loose)

        fundamental = None
        if len(loose) >= MIN_TWO_VIEW_POINTS:
            estimate = self._backend.estimate_fundamental(
                left_pts[loose],
                right_pts[loose],
                self._config.ransac_threshold,
                self._config.ransac_confidence,
            )
            fundamental = estimate.matrix
            stats.fundamental_estimated = estimate.has_model
            stats.num_ransac_inliers = estimate.num_inliers
            logger.debug(
                "Fundamental matrix: %d/%d loose matches are inliers",
                estimate.num_inliers,
                len(loose),
            )

        # Gate the full loose set; the RANSAC inlier mask is not used here
        for i in loose:
            left_pt = left_pts[i]
            right_pt = right_pts[i]
            if not passes_stereo_gates(left_pt, right_pt, fundamental, self._config):
                continue
            disparity = float(left_pt[0]) - float(right_pt[0])
            features[i].set_stereo_match(right_pt, disparity)
            stats.num_matched += 1

        stats.total_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "Stereo matching frame %d: matched %d/%d features (%.2f ms)",
            frame.frame_id,
            stats.num_matched,
            stats.num_candidates,
            stats.total_ms,
        )
        return stats

    def estimate_depth(self, frame: Frame, baseline: float, focal_length: float) -> int:
        """Set depth on every valid feature with a stereo match.

        Args:
            frame: Frame after `match`
            baseline: Stereo baseline in meters
            focal_length: Focal length in pixels

        Returns:
            Number of features that received a depth
        """
        if not frame.is_stereo:
            logger.info("Frame %d is not stereo, skipping depth", frame.frame_id)
            return 0

        n_depths = 0
        for feature in frame.valid_features():
            if not feature.has_stereo_match:
                continue
            depth = depth_from_disparity(
                feature.disparity,
                baseline,
                focal_length,
                min_disparity=self._config.min_depth_disparity,
                min_depth=self._config.min_depth,
                max_depth=self._config.max_depth,
            )
            if depth is not None:
                feature.depth = depth
                n_depths += 1

        logger.debug("Computed depth for %d features in frame %d", n_depths, frame.frame_id)
        return n_depths

    def compute_disparity_map(self, frame: Frame) -> np.ndarray | None:
        """Compute a dense block-matching disparity map for visualization.

        Returns:
            HxW float32 disparity in pixels, or None for a mono frame
        """
        if not frame.is_stereo or not frame.has_left_image:
            logger.info("Frame %d is not stereo, no disparity map", frame.frame_id)
            return None
        return self._backend.dense_stereo_match(
            frame.left_image,
            frame.right_image,
            self._config.block_size,
            self._config.num_disparities,
        )

    @property
    def config(self) -> StereoConfig:
        """Return the stereo configuration."""
        return self._config
