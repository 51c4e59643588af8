"""Temporal feature tracking with KLT and two-view outlier rejection."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

import numpy as np

from .camera import PinholeCamera
from .config import MIN_TWO_VIEW_POINTS, TrackerConfig
from .feature import DEFAULT_ID_COUNTER, Feature, FeatureIdCounter
from .frame import Frame
from .vision import OpenCVBackend, VisionBackend

logger = logging.getLogger(__name__)


@dataclass
class TrackingStats:
    """Bookkeeping for one call to `FeatureTracker.track_features`."""

    num_tracked: int = 0  # Propagated from the previous frame
    num_lost: int = 0  # Failed flow status or left the image
    num_outliers: int = 0  # Removed by the fundamental matrix check
    num_new: int = 0  # Freshly detected corners
    filter_applied: bool = False
    total_ms: float = 0.0

    @property
    def num_features(self) -> int:
        """Return number of features in the frame after tracking."""
        return self.num_tracked - self.num_outliers + self.num_new


def is_in_border(point: np.ndarray, image_size: tuple[int, int], margin: int = 1) -> bool:
    """Check that a point lies inside the image minus a margin.

    The point is rounded to the nearest pixel (ties to even) and accepted
    when margin <= c < dimension - margin holds on both axes.

    Args:
        point: (2,) pixel coordinates (u, v)
        image_size: Image size as (width, height)
        margin: Border width in pixels
    """
    width, height = image_size
    u = int(round(float(point[0])))
    v = int(round(float(point[1])))
    return margin <= u < width - margin and margin <= v < height - margin


def build_detection_mask(
    image_shape: tuple[int, ...],
    points: np.ndarray,
    radius: float,
) -> np.ndarray:
    """Build a corner detection mask that excludes existing features.

    Args:
        image_shape: Shape of the image (rows, cols[, channels])
        points: Nx2 pixel coordinates of features to keep away from
        radius: Exclusion radius in pixels

    Returns:
        uint8 mask with 255 where detection is allowed and 0 on every pixel
        whose distance to a point is <= radius
    """
    rows, cols = image_shape[:2]
    mask = np.full((rows, cols), 255, dtype=np.uint8)
    if len(points) == 0 or radius <= 0:
        return mask

    ys, xs = np.ogrid[:rows, :cols]
    r2 = float(radius) ** 2
    for u, v in np.asarray(points, dtype=np.float64).reshape(-1, 2):
        # Only touch the bounding box of the disk
        x0, x1 = max(int(np.floor(u - radius)), 0), min(int(np.ceil(u + radius)) + 1, cols)
        y0, y1 = max(int(np.floor(v - radius)), 0), min(int(np.ceil(v + radius)) + 1, rows)
        if x0 >= x1 or y0 >= y1:
            continue
        disk = (xs[:, x0:x1] - u) ** 2 + (ys[y0:y1, :] - v) ** 2 <= r2
        mask[y0:y1, x0:x1][disk] = 0
    return mask


class FeatureTracker:
    """Maintains identity-stable feature tracks across frames.

    Each call advances the feature set from the previous frame to the
    current one in three stages:
    1. Propagate: KLT-track previous features, drop failures and points
       that leave the image border
    2. Filter: remove fundamental-matrix outliers (needs >= 8 tracks)
    3. Replenish: detect new corners away from surviving features

    The tracker keeps no frame history; the caller passes the previous frame.

    Example:
        >>> tracker = FeatureTracker()
        >>> stats = tracker.track_features(current_frame, previous_frame)
        >>> print(f"{stats.num_tracked} tracked, {stats.num_new} new")
    """

    def __init__(
        self,
        backend: VisionBackend | None = None,
        config: TrackerConfig | None = None,
        id_counter: FeatureIdCounter | None = None,
        camera: PinholeCamera | None = None,
    ) -> None:
        """Initialize the tracker.

        Args:
            backend: Vision primitives. Uses OpenCV if None.
            config: Tracking parameters. Uses defaults if None.
            id_counter: Source of new feature ids. Uses the process-wide
                counter if None.
            camera: Left camera model. If given, normalized coordinates are
                filled in for every feature the tracker writes.
        """
        self._backend = backend or OpenCVBackend()
        self._config = config or TrackerConfig()
        self._ids = id_counter or DEFAULT_ID_COUNTER
        self._camera = camera

    def track_features(
        self, current: Frame, previous: Frame | None = None
    ) -> TrackingStats:
        """Populate the current frame's features.

        Args:
            current: Frame with images and no features yet
            previous: Previous frame, None for the first frame of a sequence

        Returns:
            TrackingStats describing what happened
        """
        start = time.perf_counter()
        stats = TrackingStats()

        if not current.has_left_image:
            logger.warning("Frame %d has no image, skipping tracking", current.frame_id)
            return stats

        if previous is not None:
            stats.num_tracked, stats.num_lost = self._propagate(current, previous)
            stats.num_outliers, stats.filter_applied = self._reject_outliers(
                current, previous
            )

        if len(current) < self._config.max_features:
            stats.num_new = self._replenish(current)

        if self._camera is not None:
            self._update_normalized_coords(current)

        stats.total_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "Frame %d: %d tracked, %d lost, %d outliers, %d new -> %d features (%.2f ms)",
            current.frame_id,
            stats.num_tracked,
            stats.num_lost,
            stats.num_outliers,
            stats.num_new,
            len(current),
            stats.total_ms,
        )
        return stats

    def _propagate(self, current: Frame, previous: Frame) -> tuple[int, int]:
        """KLT-track the previous frame's valid features into current.

        Returns:
            Tuple of (tracked, lost) counts
        """
        sources = previous.valid_features()
        if len(sources) == 0:
            return 0, 0

        if not previous.has_left_image:
            logger.warning(
                "Previous frame %d has no image, cannot propagate %d features",
                previous.frame_id,
                len(sources),
            )
            return 0, len(sources)

        flow = self._backend.track_points(
            previous.left_image,
            current.left_image,
            previous.pixel_coords(),
            self._config.flow,
        )

        image_size = current.image_size
        tracked = 0
        for source, point, ok in zip(sources, flow.points, flow.status):
            if not ok or not is_in_border(point, image_size, self._config.border_margin):
                continue
            current.add_feature(source.propagate(point))
            tracked += 1

        return tracked, len(sources) - tracked

    def _reject_outliers(self, current: Frame, previous: Frame) -> tuple[int, bool]:
        """Remove tracks inconsistent with a fundamental matrix.

        Returns:
            Tuple of (outliers removed, whether the filter ran)
        """
        if len(current) < MIN_TWO_VIEW_POINTS:
            return 0, False

        ids = []
        prev_pts = []
        cur_pts = []
        for feature in current:
            prev_feature = previous.get_feature(feature.id)
            if prev_feature is None or not prev_feature.is_valid:
                continue
            ids.append(feature.id)
            prev_pts.append(prev_feature.pixel_coord)
            cur_pts.append(feature.pixel_coord)

        if len(ids) < MIN_TWO_VIEW_POINTS:
            return 0, False

        estimate = self._backend.estimate_fundamental(
            np.array(prev_pts, dtype=np.float32),
            np.array(cur_pts, dtype=np.float32),
            self._config.fundamental_threshold,
            self._config.ransac_confidence,
        )
        if not estimate.has_model:
            logger.info(
                "No fundamental matrix from %d tracks in frame %d, keeping all",
                len(ids),
                current.frame_id,
            )
            return 0, False

        outlier_ids = [fid for fid, inlier in zip(ids, estimate.inliers) if not inlier]
        removed = current.remove_features(outlier_ids)
        logger.debug("Removed %d outliers using fundamental matrix", removed)
        return removed, True

    def _replenish(self, current: Frame) -> int:
        """Detect new corners away from existing features.

        Returns:
            Number of features added
        """
        n_wanted = self._config.max_features - len(current)
        mask = build_detection_mask(
            current.left_image.shape,
            current.pixel_coords(),
            self._config.min_distance,
        )
        corners = self._backend.detect_corners(
            current.left_image,
            n_wanted,
            self._config.quality_level,
            self._config.min_distance,
            mask,
        )

        # Never exceed the feature budget even if the detector over-delivers
        corners = np.asarray(corners, dtype=np.float32).reshape(-1, 2)[:n_wanted]
        for corner in corners:
            current.add_feature(Feature(id=self._ids.next_id(), pixel_coord=corner))
        return len(corners)

    def _update_normalized_coords(self, frame: Frame) -> None:
        features = frame.features
        if len(features) == 0:
            return
        normalized = self._camera.normalize(
            np.array([f.pixel_coord for f in features], dtype=np.float32)
        )
        for feature, coord in zip(features, normalized):
            feature.normalized_coord = coord

    @property
    def config(self) -> TrackerConfig:
        """Return the tracking configuration."""
        return self._config

    @property
    def max_features(self) -> int:
        return self._config.max_features

    @property
    def min_distance(self) -> float:
        return self._config.min_distance
