"""Per-frame front-end pipeline: track, then stereo match and depth."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import numpy as np

from .camera import StereoRig
from .config import FrontendConfig
from .feature import FeatureIdCounter
from .frame import Frame
from .stereo_matcher import StereoMatcher, StereoMatchStats
from .tracker import FeatureTracker, TrackingStats
from .vision import OpenCVBackend, VisionBackend

logger = logging.getLogger(__name__)


@dataclass
class FrontendTiming:
    """Timing breakdown for a single frame."""

    tracking_ms: float = 0.0
    stereo_ms: float = 0.0
    depth_ms: float = 0.0
    total_ms: float = 0.0


@dataclass
class FrontendResult:
    """Output of the front-end for a single frame."""

    frame: Frame
    tracking: TrackingStats
    stereo: StereoMatchStats | None = None
    num_depths: int = 0
    timing: FrontendTiming = field(default_factory=FrontendTiming)

    @property
    def num_features(self) -> int:
        return len(self.frame)

    @property
    def num_stereo_matches(self) -> int:
        return 0 if self.stereo is None else self.stereo.num_matched


class VisualFrontend:
    """Runs the full per-frame pipeline.

    Stages, executed synchronously in order:
    1. Temporal tracking (propagate, filter, replenish)
    2. Stereo matching, if the frame has a right image
    3. Depth from disparity, if a stereo rig calibration is available

    The front-end keeps no frame history. The caller decides which frame is
    passed as previous and how long frames are kept.

    Example:
        >>> frontend = VisualFrontend.from_config(FrontendConfig(), rig=rig)
        >>> previous = None
        >>> for i, (left, right, ts) in enumerate(reader):
        ...     frame = frontend.create_frame(ts, i, left, right)
        ...     result = frontend.process(frame, previous)
        ...     previous = frame
    """

    def __init__(
        self,
        tracker: FeatureTracker | None = None,
        stereo_matcher: StereoMatcher | None = None,
        rig: StereoRig | None = None,
    ) -> None:
        """Initialize the front-end.

        Args:
            tracker: Temporal tracker. Uses defaults if None.
            stereo_matcher: Stereo matcher. Uses defaults if None.
            rig: Stereo calibration for depth. Depth is skipped if None.
        """
        self._tracker = tracker or FeatureTracker()
        self._stereo_matcher = stereo_matcher or StereoMatcher()
        self._rig = rig

    @classmethod
    def from_config(
        cls,
        config: FrontendConfig,
        rig: StereoRig | None = None,
        backend: VisionBackend | None = None,
        id_counter: FeatureIdCounter | None = None,
    ) -> VisualFrontend:
        """Create a front-end with all components sharing one backend.

        Args:
            config: Tracker and stereo configuration
            rig: Stereo calibration. Its left camera also provides normalized
                coordinates.
            backend: Vision primitives. Uses OpenCV if None.
            id_counter: Feature id source. Uses the process-wide counter if None.
        """
        backend = backend or OpenCVBackend()
        tracker = FeatureTracker(
            backend=backend,
            config=config.tracker,
            id_counter=id_counter,
            camera=rig.left if rig is not None else None,
        )
        stereo_matcher = StereoMatcher(backend=backend, config=config.stereo)
        return cls(tracker=tracker, stereo_matcher=stereo_matcher, rig=rig)

    @staticmethod
    def create_frame(
        timestamp_ns: int,
        frame_id: int,
        left: np.ndarray,
        right: np.ndarray | None = None,
    ) -> Frame:
        """Build a frame from (possibly stereo) images."""
        return Frame(timestamp_ns, frame_id, left_image=left, right_image=right)

    def process(self, current: Frame, previous: Frame | None = None) -> FrontendResult:
        """Run the pipeline on one frame.

        Args:
            current: New frame with images and no features
            previous: Previously processed frame, or None

        Returns:
            FrontendResult; the features live on `current`
        """
        timing = FrontendTiming()
        t_start = time.perf_counter()

        tracking = self._tracker.track_features(current, previous)
        t_tracked = time.perf_counter()
        timing.tracking_ms = (t_tracked - t_start) * 1000

        stereo = None
        num_depths = 0
        if current.is_stereo:
            stereo = self._stereo_matcher.match(current)
            t_matched = time.perf_counter()
            timing.stereo_ms = (t_matched - t_tracked) * 1000

            if self._rig is not None:
                num_depths = self._stereo_matcher.estimate_depth(
                    current, self._rig.baseline, self._rig.focal_length
                )
                timing.depth_ms = (time.perf_counter() - t_matched) * 1000

        timing.total_ms = (time.perf_counter() - t_start) * 1000
        logger.info(
            "Frame %d: %d features (%d tracked, %d new), %d stereo, %d depths "
            "in %.1f ms",
            current.frame_id,
            len(current),
            tracking.num_tracked - tracking.num_outliers,
            tracking.num_new,
            0 if stereo is None else stereo.num_matched,
            num_depths,
            timing.total_ms,
        )

        return FrontendResult(
            frame=current,
            tracking=tracking,
            stereo=stereo,
            num_depths=num_depths,
            timing=timing,
        )

    @property
    def tracker(self) -> FeatureTracker:
        return self._tracker

    @property
    def stereo_matcher(self) -> StereoMatcher:
        return self._stereo_matcher

    @property
    def rig(self) -> StereoRig | None:
        return self._rig
