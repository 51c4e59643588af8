"""Point features tracked across frames.

A Feature is one observation of a scene point in one frame. Tracking a point
into the next frame never mutates the old observation: `Feature.propagate`
creates a new record that carries the same id forward.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

UNSET_DEPTH = -1.0
UNSET_DISPARITY = -1.0


def _point(values) -> np.ndarray:
    return np.asarray(values, dtype=np.float32).reshape(2)


class FeatureIdCounter:
    """Monotonically increasing source of feature ids.

    Ids are never reused. The library never resets a counter; a fresh
    counter is only created by the caller (e.g. one per test).
    """

    def __init__(self, start: int = 0) -> None:
        """Initialize the counter.

        Args:
            start: First id handed out by `next_id`
        """
        if start < 0:
            raise ValueError(f"Counter start must be non-negative, got {start}")
        self._next = start

    def next_id(self) -> int:
        """Return a new id and advance the counter."""
        feature_id = self._next
        self._next += 1
        return feature_id

    def peek(self) -> int:
        """Return the id the next call to `next_id` will hand out."""
        return self._next


# Process-wide counter used when no counter is injected
DEFAULT_ID_COUNTER = FeatureIdCounter()


@dataclass
class Feature:
    """Observation of a single scene point in one frame.

    Attributes:
        id: Track identity, unique within a frame and never reused
        pixel_coord: (2,) pixel coordinates (u, v) in the left image
        normalized_coord: (2,) undistorted normalized camera coordinates
        velocity: (2,) image velocity, owned by downstream consumers
        track_count: Number of consecutive frames this id has been observed
        depth: Depth in meters, UNSET_DEPTH when no stereo depth exists
        is_valid: False if the observation should be ignored
        right_coord: (2,) matched pixel coordinates in the right image
        disparity: Horizontal offset u_left - u_right of the stereo match
        has_stereo_match: True once a right-image match was accepted
    """

    id: int
    pixel_coord: np.ndarray
    normalized_coord: np.ndarray = field(
        default_factory=lambda: np.zeros(2, dtype=np.float32)
    )
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(2, dtype=np.float32))
    track_count: int = 1
    depth: float = UNSET_DEPTH
    is_valid: bool = True
    right_coord: np.ndarray = field(
        default_factory=lambda: np.full(2, -1.0, dtype=np.float32)
    )
    disparity: float = UNSET_DISPARITY
    has_stereo_match: bool = False

    def __post_init__(self) -> None:
        """Ensure coordinates are (2,) float32 arrays."""
        self.pixel_coord = _point(self.pixel_coord)
        self.normalized_coord = _point(self.normalized_coord)
        self.velocity = _point(self.velocity)
        self.right_coord = _point(self.right_coord)

    @property
    def has_depth(self) -> bool:
        """Return True if a valid stereo depth was recorded."""
        return self.depth != UNSET_DEPTH

    def propagate(self, pixel_coord: np.ndarray) -> Feature:
        """Create the next observation of this track.

        Args:
            pixel_coord: Tracked position in the new frame

        Returns:
            New Feature with the same id and track_count + 1. Stereo and
            depth state is not carried over.
        """
        return Feature(
            id=self.id,
            pixel_coord=pixel_coord,
            track_count=self.track_count + 1,
        )

    def set_stereo_match(self, right_coord: np.ndarray, disparity: float) -> None:
        """Record an accepted right-image correspondence."""
        self.right_coord = _point(right_coord)
        self.disparity = float(disparity)
        self.has_stereo_match = True

    def clear_stereo_match(self) -> None:
        """Forget any stereo match and the depth derived from it."""
        self.right_coord = np.full(2, -1.0, dtype=np.float32)
        self.disparity = UNSET_DISPARITY
        self.has_stereo_match = False
        self.depth = UNSET_DEPTH

    def parallax(self, other: Feature) -> float:
        """Return the normalized-coordinate parallax to another observation."""
        return compute_parallax(self, other)


def compute_parallax(a: Feature, b: Feature) -> float:
    """Euclidean distance between two observations in normalized coordinates.

    Used by keyframe selection to decide whether enough motion happened
    between two frames that observe the same track.
    """
    diff = a.normalized_coord.astype(np.float64) - b.normalized_coord.astype(np.float64)
    return float(np.linalg.norm(diff))
