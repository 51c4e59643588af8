"""Frame: one time instant with its images and feature store."""

from __future__ import annotations

from typing import Iterable, Iterator

import numpy as np

from .feature import Feature


def _copy_image(image: np.ndarray | None) -> np.ndarray | None:
    if image is None:
        return None
    return np.array(image, copy=True)


class Frame:
    """A single camera frame owning its images and features.

    Features are kept in insertion order together with an id -> index map.
    The map is rebuilt whenever a feature is removed, so lookups stay
    consistent with the ordered list.

    Images are copied on ingestion; the frame never aliases caller buffers.

    Example:
        >>> frame = Frame(timestamp_ns=1403636579763555584, frame_id=0, left_image=img)
        >>> frame.add_feature(Feature(id=0, pixel_coord=(10.0, 20.0)))
        >>> frame.get_feature(0).track_count
        1
    """

    def __init__(
        self,
        timestamp_ns: int,
        frame_id: int,
        left_image: np.ndarray | None = None,
        right_image: np.ndarray | None = None,
    ) -> None:
        """Initialize an empty frame.

        Args:
            timestamp_ns: Capture time in nanoseconds
            frame_id: Sequence index of this frame
            left_image: Left (reference) camera image, copied
            right_image: Optional right camera image, copied
        """
        self.timestamp_ns = timestamp_ns
        self.frame_id = frame_id
        self._left_image = _copy_image(left_image)
        self._right_image = _copy_image(right_image)

        self._features: list[Feature] = []
        self._id_to_index: dict[int, int] = {}

        # Pose passthrough, set by the caller
        self._rotation = np.eye(3, dtype=np.float64)
        self._translation = np.zeros(3, dtype=np.float64)
        self.is_keyframe = False

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    @property
    def left_image(self) -> np.ndarray | None:
        """Return the left camera image."""
        return self._left_image

    @property
    def right_image(self) -> np.ndarray | None:
        """Return the right camera image, None for a mono frame."""
        return self._right_image

    def set_left_image(self, image: np.ndarray) -> None:
        self._left_image = _copy_image(image)

    def set_right_image(self, image: np.ndarray) -> None:
        self._right_image = _copy_image(image)

    def set_stereo_images(self, left: np.ndarray, right: np.ndarray) -> None:
        """Set both images of a synchronized stereo pair."""
        self._left_image = _copy_image(left)
        self._right_image = _copy_image(right)

    @property
    def has_left_image(self) -> bool:
        return self._left_image is not None and self._left_image.size > 0

    @property
    def is_stereo(self) -> bool:
        """Return True if a non-empty right image is attached."""
        return self._right_image is not None and self._right_image.size > 0

    @property
    def image_size(self) -> tuple[int, int] | None:
        """Return left image size as (width, height), None without image."""
        if not self.has_left_image:
            return None
        height, width = self._left_image.shape[:2]
        return (width, height)

    # ------------------------------------------------------------------
    # Pose
    # ------------------------------------------------------------------

    @property
    def rotation(self) -> np.ndarray:
        return self._rotation

    @property
    def translation(self) -> np.ndarray:
        return self._translation

    def set_pose(self, rotation: np.ndarray, translation: np.ndarray) -> None:
        """Store the camera pose in the world frame.

        Args:
            rotation: 3x3 rotation matrix
            translation: Translation vector (any shape that flattens to 3)

        Raises:
            ValueError: If shapes are wrong
        """
        rotation = np.asarray(rotation, dtype=np.float64)
        translation = np.asarray(translation, dtype=np.float64).flatten()
        if rotation.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got {rotation.shape}")
        if translation.shape != (3,):
            raise ValueError(f"Translation must be (3,), got {translation.shape}")
        self._rotation = rotation
        self._translation = translation

    # ------------------------------------------------------------------
    # Feature store
    # ------------------------------------------------------------------

    def add_feature(self, feature: Feature) -> None:
        """Append a feature.

        Raises:
            ValueError: If a feature with the same id is already stored
        """
        if feature.id in self._id_to_index:
            raise ValueError(
                f"Feature id {feature.id} already present in frame {self.frame_id}"
            )
        self._features.append(feature)
        self._id_to_index[feature.id] = len(self._features) - 1

    def remove_feature(self, feature_id: int) -> bool:
        """Remove a feature by id.

        Returns:
            True if the feature was found and removed
        """
        index = self._id_to_index.get(feature_id)
        if index is None:
            return False
        del self._features[index]
        self._rebuild_index()
        return True

    def remove_features(self, feature_ids: Iterable[int]) -> int:
        """Remove several features with a single index rebuild.

        Returns:
            Number of features actually removed
        """
        to_remove = set(feature_ids) & self._id_to_index.keys()
        if not to_remove:
            return 0
        self._features = [f for f in self._features if f.id not in to_remove]
        self._rebuild_index()
        return len(to_remove)

    def get_feature(self, feature_id: int) -> Feature | None:
        index = self._id_to_index.get(feature_id)
        if index is None:
            return None
        return self._features[index]

    def _rebuild_index(self) -> None:
        self._id_to_index = {f.id: i for i, f in enumerate(self._features)}

    @property
    def features(self) -> tuple[Feature, ...]:
        """Return all features in insertion order."""
        return tuple(self._features)

    @property
    def feature_ids(self) -> list[int]:
        return [f.id for f in self._features]

    def valid_features(self) -> list[Feature]:
        """Return features with is_valid set, in insertion order."""
        return [f for f in self._features if f.is_valid]

    def pixel_coords(self) -> np.ndarray:
        """Return Nx2 float32 pixel coordinates of the valid features."""
        valid = self.valid_features()
        if len(valid) == 0:
            return np.empty((0, 2), dtype=np.float32)
        return np.array([f.pixel_coord for f in valid], dtype=np.float32)

    @property
    def num_stereo_matches(self) -> int:
        return sum(1 for f in self._features if f.has_stereo_match)

    @property
    def num_depths(self) -> int:
        return sum(1 for f in self._features if f.has_depth)

    def __len__(self) -> int:
        """Return number of stored features."""
        return len(self._features)

    def __iter__(self) -> Iterator[Feature]:
        return iter(tuple(self._features))

    def __contains__(self, feature_id: object) -> bool:
        return feature_id in self._id_to_index

    def reject_outliers_with_fundamental_matrix(self) -> None:
        """Frame-local outlier rejection.

        Outlier rejection needs the previous frame's observations and is done
        by `FeatureTracker` instead; a single frame has nothing to compare to.
        """
        raise NotImplementedError(
            "Frame-level fundamental matrix rejection is not implemented; "
            "use FeatureTracker.track_features with a previous frame"
        )

    def __repr__(self) -> str:
        return (
            f"Frame(frame_id={self.frame_id}, timestamp_ns={self.timestamp_ns}, "
            f"features={len(self._features)}, stereo={self.is_stereo})"
        )
