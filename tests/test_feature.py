"""Tests for Feature and FeatureIdCounter."""

import numpy as np
import pytest

from vio_frontend.feature import (
    UNSET_DEPTH,
    Feature,
    FeatureIdCounter,
    compute_parallax,
)


class TestFeature:
    """Test suite for the Feature record."""

    def test_defaults(self):
        """A new feature is a first observation without stereo data."""
        feature = Feature(id=3, pixel_coord=(10.0, 20.0))

        assert feature.track_count == 1
        assert feature.is_valid
        assert feature.depth == UNSET_DEPTH
        assert not feature.has_depth
        assert not feature.has_stereo_match
        assert feature.disparity == -1.0
        np.testing.assert_array_equal(feature.right_coord, [-1.0, -1.0])
        np.testing.assert_array_equal(feature.normalized_coord, [0.0, 0.0])
        np.testing.assert_array_equal(feature.velocity, [0.0, 0.0])

    def test_coordinates_are_float32_vectors(self):
        """Coordinates are normalized to (2,) float32 arrays."""
        feature = Feature(id=0, pixel_coord=np.array([[1, 2]]))

        assert feature.pixel_coord.shape == (2,)
        assert feature.pixel_coord.dtype == np.float32

    def test_propagate_creates_new_record(self):
        """Propagation keeps the id, bumps track_count, and leaves the source alone."""
        source = Feature(id=7, pixel_coord=(10.0, 10.0), track_count=4)
        source.set_stereo_match((5.0, 10.0), 5.0)
        source.depth = 2.0

        tracked = source.propagate(np.array([12.0, 11.0]))

        assert tracked is not source
        assert tracked.id == 7
        assert tracked.track_count == 5
        np.testing.assert_allclose(tracked.pixel_coord, [12.0, 11.0])
        # Stereo state belongs to the old frame
        assert not tracked.has_stereo_match
        assert not tracked.has_depth
        # Source untouched
        assert source.track_count == 4
        np.testing.assert_allclose(source.pixel_coord, [10.0, 10.0])
        assert source.has_stereo_match

    def test_set_stereo_match(self):
        """Recording a stereo match sets all stereo fields."""
        feature = Feature(id=0, pixel_coord=(100.0, 50.0))
        feature.set_stereo_match(np.array([80.0, 51.0]), 20.0)

        assert feature.has_stereo_match
        assert feature.disparity == 20.0
        np.testing.assert_allclose(feature.right_coord, [80.0, 51.0])

    def test_parallax(self):
        """Parallax is the normalized-coordinate Euclidean distance."""
        a = Feature(id=1, pixel_coord=(0, 0), normalized_coord=(0.0, 0.0))
        b = Feature(id=1, pixel_coord=(0, 0), normalized_coord=(0.3, 0.4))

        assert compute_parallax(a, b) == pytest.approx(0.5)
        assert a.parallax(b) == pytest.approx(0.5)
        assert b.parallax(a) == pytest.approx(0.5)

    def test_parallax_ignores_pixel_coordinates(self):
        a = Feature(id=1, pixel_coord=(0, 0))
        b = Feature(id=1, pixel_coord=(100, 100))

        assert compute_parallax(a, b) == 0.0


class TestFeatureIdCounter:
    """Test suite for the id counter."""

    def test_starts_at_zero(self):
        counter = FeatureIdCounter()
        assert counter.peek() == 0
        assert [counter.next_id() for _ in range(3)] == [0, 1, 2]
        assert counter.peek() == 3

    def test_custom_start(self):
        counter = FeatureIdCounter(start=100)
        assert counter.next_id() == 100
        assert counter.next_id() == 101

    def test_negative_start_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            FeatureIdCounter(start=-1)

    def test_ids_never_repeat(self):
        counter = FeatureIdCounter()
        ids = [counter.next_id() for _ in range(1000)]
        assert len(set(ids)) == 1000
        assert ids == sorted(ids)


def test_clear_stereo_match():
    """Clearing resets the stereo fields and the depth built on them."""
    feature = Feature(id=0, pixel_coord=(100.0, 50.0))
    feature.set_stereo_match((80.0, 50.0), 20.0)
    feature.depth = 1.5

    feature.clear_stereo_match()

    assert not feature.has_stereo_match
    assert not feature.has_depth
    assert feature.disparity == -1.0
    np.testing.assert_array_equal(feature.right_coord, [-1.0, -1.0])
