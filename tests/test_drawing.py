"""Tests for the OpenCV drawing helpers."""

import numpy as np

from conftest import make_frame
from vio_frontend.drawing import (
    TRACK_COLOR_SATURATION,
    draw_features,
    draw_stereo_matches,
    draw_tracks,
    normalize_disparity,
    track_color,
)
from vio_frontend.frame import Frame


def test_track_color():
    assert track_color(0) == (255, 0, 0)
    assert track_color(TRACK_COLOR_SATURATION // 2) == (127, 0, 127)
    assert track_color(TRACK_COLOR_SATURATION) == (0, 0, 255)
    assert track_color(10 * TRACK_COLOR_SATURATION) == (0, 0, 255)


class TestDrawFeatures:
    def test_features_drawn(self):
        frame = make_frame(0, size=(100, 80), features=[(0, (50.0, 40.0))])

        canvas = draw_features(frame)

        assert canvas.shape == (80, 100, 3)
        assert canvas.dtype == np.uint8
        assert canvas[37:44, 47:54].any()
        assert not canvas[5, 5].any()

    def test_invalid_features_skipped(self):
        frame = make_frame(0, size=(100, 80), features=[(0, (50.0, 40.0))])
        frame.get_feature(0).is_valid = False

        assert not draw_features(frame).any()

    def test_no_image(self):
        assert draw_features(Frame(0, 0)).size == 0

    def test_source_image_untouched(self):
        frame = make_frame(0, size=(100, 80), features=[(0, (50.0, 40.0))])
        draw_features(frame)
        assert not frame.left_image.any()


def test_draw_tracks():
    previous = make_frame(0, size=(100, 80), features=[(0, (20.0, 40.0))])
    frame = make_frame(1, size=(100, 80), features=[(0, (80.0, 40.0))])

    canvas = draw_tracks(frame, previous)

    # Green line between the two positions
    assert tuple(canvas[40, 50]) == (0, 255, 0)


class TestDrawStereoMatches:
    def test_side_by_side(self):
        frame = make_frame(0, size=(100, 80), stereo=True, features=[(0, (60.0, 60.0))])
        frame.get_feature(0).set_stereo_match((40.0, 60.0), 20.0)

        canvas = draw_stereo_matches(frame)

        assert canvas.shape == (80, 200, 3)
        # Yellow match line into the right half, red marker offset by the width
        assert tuple(canvas[60, 100]) == (0, 255, 255)
        marker = canvas[56:65, 136:145]
        assert np.all(marker == (0, 0, 255), axis=-1).any()

    def test_mono_frame(self):
        assert draw_stereo_matches(make_frame(0)).size == 0


def test_normalize_disparity():
    disparity = np.array([[-1.0, 0.0], [7.5, 15.0]], dtype=np.float32)

    normalized = normalize_disparity(disparity)

    assert normalized.dtype == np.uint8
    assert normalized.min() == 0
    assert normalized.max() == 255
