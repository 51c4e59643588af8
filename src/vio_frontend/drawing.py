"""OpenCV drawing helpers for inspecting tracking and stereo results."""

from __future__ import annotations

import cv2
import numpy as np

from .frame import Frame

# Track length at which the feature color saturates
TRACK_COLOR_SATURATION = 20

GREEN = (0, 255, 0)
RED = (0, 0, 255)
YELLOW = (0, 255, 255)
WHITE = (255, 255, 255)


def _to_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    return image.copy()


def _pt(point: np.ndarray) -> tuple[int, int]:
    return (int(round(float(point[0]))), int(round(float(point[1]))))


def track_color(track_count: int) -> tuple[int, int, int]:
    """Return a BGR color fading from blue (new) to red (long-lived)."""
    ratio = min(1.0, track_count / TRACK_COLOR_SATURATION)
    return (int(255 * (1 - ratio)), 0, int(255 * ratio))


def draw_features(frame: Frame) -> np.ndarray:
    """Draw the frame's valid features colored by track length.

    Returns:
        BGR image, or an empty array if the frame has no image
    """
    if not frame.has_left_image:
        return np.empty((0, 0, 3), dtype=np.uint8)

    canvas = _to_bgr(frame.left_image)
    for feature in frame.valid_features():
        cv2.circle(canvas, _pt(feature.pixel_coord), 2, track_color(feature.track_count), 2)
    return canvas


def draw_tracks(frame: Frame, previous: Frame) -> np.ndarray:
    """Draw features plus a line from each feature's previous position."""
    canvas = draw_features(frame)
    if canvas.size == 0:
        return canvas

    for feature in frame.valid_features():
        prev_feature = previous.get_feature(feature.id)
        if prev_feature is None or not prev_feature.is_valid:
            continue
        cv2.line(canvas, _pt(prev_feature.pixel_coord), _pt(feature.pixel_coord), GREEN, 1)
    return canvas


def draw_stereo_matches(frame: Frame) -> np.ndarray:
    """Draw left and right images side by side with stereo matches.

    Left features are green, matched right points red, connected by yellow
    lines and labeled with their disparity.

    Returns:
        BGR image of width 2*W, or an empty array for a mono frame
    """
    if not frame.is_stereo or not frame.has_left_image:
        return np.empty((0, 0, 3), dtype=np.uint8)

    left = _to_bgr(frame.left_image)
    right = _to_bgr(frame.right_image)
    if right.shape[0] != left.shape[0]:
        right = cv2.resize(right, (right.shape[1], left.shape[0]))
    canvas = np.hstack([left, right])
    offset = left.shape[1]

    for feature in frame.valid_features():
        left_pt = _pt(feature.pixel_coord)
        cv2.circle(canvas, left_pt, 3, GREEN, 2)
        if not feature.has_stereo_match:
            continue

        rx, ry = _pt(feature.right_coord)
        right_pt = (rx + offset, ry)
        cv2.circle(canvas, right_pt, 3, RED, 2)
        cv2.line(canvas, left_pt, right_pt, YELLOW, 1)
        cv2.putText(
            canvas,
            f"{feature.disparity:.1f}",
            (left_pt[0] + 5, left_pt[1] - 5),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.4,
            WHITE,
            1,
        )

    cv2.putText(canvas, "Left Camera", (10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1, WHITE, 2)
    cv2.putText(
        canvas, "Right Camera", (offset + 10, 30), cv2.FONT_HERSHEY_SIMPLEX, 1, WHITE, 2
    )
    return canvas


def normalize_disparity(disparity: np.ndarray) -> np.ndarray:
    """Min-max scale a disparity map to uint8 for display."""
    return cv2.normalize(disparity, None, 0, 255, cv2.NORM_MINMAX, dtype=cv2.CV_8U)
