"""Rerun-based visualization of tracked frames."""

from __future__ import annotations

import numpy as np
import rerun as rr
import rerun.blueprint as rrb

from ..drawing import track_color
from ..frame import Frame


class RerunVisualizer:
    """Rerun-based visualization for the tracking front-end.

    Entity hierarchy:
        camera/
            left/
                image       - Left image
                features    - Tracked features (colored by track length)
                tracks      - Motion since the previous frame
            right/
                image       - Right image
                matched     - Stereo matches (red)
            disparity       - Dense disparity map (optional)
        world/
            points          - Features with depth, back-projected (left camera frame)
    """

    def __init__(self, app_name: str = "vio-frontend", spawn: bool = True) -> None:
        """Initialize Rerun visualization.

        Args:
            app_name: Name for the Rerun application window
            spawn: If True, automatically spawn the Rerun viewer
        """
        rr.init(app_name, spawn=spawn)
        rr.log("world", rr.ViewCoordinates.RDF, static=True)
        self._setup_layout()

    def _setup_layout(self) -> None:
        blueprint = rrb.Blueprint(
            rrb.Vertical(
                contents=[
                    rrb.Horizontal(
                        contents=[
                            rrb.Spatial2DView(name="Left Camera", origin="camera/left"),
                            rrb.Spatial2DView(name="Right Camera", origin="camera/right"),
                        ]
                    ),
                    rrb.Horizontal(
                        contents=[
                            rrb.Spatial2DView(name="Disparity", origin="camera/disparity"),
                            rrb.Spatial3DView(name="Depth Points", origin="world"),
                        ]
                    ),
                ]
            )
        )
        rr.send_blueprint(blueprint)

    def log_frame(
        self,
        frame: Frame,
        previous: Frame | None = None,
        disparity: np.ndarray | None = None,
    ) -> None:
        """Log a processed frame to Rerun.

        Args:
            frame: Frame after tracking (and optionally stereo matching)
            previous: Previous frame, used to draw track motion
            disparity: Optional dense disparity map
        """
        rr.set_time("timestamp", duration=frame.timestamp_ns / 1e9)

        if frame.has_left_image:
            rr.log("camera/left/image", rr.Image(frame.left_image))
        if frame.is_stereo:
            rr.log("camera/right/image", rr.Image(frame.right_image))
        if disparity is not None:
            rr.log("camera/disparity", rr.DepthImage(disparity))

        self._log_features(frame)
        if previous is not None:
            self._log_tracks(frame, previous)
        self._log_stereo_matches(frame)
        self._log_depth_points(frame)

    def _log_features(self, frame: Frame) -> None:
        features = frame.valid_features()
        if len(features) == 0:
            return

        # track_color is BGR for OpenCV
        colors = [track_color(f.track_count)[::-1] for f in features]
        rr.log(
            "camera/left/features",
            rr.Points2D(
                frame.pixel_coords(),
                colors=colors,
                radii=3.0,
                labels=[str(f.id) for f in features],
            ),
        )

    def _log_tracks(self, frame: Frame, previous: Frame) -> None:
        strips = []
        for feature in frame.valid_features():
            prev_feature = previous.get_feature(feature.id)
            if prev_feature is not None and prev_feature.is_valid:
                strips.append([prev_feature.pixel_coord, feature.pixel_coord])

        if strips:
            rr.log(
                "camera/left/tracks",
                rr.LineStrips2D(strips, colors=[[0, 255, 0]], radii=1.0),
            )

    def _log_stereo_matches(self, frame: Frame) -> None:
        matched = [f for f in frame.valid_features() if f.has_stereo_match]
        if len(matched) == 0:
            return

        rr.log(
            "camera/right/matched",
            rr.Points2D(
                np.array([f.right_coord for f in matched], dtype=np.float32),
                colors=[[255, 0, 0]],  # Red
                radii=4.0,
                labels=[f"{f.disparity:.1f}" for f in matched],
            ),
        )

    def _log_depth_points(self, frame: Frame) -> None:
        """Log features with depth as 3D points colored by depth."""
        with_depth = [f for f in frame.valid_features() if f.has_depth]
        if len(with_depth) == 0:
            return

        normalized = np.array([f.normalized_coord for f in with_depth], dtype=np.float64)
        depths = np.array([f.depth for f in with_depth], dtype=np.float64)
        points = np.column_stack([normalized * depths[:, None], depths])

        # Blue (close) -> red (far)
        depth_min, depth_max = np.percentile(depths, [5, 95])
        depth_range = max(depth_max - depth_min, 0.1)
        t = np.clip((depths - depth_min) / depth_range, 0, 1)
        colors = np.zeros((len(points), 3), dtype=np.uint8)
        colors[:, 0] = (t * 255).astype(np.uint8)
        colors[:, 2] = ((1 - t) * 255).astype(np.uint8)

        rr.log("world/points", rr.Points3D(points, colors=colors, radii=0.02))
