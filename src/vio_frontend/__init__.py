"""Python VIO front-end - feature tracking and stereo correspondence."""

__version__ = "0.1.0"

# Re-export main classes for convenient imports
from .camera import CameraIntrinsics, DistortionCoeffs, PinholeCamera, StereoRig
from .config import (
    MIN_TWO_VIEW_POINTS,
    FrontendConfig,
    OpticalFlowParams,
    StereoConfig,
    TrackerConfig,
)
from .dataset_reader import DatasetReader
from .feature import (
    DEFAULT_ID_COUNTER,
    UNSET_DEPTH,
    Feature,
    FeatureIdCounter,
    compute_parallax,
)
from .frame import Frame
from .frontend import FrontendResult, FrontendTiming, VisualFrontend
from .stereo_matcher import (
    StereoMatcher,
    StereoMatchStats,
    depth_from_disparity,
    epipolar_residual,
    passes_stereo_gates,
)
from .tracker import FeatureTracker, TrackingStats, build_detection_mask, is_in_border
from .vision import FlowResult, OpenCVBackend, TwoViewEstimate, VisionBackend

__all__ = [
    "__version__",
    # Data model
    "Feature",
    "FeatureIdCounter",
    "DEFAULT_ID_COUNTER",
    "UNSET_DEPTH",
    "compute_parallax",
    "Frame",
    # Tracking
    "FeatureTracker",
    "TrackingStats",
    "build_detection_mask",
    "is_in_border",
    # Stereo
    "StereoMatcher",
    "StereoMatchStats",
    "depth_from_disparity",
    "epipolar_residual",
    "passes_stereo_gates",
    # Pipeline
    "VisualFrontend",
    "FrontendResult",
    "FrontendTiming",
    # Vision primitives
    "VisionBackend",
    "OpenCVBackend",
    "FlowResult",
    "TwoViewEstimate",
    # Configuration
    "FrontendConfig",
    "TrackerConfig",
    "StereoConfig",
    "OpticalFlowParams",
    "MIN_TWO_VIEW_POINTS",
    # Camera
    "CameraIntrinsics",
    "DistortionCoeffs",
    "PinholeCamera",
    "StereoRig",
    # Dataset
    "DatasetReader",
]
