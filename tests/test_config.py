"""Tests for front-end configuration."""

from pathlib import Path

import pytest

from vio_frontend.config import (
    FrontendConfig,
    OpticalFlowParams,
    StereoConfig,
    TrackerConfig,
)


class TestDefaults:
    """Default front-end parameters."""

    def test_tracker_defaults(self):
        config = TrackerConfig()
        assert config.max_features == 150
        assert config.quality_level == 0.01
        assert config.min_distance == 30.0
        assert config.border_margin == 1
        assert config.fundamental_threshold == 1.0
        assert config.ransac_confidence == 0.99

    def test_flow_defaults(self):
        flow = OpticalFlowParams()
        assert flow.window_size == (21, 21)
        assert flow.pyramid_levels == 3
        assert flow.max_iterations == 30
        assert flow.epsilon == 0.01
        assert flow.min_eig_threshold == 1e-4

    def test_stereo_defaults(self):
        config = StereoConfig()
        assert config.max_flow_error == 50.0
        assert config.ransac_threshold == 3.0
        assert config.max_epipolar_error == 5.0
        assert (config.min_disparity, config.max_disparity) == (0.1, 300.0)
        assert config.max_vertical_offset == 20.0
        assert config.min_depth_disparity == 0.5
        assert (config.min_depth, config.max_depth) == (0.1, 100.0)

    def test_sections_do_not_share_flow(self):
        config = FrontendConfig()
        assert config.tracker.flow is not config.stereo.flow


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_features": 0},
            {"quality_level": 0.0},
            {"quality_level": 1.0},
            {"min_distance": -1.0},
            {"border_margin": -1},
            {"fundamental_threshold": 0.0},
            {"ransac_confidence": 1.0},
        ],
    )
    def test_invalid_tracker(self, kwargs):
        with pytest.raises(ValueError):
            TrackerConfig(**kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"min_disparity": 300.0},
            {"min_depth": 100.0},
            {"block_size": 8},
            {"block_size": 3},
            {"num_disparities": 20},
            {"ransac_threshold": -1.0},
        ],
    )
    def test_invalid_stereo(self, kwargs):
        with pytest.raises(ValueError):
            StereoConfig(**kwargs)

    def test_invalid_flow(self):
        with pytest.raises(ValueError, match="window size"):
            OpticalFlowParams(window_size=(21,))
        with pytest.raises(ValueError):
            OpticalFlowParams(pyramid_levels=-1)

    def test_window_size_list_is_converted(self):
        assert OpticalFlowParams(window_size=[15, 15]).window_size == (15, 15)


class TestFromDict:
    def test_partial_override(self):
        config = FrontendConfig.from_dict(
            {
                "tracker": {"max_features": 200, "flow": {"window_size": [15, 15]}},
                "stereo": {"max_vertical_offset": 15.0},
            }
        )

        assert config.tracker.max_features == 200
        assert config.tracker.min_distance == 30.0
        assert config.tracker.flow.window_size == (15, 15)
        assert config.tracker.flow.pyramid_levels == 3
        assert config.stereo.max_vertical_offset == 15.0
        assert config.stereo.flow.window_size == (21, 21)

    def test_empty(self):
        assert FrontendConfig.from_dict(None) == FrontendConfig()
        assert FrontendConfig.from_dict({}) == FrontendConfig()

    def test_unknown_section(self):
        with pytest.raises(ValueError, match="Unknown configuration sections"):
            FrontendConfig.from_dict({"backend": {}})

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="'tracker'"):
            FrontendConfig.from_dict({"tracker": {"max_feature": 10}})

    def test_unknown_flow_key(self):
        with pytest.raises(ValueError, match="'stereo.flow'"):
            FrontendConfig.from_dict({"stereo": {"flow": {"levels": 2}}})


class TestFromYaml:
    def test_load(self, tmp_path):
        path = tmp_path / "frontend.yaml"
        path.write_text(
            "tracker:\n"
            "  max_features: 100\n"
            "stereo:\n"
            "  max_epipolar_error: 3.0\n"
            "  flow:\n"
            "    pyramid_levels: 2\n"
        )

        config = FrontendConfig.from_yaml(path)

        assert config.tracker.max_features == 100
        assert config.stereo.max_epipolar_error == 3.0
        assert config.stereo.flow.pyramid_levels == 2

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert FrontendConfig.from_yaml(path) == FrontendConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FrontendConfig.from_yaml(tmp_path / "missing.yaml")

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            FrontendConfig.from_yaml(path)


def test_shipped_config_matches_defaults():
    """config/frontend.yaml spells out the defaults."""
    path = Path(__file__).resolve().parent.parent / "config" / "frontend.yaml"
    assert FrontendConfig.from_yaml(path) == FrontendConfig()
