"""
Tests for the JSON configuration layer
"""
import json
import os

import pytest

from hdrfix.config import Config, _validate_config, get_config, save_config, validate_config
from hdrfix.errors import InvalidConfigurationError


def write_json(directory, data, name="config.json"):
    path = os.path.join(directory, name)
    with open(path, 'w') as f:
        json.dump(data, f)
    return path


class TestConfigDefaults:

    def test_defaults_are_valid(self):
        assert _validate_config(Config()) == []

    def test_default_values(self):
        config = Config()
        assert config.TONE_MAP == "reinhard"
        assert config.HDR_MAX == "100%"
        assert config.COLOR_MAP == "desaturate"
        assert config.OUTPUT_SUFFIX == "-sdr.png"
        assert config.WATCH_EXTENSIONS == [".jxr"]

    @pytest.mark.parametrize("overrides", [
        {"WORKERS": -1},
        {"WORKERS": 2.5},
        {"WATCH_STABLE_TIMEOUT": 0},
        {"OUTPUT_SUFFIX": "-sdr"},
        {"WATCH_EXTENSIONS": []},
        {"WATCH_EXTENSIONS": ["jxr"]},
        {"SATURATION": -1.0},
    ])
    def test_invalid_values_reported(self, overrides):
        assert _validate_config(Config(**overrides))


class TestWithOverrides:

    def test_none_values_ignored(self):
        config = Config(EXPOSURE=1.0)
        assert config.with_overrides(EXPOSURE=None, TONE_MAP=None) is config

    def test_values_replaced(self):
        config = Config().with_overrides(EXPOSURE=-1.5, HDR_MAX="99.9%")
        assert config.EXPOSURE == -1.5
        assert config.HDR_MAX == "99.9%"
        assert Config().EXPOSURE == 0.0

    def test_unknown_option_rejected(self):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            Config().with_overrides(BRIGHTNESS=2)
        assert exc_info.value.field == "BRIGHTNESS"


class TestGetConfig:

    def test_load_from_file(self, temp_dir):
        path = write_json(temp_dir, {"EXPOSURE": 1.0, "TONE_MAP": "reinhard-rgb", "HDR_MAX": "1000"})
        config = get_config(path)
        assert config.EXPOSURE == 1.0
        assert config.TONE_MAP == "reinhard-rgb"
        assert config.HDR_MAX == "1000"
        assert config.COLOR_MAP == "desaturate"

    def test_unknown_keys_ignored(self, temp_dir):
        path = write_json(temp_dir, {"SATURATION": 1.5, "NOT_AN_OPTION": True})
        config = get_config(path)
        assert config.SATURATION == 1.5
        assert not hasattr(config, "NOT_AN_OPTION")

    @pytest.mark.parametrize("data", [
        {"PRE_GAMMA": -1},
        {"LEVELS_MIN": "0.8", "LEVELS_MAX": "0.2"},
        {"WORKERS": -1},
        {"TONE_MAP": "aces"},
    ])
    def test_invalid_file_falls_back_to_defaults(self, temp_dir, data):
        assert get_config(write_json(temp_dir, data)) == Config()

    def test_malformed_json_falls_back_to_defaults(self, temp_dir):
        path = os.path.join(temp_dir, "broken.json")
        with open(path, 'w') as f:
            f.write("{not json")
        assert get_config(path) == Config()

    def test_missing_file_gives_defaults(self, temp_dir):
        assert get_config(os.path.join(temp_dir, "missing.json")) == Config()

    def test_save_and_reload(self, temp_dir):
        original = Config(EXPOSURE=0.5, HDR_MAX="99.5%", LEVELS_MAX="98%",
                          WATCH_EXTENSIONS=[".jxr", ".exr"], WORKERS=3)
        path = os.path.join(temp_dir, "nested", "saved.json")
        assert save_config(original, path)
        assert get_config(path) == original


class TestValidateConfig:

    def test_valid_config_returned(self):
        config = Config(WORKERS=4)
        assert validate_config(config) is config

    def test_errors_raised_together(self):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            validate_config(Config(WORKERS=-1, WATCH_STABLE_TIMEOUT=0))
        assert "WORKERS" in str(exc_info.value)
        assert "WATCH_STABLE_TIMEOUT" in str(exc_info.value)
