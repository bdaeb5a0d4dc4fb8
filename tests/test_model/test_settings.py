from dataclasses import FrozenInstanceError, replace

import numpy as np
import pytest
import yaml

from awes_kps4.exceptions import ConfigurationError
from awes_kps4.setup.settings import DRAG_CORR, Settings, load_config, load_settings, validate_config


def test_load_settings_from_yaml(config_path):
    settings = load_settings(config_path)
    assert settings.segments == 6
    assert settings.winch_model == "AsyncMachine"
    assert settings.alpha_cl == Settings().alpha_cl
    assert settings == Settings()


def test_load_settings_with_overrides(config_path):
    settings = load_settings(config_path, segments=4, alpha_zero=8.8)
    assert settings.segments == 4
    assert settings.alpha_zero == 8.8


def test_load_config_missing_section(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text(yaml.safe_dump({"system": {"segments": 6}}))
    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_validate_config():
    assert not validate_config(None)
    assert not validate_config({"system": {}})


def test_from_dict_ignores_unknown_keys():
    settings = Settings.from_dict({"system": {"segments": 3, "solver": "DFBDF"}, "kite": {"mass": 10.0}})
    assert settings.segments == 3
    assert settings.mass == 10.0


def test_settings_are_immutable(settings):
    with pytest.raises(FrozenInstanceError):
        settings.segments = 3
    assert replace(settings, segments=3).segments == 3


@pytest.mark.parametrize("overrides", [
    {"segments": 0},
    {"l_tether": 0.0},
    {"version": 4},
    {"mass": -1.0},
    {"d_tether": 0.0},
    {"cl_list": (0.0, 1.0)},
])
def test_invalid_settings(overrides):
    with pytest.raises(ConfigurationError):
        Settings(**overrides)


def test_configuration_error_is_value_error():
    with pytest.raises(ValueError):
        Settings(segments=0)


@pytest.mark.parametrize("version, expected", [
    (1, 0.011),
    (2, 724.0 * np.pi * 0.002**2),
    (3, 724.0 * np.pi * 0.002**2),
])
def test_mass_per_meter(version, expected):
    assert np.isclose(Settings(version=version).mass_per_meter, expected)


def test_drag_correction():
    assert Settings(version=2).drag_corr == DRAG_CORR
    assert Settings(version=3).drag_corr == 1.0
