import pytest
import json
import os
import sys
from unittest.mock import patch
from pydantic import ValidationError

from rankkeeper.configuration import (
    read_configuration,
    write_configuration,
    reset_configuration,
    Configuration,
    ReorderSettings,
    get_config_path,
)


@pytest.fixture
def example_configuration():
    config = Configuration()
    config.cloud.enabled = True
    config.cloud.base_url = "https://example.test/functions"
    config.reorder.step = 2e-5
    config.settings.leaderboard_size = 10
    return config


def test_read_configuration_existing_file(tmp_path, example_configuration):
    file_location = tmp_path / "config.json"
    with open(file_location, "w") as f:
        json.dump(example_configuration.model_dump(), f)

    config, success = read_configuration(file_location)

    assert success is True
    assert config == example_configuration


def test_read_configuration_nonexistent_file(tmp_path):
    config, success = read_configuration(tmp_path / "nonexistent.json")

    assert success is False
    assert config == Configuration()


def test_read_configuration_invalid_values(tmp_path):
    file_location = tmp_path / "config.json"
    with open(file_location, "w") as f:
        json.dump({"reorder": {"sigma_factor": 2.0}}, f)

    config, success = read_configuration(file_location)

    assert success is False
    assert config == Configuration()


def test_write_configuration(tmp_path, example_configuration):
    file_location = tmp_path / "config.json"

    success = write_configuration(example_configuration, file_location)

    assert success is True
    with open(file_location, "r") as f:
        written_config = json.load(f)
    assert written_config == example_configuration.model_dump()


def test_reset_configuration(tmp_path, example_configuration):
    file_location = tmp_path / "config.json"
    write_configuration(example_configuration, file_location)

    reset_configuration(file_location)

    config, success = read_configuration(file_location)
    assert success is True
    assert config == Configuration()


def test_reorder_defaults():
    settings = ReorderSettings()
    assert settings.epsilon == 1e-6
    assert settings.step == 1e-5
    assert settings.sigma_factor == 0.9999
    assert settings.edge_offset == 0.001
    assert settings.fallback_gap == 1.0
    with pytest.raises(ValidationError):
        ReorderSettings(step=0)


def test_store_path_joins_data_folder(tmp_path):
    config = Configuration()
    config.settings.data_folder = str(tmp_path)
    assert config.store_path == os.path.join(str(tmp_path), "ratings_store.json")


@patch("rankkeeper.configuration.os.makedirs")
@patch("rankkeeper.configuration.os.path.exists", return_value=True)
def test_get_config_path_linux(mock_exists, mock_makedirs):
    with patch.object(sys, "platform", "linux"):
        path = get_config_path()
    assert path.endswith(os.path.join(".config", "RankKeeper", "config.json"))
    mock_makedirs.assert_not_called()


@patch("rankkeeper.configuration.os.makedirs")
@patch("rankkeeper.configuration.os.path.exists", return_value=False)
def test_get_config_path_windows_creates_folder(mock_exists, mock_makedirs):
    with patch.object(sys, "platform", "win32"), patch.dict(
        os.environ, {"APPDATA": os.path.join("C:", "AppData")}
    ):
        path = get_config_path()
    assert path == os.path.join("C:", "AppData", "RankKeeper", "config.json")
    mock_makedirs.assert_called_once()
