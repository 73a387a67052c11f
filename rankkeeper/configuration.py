"""
rankkeeper/configuration.py
User configuration: storage location, cloud endpoint and reorder tuning.
"""

import json
import os
import sys
from typing import Optional, Tuple
from pydantic import BaseModel, Field
from rankkeeper.logger import create_logger
from rankkeeper.constants import (
    CONFIG_FOLDER_NAME,
    CONFIG_FILE_NAME,
    DATA_FOLDER_DEFAULT,
    STORE_FILE_NAME,
    CLOUD_REQUEST_TIMEOUT,
    SCORE_EPSILON,
    TIE_BREAK_STEP,
    TIE_BREAK_SIGMA_FACTOR,
    EDGE_PLACEMENT_OFFSET,
    DISTINCT_SCORE_FALLBACK_GAP,
    REFINEMENT_NEIGHBOR_COUNT,
    LEADERBOARD_SIZE_DEFAULT,
)

logger = create_logger()


class Settings(BaseModel):
    data_folder: str = DATA_FOLDER_DEFAULT
    store_file: str = STORE_FILE_NAME
    leaderboard_size: int = LEADERBOARD_SIZE_DEFAULT


class CloudSettings(BaseModel):
    enabled: bool = False
    base_url: str = ""
    api_key: str = ""
    timeout: int = CLOUD_REQUEST_TIMEOUT
    incremental: bool = False
    pull_interval: float = Field(default=0, ge=0)


class ReorderSettings(BaseModel):
    """Numeric constants used when a manual reorder has to break ties"""
    epsilon: float = Field(default=SCORE_EPSILON, gt=0)
    step: float = Field(default=TIE_BREAK_STEP, gt=0)
    sigma_factor: float = Field(default=TIE_BREAK_SIGMA_FACTOR, gt=0, le=1)
    edge_offset: float = Field(default=EDGE_PLACEMENT_OFFSET, gt=0)
    fallback_gap: float = Field(default=DISTINCT_SCORE_FALLBACK_GAP, gt=0)
    refinement_neighbors: int = Field(default=REFINEMENT_NEIGHBOR_COUNT, ge=0)


class Configuration(BaseModel):
    settings: Settings = Field(default_factory=Settings)
    cloud: CloudSettings = Field(default_factory=CloudSettings)
    reorder: ReorderSettings = Field(default_factory=ReorderSettings)

    @property
    def store_path(self) -> str:
        return os.path.join(self.settings.data_folder, self.settings.store_file)


def get_config_path() -> str:
    """Return the per-user configuration file location for the current platform"""
    if sys.platform == "win32":
        base = os.environ.get("APPDATA", os.path.expanduser("~"))
    elif sys.platform == "darwin":
        base = os.path.expanduser("~/Library/Application Support")
    else:
        base = os.path.expanduser("~/.config")

    folder = os.path.join(base, CONFIG_FOLDER_NAME)
    if not os.path.exists(folder):
        try:
            os.makedirs(folder)
        except OSError as error:
            logger.error(f"Unable to create configuration folder {folder}: {error}")
    return os.path.join(folder, CONFIG_FILE_NAME)


def read_configuration(file_location: Optional[str] = None) -> Tuple[Configuration, bool]:
    """Read the configuration file; returns defaults and False when it is missing or invalid"""
    file_location = file_location or get_config_path()
    try:
        with open(file_location, "r", encoding="utf-8") as data:
            config_data = json.load(data)
        return Configuration.model_validate(config_data), True
    except FileNotFoundError:
        logger.info(f"No configuration found at {file_location}, using defaults")
    except (OSError, ValueError) as error:
        logger.error(f"Failed to read configuration {file_location}: {error}")
    return Configuration(), False


def write_configuration(config: Configuration, file_location: Optional[str] = None) -> bool:
    file_location = file_location or get_config_path()
    try:
        with open(file_location, "w", encoding="utf-8") as file:
            json.dump(config.model_dump(), file, indent=4)
        return True
    except (OSError, TypeError) as error:
        logger.error(f"Failed to write configuration {file_location}: {error}")
        return False


def reset_configuration(file_location: Optional[str] = None) -> bool:
    return write_configuration(Configuration(), file_location)
