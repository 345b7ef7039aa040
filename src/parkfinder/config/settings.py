# src/parkfinder/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/parkfinder/config/defaults.yaml`, then optionally overridden by:
- environment variables (e.g., `PARKFINDER_LOG_LEVEL`, `SOCRATA_APP_TOKEN`)
- an external YAML file via `PARKFINDER_CONFIG_PATH`

Design rule:
- Dataset paths, remote resource ids and initial filter values live in YAML,
  not hard-coded in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal
from parkfinder.core.env import load_dotenv_if_present

import yaml
from pydantic import BaseModel, Field


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `parkfinder.config`."""
    text = resources.files("parkfinder.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "ParkFinder"
    http_timeout_seconds: float = 15
    log_level: str = "INFO"


class CacheSettings(BaseModel):
    enabled: bool = True
    dir: str = ".cache/parkfinder"
    default_ttl_seconds: int = 60 * 60 * 24


class LocalFilesSettings(BaseModel):
    bays: str = "data/bays.geojson"
    sensors: str = "data/sensors_2019_09_27_0800.json"
    disability: str = "data/restrictions_disability_only.json"
    paystay_segments: str = "data/paystay_segments.json"
    paystay_restrictions: str = "data/paystay_restrictions_fri_0800.json"


class DataSettings(BaseModel):
    mode: Literal["local", "remote"] = "local"
    local: LocalFilesSettings = Field(default_factory=LocalFilesSettings)
    # Point in time used to reconstruct occupancy from the historical sensor feed.
    sensor_snapshot_at: str = "2019-09-27T08:00:00.000"
    # `historical` replays the snapshot above; `live` uses the current sensor feed.
    occupancy_feed: Literal["historical", "live"] = "historical"


class SocrataSettings(BaseModel):
    base_url: str = "https://data.melbourne.vic.gov.au/resource"
    app_token: str | None = None
    page_size: int = 50_000
    cache_ttl_seconds: int = 60 * 60 * 24
    datasets: dict[str, str] = Field(default_factory=dict)
    # Optional SoQL `$where` clause per dataset name.
    where: dict[str, str] = Field(default_factory=dict)


class GeocoderSettings(BaseModel):
    base_url: str = "https://nominatim.openstreetmap.org/search"
    country_codes: str = "au"
    # left, top, right, bottom
    viewbox: tuple[float, float, float, float] = (144.93366, -37.79264, 144.97670, -37.82391)
    bounded: bool = True
    cache_ttl_seconds: int = 60 * 60 * 24 * 7


class DefaultCriteriaSettings(BaseModel):
    free_only: bool = False
    accessible_only: bool = False
    radius_range: tuple[float, float] = (0.0, 1.0)
    cost_range: tuple[int, int] = (0, 600)
    duration_minimum: int = 120
    reference_location: tuple[float, float] = (-37.810513, 144.962840)


class SelectionSettings(BaseModel):
    max_match_distance_m: float = Field(25.0, ge=0)


class ControllerSettings(BaseModel):
    min_duration_hours: int = Field(1, ge=1)
    duration_step_hours: int = Field(1, ge=1)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    data: DataSettings = Field(default_factory=DataSettings)
    socrata: SocrataSettings = Field(default_factory=SocrataSettings)
    geocoder: GeocoderSettings = Field(default_factory=GeocoderSettings)
    defaults: DefaultCriteriaSettings = Field(default_factory=DefaultCriteriaSettings)
    selection: SelectionSettings = Field(default_factory=SelectionSettings)
    controller: ControllerSettings = Field(default_factory=ControllerSettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small.
    """
    load_dotenv_if_present()
    data = dict(data)
    cache_dir = os.getenv("PARKFINDER_CACHE_DIR")
    if cache_dir:
        data.setdefault("cache", {})["dir"] = cache_dir

    log_level = os.getenv("PARKFINDER_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    data_mode = os.getenv("PARKFINDER_DATA_MODE")
    if data_mode:
        data.setdefault("data", {})["mode"] = data_mode.strip().lower()

    app_token = os.getenv("SOCRATA_APP_TOKEN")
    if app_token:
        data.setdefault("socrata", {})["app_token"] = app_token

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("PARKFINDER_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
