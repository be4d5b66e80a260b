"""Load synchronizer settings from config/settings.yaml and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from listing_sync.log import get_logger
from listing_sync.models import Coordinate

log = get_logger(__name__)

load_dotenv()

CONFIG_DIR: Path = Path(__file__).resolve().parent.parent / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"

DEFAULT_GEOLOCATION_URL = "https://ipapi.co/json/"


@dataclass
class Settings:
    nearby_radius_km: float = 50.0
    show_all: str = "All"
    category_field: str = "category"
    legacy_name_join: bool = False
    listings_collection: str = "jobPostings"
    organizations_collection: str = "companies"
    profiles_collection: str = "artifacts"
    applications_collection: str = "jobApplications"
    listings_order_by: str = "createdAt"
    api_url: str = ""
    api_token: str = ""
    http_timeout: float = 15.0
    geolocation_url: str = DEFAULT_GEOLOCATION_URL
    locality_coordinates: dict[str, Coordinate] = field(default_factory=dict)


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        log.warning("Ignoring %s: expected a mapping at top level", path.name)
        return {}
    return data


def _parse_localities(raw: Any) -> dict[str, Coordinate]:
    """``{"Mumbai": [19.076, 72.8777]}`` → ``{"Mumbai": Coordinate(...)}``."""
    table: dict[str, Coordinate] = {}
    if not isinstance(raw, dict):
        return table
    for name, pair in raw.items():
        try:
            lat, lon = pair
            table[str(name)] = Coordinate(float(lat), float(lon))
        except (TypeError, ValueError):
            log.warning("Skipping locality %r: expected [lat, lon], got %r", name, pair)
    return table


def load_settings(path: Path | None = None) -> Settings:
    """Build settings from YAML (optional) with environment overrides on top."""
    data = _read_yaml(path or SETTINGS_PATH)
    collections = data.get("collections") or {}
    if not isinstance(collections, dict):
        log.warning("Ignoring 'collections': expected a mapping")
        collections = {}

    settings = Settings(
        nearby_radius_km=float(data.get("nearby_radius_km", 50.0)),
        show_all=str(data.get("show_all", "All")),
        category_field=str(data.get("category_field", "category")),
        legacy_name_join=bool(data.get("legacy_name_join", False)),
        listings_collection=collections.get("listings", "jobPostings"),
        organizations_collection=collections.get("organizations", "companies"),
        profiles_collection=collections.get("profiles", "artifacts"),
        applications_collection=collections.get("applications", "jobApplications"),
        listings_order_by=str(data.get("listings_order_by", "createdAt")),
        api_url=str(data.get("api_url", "")),
        http_timeout=float(data.get("http_timeout", 15.0)),
        geolocation_url=str(data.get("geolocation_url", DEFAULT_GEOLOCATION_URL)),
        locality_coordinates=_parse_localities(data.get("locality_coordinates")),
    )

    if get_env("NEARBY_RADIUS_KM"):
        settings.nearby_radius_km = float(get_env("NEARBY_RADIUS_KM"))
    if get_env("LISTING_SYNC_API_URL"):
        settings.api_url = get_env("LISTING_SYNC_API_URL")
    if get_env("LISTING_SYNC_API_TOKEN"):
        settings.api_token = get_env("LISTING_SYNC_API_TOKEN")
    if get_env("HTTP_TIMEOUT"):
        settings.http_timeout = float(get_env("HTTP_TIMEOUT"))
    if get_env("GEOLOCATION_URL"):
        settings.geolocation_url = get_env("GEOLOCATION_URL")

    return settings
