#!/usr/bin/env python3

import logging
import math
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

import yaml

from common.data_models import GeoPosition

logger = logging.getLogger(__name__)

BACKEND_URL_ENV = "SKYSHIELD_BACKEND_URL"
DETECTION_RADIUS_RANGE = (1000.0, 100000.0)  # meters


@dataclass
class C2Config:
    """Settings consumed by the tracking core."""
    backend_url: str = "http://localhost:3001"
    source_id: str = "SKYSHIELD-C2-01"
    initial_position: GeoPosition = field(default_factory=lambda: GeoPosition(lat=52.52, lng=13.4))
    detection_radius: float = 5000.0  # meters
    report_interval: float = 5.0  # seconds
    geolocation_timeout: float = 5.0  # seconds
    report_on_override: bool = False
    reconnect_delay: float = 1.0  # seconds
    reconnect_delay_max: float = 5.0  # seconds
    connect_timeout: float = 5.0  # seconds
    ring_segments: int = 64

    def __post_init__(self):
        for name in ("report_interval", "geolocation_timeout", "reconnect_delay",
                     "reconnect_delay_max", "connect_timeout", "detection_radius"):
            value = _coerce(name, getattr(self, name), float)
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{name} must be positive and finite, got {value}")
            setattr(self, name, value)

        self.ring_segments = _coerce("ring_segments", self.ring_segments, int)
        if self.ring_segments < 3:
            raise ValueError(f"ring_segments must be at least 3, got {self.ring_segments}")

        low, high = DETECTION_RADIUS_RANGE
        if not low <= self.detection_radius <= high:
            raise ValueError(f"detection_radius must be within [{low:.0f}, {high:.0f}] m, "
                             f"got {self.detection_radius}")

        if not isinstance(self.report_on_override, bool):
            raise ValueError(f"report_on_override must be true or false, got {self.report_on_override!r}")
        if not isinstance(self.initial_position, GeoPosition):
            raise ValueError("initial_position must be a GeoPosition")


def _coerce(name: str, value: Any, kind: type):
    # YAML booleans would otherwise pass as 1/0
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be a number, got {value!r}") from None


def load_config(config_path: str = "c2_config.yaml") -> C2Config:
    config_file = Path(config_path)
    data: Dict[str, Any] = {}

    if not config_file.exists():
        logger.warning(f"Config file {config_path} not found, using defaults")
    else:
        try:
            with open(config_file, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config file {config_path}: {e}")
            data = {}

        if not isinstance(data, dict):
            logger.error(f"Config file {config_path} must contain a mapping, using defaults")
            data = {}

    return create_config(data)


def create_config(data: Dict[str, Any]) -> C2Config:
    known = {f.name for f in fields(C2Config)}
    settings = {}

    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        settings[key] = value

    if 'initial_position' in settings:
        pos = settings['initial_position']
        try:
            settings['initial_position'] = GeoPosition(lat=float(pos['lat']), lng=float(pos['lng']))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"initial_position must have numeric lat and lng, got {pos!r}") from e

    # Environment takes precedence over the file
    env_url = os.environ.get(BACKEND_URL_ENV)
    if env_url:
        settings['backend_url'] = env_url

    return C2Config(**settings)
