"""Advisory plausibility checks over decoded payloads.

Nothing here raises or modifies the payload; each check returns a list of
human-readable warnings, empty when nothing looked wrong.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from .messages import (
    BasicId, Location, Message, OperatorID, UA_TYPE_LABELS,
    decode_horizontal_speed, decode_vertical_speed,
)

EARTH_RADIUS_M = 6_371_000

DEFAULT_OPERATOR_IDS = ("FAA12345", "NASA54321", "DOD98765")


@dataclass(frozen=True)
class ValidationConfig:
    reference_lat: float = 37.7749
    reference_lon: float = -122.4194
    max_distance_m: float = 1000.0
    max_horizontal_speed: float = 100.0
    max_vertical_speed: float = 50.0
    allowed_operator_ids: frozenset[str] = field(
        default_factory=lambda: frozenset(DEFAULT_OPERATOR_IDS))


DEFAULT_CONFIG = ValidationConfig()


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two points in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = (math.sin(dphi / 2) ** 2
         + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def validate_location(location: Location,
                      config: ValidationConfig = DEFAULT_CONFIG) -> list[str]:
    warnings: list[str] = []

    lat = location.latitude_raw * 1e-7
    lon = location.longitude_raw * 1e-7
    distance = haversine(config.reference_lat, config.reference_lon, lat, lon)
    if distance > config.max_distance_m:
        warnings.append(
            f"Drone is {distance:.2f} meters away from reference location, "
            "which is suspicious.")

    h_speed = decode_horizontal_speed(location.speed_horizontal,
                                      location.speed_multiplier)
    if h_speed > config.max_horizontal_speed:
        warnings.append(f"Horizontal speed of {h_speed:.2f} m/s is unusually high.")

    v_speed = decode_vertical_speed(location.speed_vertical)
    if v_speed > config.max_vertical_speed:
        warnings.append(f"Vertical speed of {v_speed:.2f} m/s is unusually high.")

    return warnings


def validate_basic_id(basic: BasicId,
                      config: ValidationConfig = DEFAULT_CONFIG) -> list[str]:
    warnings: list[str] = []
    if basic.ua_type not in UA_TYPE_LABELS:
        warnings.append(f"UA Type {basic.ua_type} is not valid.")
    if not basic.uas_id_text.strip():
        warnings.append("UAS ID is empty or invalid.")
    return warnings


def validate_operator_id(operator: OperatorID,
                         config: ValidationConfig = DEFAULT_CONFIG) -> list[str]:
    op_id = operator.operator_id_text.strip()
    if op_id not in config.allowed_operator_ids:
        return [f"Operator ID is not in the white list: {op_id}"]
    return []


_VALIDATORS = {
    Location: validate_location,
    BasicId: validate_basic_id,
    OperatorID: validate_operator_id,
}


def validate_payload(payload, config: ValidationConfig = DEFAULT_CONFIG) -> list[str]:
    """Run the check for this payload kind; kinds without checks give []."""
    validator = _VALIDATORS.get(type(payload))
    if validator is None:
        return []
    return validator(payload, config)


def validate_messages(messages: Iterable[Message],
                      config: ValidationConfig = DEFAULT_CONFIG) -> dict[str, list[str]]:
    """Collect warnings per payload kind, keyed by the payload class name.

    Only kinds that were present and checked appear in the mapping.
    """
    warnings: dict[str, list[str]] = defaultdict(list)
    for msg in messages:
        kind = type(msg.payload)
        if kind in _VALIDATORS:
            warnings[kind.__name__].extend(validate_payload(msg.payload, config))
    return dict(warnings)
