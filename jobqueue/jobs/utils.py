"""
Small helpers shared by producers and the worker.
"""

import json
import re
import uuid
from datetime import timedelta
from typing import Any

_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)([smhd]?)$", re.IGNORECASE)

_UNIT_SECONDS = {
    "": 1,
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 60 * 60 * 24,
}


def generate_job_id() -> str:
    """Generate a unique job identifier."""
    return str(uuid.uuid4())


def payload_size_bytes(payload: Any) -> int:
    """Size of the payload once serialized to JSON, in UTF-8 bytes."""
    return len(json.dumps(payload, default=str).encode("utf-8"))


def duration_to_seconds(duration: float | str | timedelta) -> float:
    """
    Parse a duration into seconds.

    Accepts a number of seconds, a ``timedelta``, or a string such as
    ``"30s"``, ``"5m"``, ``"1h"`` or ``"1d"``. A bare numeric string is
    read as seconds.

    Raises:
        ValueError: If the string form is not recognised.
    """
    if isinstance(duration, timedelta):
        return duration.total_seconds()
    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        return float(duration)

    match = _DURATION_PATTERN.match(str(duration).strip())
    if not match:
        raise ValueError(f'Invalid duration format: "{duration}"')

    value, unit = match.groups()
    return float(value) * _UNIT_SECONDS[unit.lower()]
