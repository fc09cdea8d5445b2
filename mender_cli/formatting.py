"""Render command results for the terminal."""

from __future__ import annotations

import json
from typing import Any, Mapping

from .models import Device


def format_token(token: str) -> str:
    return f"Token {token}"


def format_deployed(count: int) -> str:
    noun = "device" if count == 1 else "devices"
    return f"Deployed to {count} {noun}"


def format_device_id(device_id: str) -> str:
    return f"Mender id is: {device_id}"


def format_device_info(payload: Mapping[str, Any], *, as_json: bool = False) -> str:
    """Render a device record, one attribute per line sorted by name."""

    if as_json:
        return json.dumps(payload, indent=2, sort_keys=True)

    device = Device.from_payload(payload)
    lines = [f"Device {device.id}"]
    if device.updated_ts:
        lines.append(f"  updated_ts = {device.updated_ts}")
    for attribute in sorted(device.attributes, key=lambda item: item.name):
        value = attribute.value
        if isinstance(value, (list, dict)):
            value = json.dumps(value, sort_keys=True)
        lines.append(f"  {attribute.name} = {value}")
    return "\n".join(lines)


def format_artifact_counts(counts: Mapping[str, int]) -> str:
    if not counts:
        return "No devices found"

    width = max(len(name) for name in [*counts, "total"])
    lines = [f"{name + ':':<{width + 1}} {count}" for name, count in counts.items()]
    lines.append(f"{'total:':<{width + 1}} {sum(counts.values())}")
    return "\n".join(lines)
