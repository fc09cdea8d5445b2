"""Typed views over the Mender API payloads used by the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


@dataclass(slots=True)
class InventoryAttribute:
    name: str
    value: Any
    scope: str = "inventory"

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "InventoryAttribute":
        return cls(
            name=str(payload.get("name", "")),
            value=payload.get("value"),
            scope=str(payload.get("scope") or "inventory"),
        )


@dataclass(slots=True)
class Device:
    """A device record as returned by the inventory service."""

    id: str
    attributes: list[InventoryAttribute] = field(default_factory=list)
    updated_ts: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Device":
        if not isinstance(payload, Mapping):
            raise ValueError(f"Device payload must be an object, got {type(payload).__name__}")
        try:
            device_id = str(payload["id"])
        except KeyError as exc:
            raise ValueError("Device payload is missing the 'id' field") from exc

        attributes = [
            InventoryAttribute.from_payload(item)
            for item in payload.get("attributes") or []
            if isinstance(item, Mapping)
        ]
        return cls(
            id=device_id,
            attributes=attributes,
            updated_ts=str(payload.get("updated_ts", "")),
        )

    def attribute(self, name: str, default: Optional[Any] = None) -> Any:
        """Return the value of the first attribute called ``name`` in any scope."""

        for attribute in self.attributes:
            if attribute.name == name:
                return attribute.value
        return default


@dataclass(slots=True)
class DeploymentRequest:
    name: str
    artifact_name: str
    devices: list[str]

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "artifact_name": self.artifact_name,
            "devices": list(self.devices),
        }
