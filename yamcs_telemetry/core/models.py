"""Domain models for catalog nodes and telemetry samples."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .. import constants


def _frozen_hints(hints: Optional[Mapping[str, int]] = None) -> Mapping[str, int]:
    return MappingProxyType(dict(hints or {}))


@dataclass(frozen=True, slots=True)
class ValueDescriptor:
    key: str
    name: str
    source: Optional[str] = None
    format: Optional[str] = None
    hints: Mapping[str, int] = field(default_factory=_frozen_hints)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"key": self.key, "name": self.name}
        if self.source is not None:
            payload["source"] = self.source
        if self.format is not None:
            payload["format"] = self.format
        payload["hints"] = dict(self.hints)
        return payload


@dataclass(frozen=True, slots=True)
class TelemetryMetadata:
    value: ValueDescriptor
    timestamp: ValueDescriptor

    @property
    def values(self) -> Tuple[ValueDescriptor, ValueDescriptor]:
        return (self.value, self.timestamp)

    def as_dict(self) -> Dict[str, Any]:
        return {"values": [descriptor.as_dict() for descriptor in self.values]}


@dataclass(frozen=True, slots=True)
class Node:
    """Read-only catalog entry handed out by the object provider."""

    identifier: str
    name: str
    kind: str
    composition: Optional[Tuple[str, ...]] = None
    telemetry: Optional[TelemetryMetadata] = None
    location: Optional[str] = None
    namespace: str = constants.OBJECT_NAMESPACE

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "identifier": {"key": self.identifier, "namespace": self.namespace},
            "name": self.name,
            "type": self.kind,
        }
        if self.location is not None:
            payload["location"] = self.location
        if self.composition is not None:
            payload["composition"] = [
                {"key": key, "namespace": self.namespace} for key in self.composition
            ]
        if self.telemetry is not None:
            payload["telemetry"] = self.telemetry.as_dict()
        return payload


@dataclass(slots=True)
class TelemetryPoint:
    """A decoded realtime sample for one parameter."""

    id: str
    timestamp: Optional[str]
    value: Any
    monitoring_result: Optional[str] = None
    range_condition: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "value": self.value,
        }
        if self.monitoring_result is not None:
            payload["monitoringResult"] = self.monitoring_result
        if self.range_condition is not None:
            payload["rangeCondition"] = self.range_condition
        return payload
