"""Decoding of Yamcs engineering values and limit annotations."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .core.models import TelemetryPoint


class ValueKind(str, Enum):
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    UINT32 = "UINT32"
    SINT32 = "SINT32"
    UINT64 = "UINT64"
    SINT64 = "SINT64"
    BOOLEAN = "BOOLEAN"
    TIMESTAMP = "TIMESTAMP"
    STRING = "STRING"
    ENUMERATED = "ENUMERATED"
    BINARY = "BINARY"
    AGGREGATE = "AGGREGATE"
    ARRAY = "ARRAY"


# Field of the JSON value object that carries the payload for each kind.
_PAYLOAD_FIELDS: Dict[ValueKind, str] = {
    ValueKind.FLOAT: "floatValue",
    ValueKind.DOUBLE: "doubleValue",
    ValueKind.UINT32: "uint32Value",
    ValueKind.SINT32: "sint32Value",
    ValueKind.UINT64: "uint64Value",
    ValueKind.SINT64: "sint64Value",
    ValueKind.BOOLEAN: "booleanValue",
    ValueKind.TIMESTAMP: "stringValue",
    ValueKind.STRING: "stringValue",
    ValueKind.ENUMERATED: "stringValue",
    ValueKind.BINARY: "binaryValue",
    ValueKind.AGGREGATE: "aggregateValue",
    ValueKind.ARRAY: "arrayValue",
}

_INTEGER_KINDS = frozenset(
    {ValueKind.UINT32, ValueKind.SINT32, ValueKind.UINT64, ValueKind.SINT64}
)


@dataclass(frozen=True, slots=True)
class EngValue:
    """Tagged engineering value: ``kind`` selects how ``payload`` is read."""

    kind: ValueKind
    payload: Any

    @classmethod
    def from_json(cls, raw: Mapping[str, Any]) -> "EngValue":
        """Build from a Yamcs ``Value`` JSON object.

        Raises:
            ValueError: If the type tag is missing or unknown.
        """

        tag = raw.get("type")
        if tag is None:
            raise ValueError("Value object has no type tag")

        kind = ValueKind(tag)
        payload = raw.get(_PAYLOAD_FIELDS[kind])
        if kind is ValueKind.TIMESTAMP and payload is None:
            payload = raw.get("timestampValue")
        return cls(kind=kind, payload=payload)

    def to_python(self) -> Any:
        kind = self.kind
        payload = self.payload

        if payload is None:
            return None
        if kind in _INTEGER_KINDS:
            # 64-bit integers arrive as JSON strings
            return int(payload)
        if kind in (ValueKind.FLOAT, ValueKind.DOUBLE):
            return float(payload)
        if kind is ValueKind.BOOLEAN:
            return bool(payload)
        if kind is ValueKind.BINARY:
            return base64.b64decode(payload)
        if kind is ValueKind.ARRAY:
            return [EngValue.from_json(item).to_python() for item in payload]
        if kind is ValueKind.AGGREGATE:
            names = payload.get("name", [])
            values = payload.get("value", [])
            return {
                name: EngValue.from_json(value).to_python()
                for name, value in zip(names, values)
            }
        return payload


def get_value(raw: Optional[Mapping[str, Any]]) -> Any:
    """Return the Python value carried by a Yamcs ``engValue`` object."""

    if not raw:
        return None
    return EngValue.from_json(raw).to_python()


def add_limit_information(sample: Mapping[str, Any], point: TelemetryPoint) -> None:
    """Copy alarm and range annotations from ``sample`` onto ``point``."""

    monitoring_result = sample.get("monitoringResult")
    if monitoring_result:
        point.monitoring_result = str(monitoring_result)

    range_condition = sample.get("rangeCondition")
    if range_condition:
        point.range_condition = str(range_condition)
