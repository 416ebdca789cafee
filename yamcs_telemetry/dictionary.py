"""Builds the object catalog ("dictionary") from the Yamcs MDB.

Space systems become folders and parameters become telemetry leaves. Aggregate
parameters are expanded into a folder holding one child per member, to any
depth. The tree is built once, on the first lookup, and cached for the life
of the provider.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Set

from . import constants
from .adapters.mdb import MdbClient
from .core.models import Node, TelemetryMetadata, ValueDescriptor
from .identifiers import SEPARATOR, to_identifier

LOGGER = logging.getLogger(__name__)

ROOT_QUALIFIED_NAME = "/"


@dataclass(slots=True)
class _Entry:
    identifier: str
    name: str
    kind: str
    composition: Optional[List[str]] = None
    telemetry: Optional[TelemetryMetadata] = None
    location: Optional[str] = None

    def freeze(self) -> Node:
        return Node(
            identifier=self.identifier,
            name=self.name,
            kind=self.kind,
            composition=tuple(self.composition) if self.composition is not None else None,
            telemetry=self.telemetry,
            location=self.location,
        )


@dataclass(slots=True)
class _Build:
    entries: Dict[str, _Entry] = field(default_factory=dict)

    def add(self, entry: _Entry) -> _Entry:
        self.entries[entry.identifier] = entry
        return entry


def telemetry_metadata(kind: str) -> TelemetryMetadata:
    """Value and timestamp field descriptors for a leaf of ``kind``."""

    if kind == constants.STRING_TYPE:
        value = ValueDescriptor(key="value", name="Value")
    elif kind == constants.IMAGE_TYPE:
        value = ValueDescriptor(
            key="value",
            name="Value",
            format="image",
            hints=MappingProxyType({"image": 1}),
        )
    else:
        value = ValueDescriptor(
            key="value", name="Value", hints=MappingProxyType({"range": 1})
        )

    timestamp = ValueDescriptor(
        key="utc",
        name="Timestamp",
        source="timestamp",
        format="iso",
        hints=MappingProxyType({"domain": 1}),
    )
    return TelemetryMetadata(value=value, timestamp=timestamp)


def is_suppressed(parameter: Mapping[str, Any]) -> bool:
    return any(
        alias.get("namespace") == constants.OMIT_ALIAS_NAMESPACE
        for alias in parameter.get("alias") or []
    )


def parameter_kind(parameter: Mapping[str, Any]) -> str:
    """Classify a non-aggregate parameter into a telemetry node kind."""

    for alias in parameter.get("alias") or []:
        if alias.get("namespace") == constants.TYPE_ALIAS_NAMESPACE:
            kind = constants.TYPE_ALIASES.get(str(alias.get("name", "")).lower())
            if kind is not None:
                return kind
            LOGGER.debug(
                "Ignoring unknown type alias %r on %s",
                alias.get("name"),
                parameter.get("qualifiedName"),
            )

    # Built-in Yamcs parameters carry no type information.
    parameter_type = parameter.get("type")
    if not parameter_type:
        return constants.TELEMETRY_TYPE
    if parameter_type.get("engType") in ("integer", "float"):
        return constants.TELEMETRY_TYPE
    return constants.STRING_TYPE


def display_name(record: Mapping[str, Any]) -> str:
    """Record name, or the last path segment of its qualified name."""

    name = record.get("name")
    if name:
        return str(name)
    return str(record.get("qualifiedName", "")).rsplit(SEPARATOR, 1)[-1]


def _is_aggregate(parameter: Mapping[str, Any]) -> bool:
    parameter_type = parameter.get("type")
    return bool(parameter_type) and parameter_type.get("engType") == "aggregate"


class ObjectProvider:
    """Answers catalog lookups from a lazily built, memoized dictionary."""

    def __init__(
        self,
        client: MdbClient,
        *,
        folder_name: str = constants.DEFAULT_FOLDER,
    ) -> None:
        self.client = client
        self.folder_name = folder_name
        self.namespace = constants.OBJECT_NAMESPACE

        self._dictionary: Optional[Mapping[str, Node]] = None
        self._build_task: Optional[asyncio.Task[Mapping[str, Node]]] = None

    @property
    def root_identifier(self) -> str:
        return constants.ROOT_KEY

    @property
    def is_built(self) -> bool:
        return self._dictionary is not None

    async def get_node(self, identifier: str) -> Optional[Node]:
        """Return the node for ``identifier`` or ``None`` if it is unknown.

        Raises:
            UpstreamFetchError: If the dictionary has to be built and the
                build fails.
        """

        dictionary = await self.get_dictionary()
        return dictionary.get(identifier)

    async def get_dictionary(self) -> Mapping[str, Node]:
        if self._dictionary is not None:
            return self._dictionary

        if self._build_task is None:
            self._build_task = asyncio.create_task(self._build())
            self._build_task.add_done_callback(self._on_build_done)

        # Callers share the task; shielding keeps one caller's cancellation
        # from aborting the build for everyone else.
        return await asyncio.shield(self._build_task)

    def _on_build_done(self, task: asyncio.Task[Mapping[str, Node]]) -> None:
        self._build_task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning("Telemetry dictionary build failed: %s", exc)
            return
        self._dictionary = task.result()

    async def _build(self) -> Mapping[str, Node]:
        space_systems = await self.client.fetch_space_systems()
        parameters = await self.client.fetch_parameters()

        build = _Build()
        root = build.add(
            _Entry(
                identifier=constants.ROOT_KEY,
                name=self.folder_name,
                kind=constants.FOLDER_TYPE,
                composition=[],
                location=constants.ROOT_LOCATION,
            )
        )

        known = {space_system["qualifiedName"] for space_system in space_systems}
        for space_system in sorted(space_systems, key=display_name):
            self._add_space_system(build, root, space_system, known)

        for parameter in parameters:
            self._add_parameter_object(build, parameter)

        LOGGER.info(
            "Built telemetry dictionary with %d objects from %d space systems and %d parameters",
            len(build.entries),
            len(space_systems),
            len(parameters),
        )
        return MappingProxyType(
            {identifier: entry.freeze() for identifier, entry in build.entries.items()}
        )

    def _add_space_system(
        self,
        build: _Build,
        root: _Entry,
        space_system: Mapping[str, Any],
        known: Set[str],
    ) -> None:
        qualified_name = space_system["qualifiedName"]
        if qualified_name == ROOT_QUALIFIED_NAME:
            return

        # Only subs present in the fetched collection.
        composition = [
            to_identifier(sub["qualifiedName"])
            for sub in sorted(space_system.get("sub") or [], key=display_name)
            if sub["qualifiedName"] in known
        ]

        identifier = to_identifier(qualified_name)
        build.add(
            _Entry(
                identifier=identifier,
                name=display_name(space_system),
                kind=constants.FOLDER_TYPE,
                composition=composition,
            )
        )

        # Top-level: the leading slash is the only separator.
        if qualified_name.rfind(SEPARATOR) == 0:
            root.composition.append(identifier)

    def _add_parameter_object(self, build: _Build, parameter: Mapping[str, Any]) -> None:
        if is_suppressed(parameter):
            return

        qualified_name = parameter["qualifiedName"]
        separator_index = qualified_name.rfind(SEPARATOR)
        parent_name = qualified_name[:separator_index] if separator_index > 0 else ""
        parent = build.entries.get(to_identifier(parent_name)) if parent_name else None
        if parent is None or parent.composition is None:
            # TODO: confirm with the MDB maintainers whether orphans point at
            # missing space systems or should be attached to the root.
            LOGGER.debug("Dropping parameter %s: no parent folder", qualified_name)
            return

        self._add_parameter(build, parameter, qualified_name, parent, "")

    def _add_parameter(
        self,
        build: _Build,
        parameter: Mapping[str, Any],
        qualified_name: str,
        parent: _Entry,
        prefix: str,
    ) -> None:
        name = prefix + display_name(parameter)
        aggregate = _is_aggregate(parameter)

        if aggregate:
            entry = _Entry(
                identifier=to_identifier(qualified_name),
                name=name,
                kind=constants.FOLDER_TYPE,
                composition=[],
            )
        else:
            kind = parameter_kind(parameter)
            entry = _Entry(
                identifier=to_identifier(qualified_name),
                name=name,
                kind=kind,
                telemetry=telemetry_metadata(kind),
            )

        build.add(entry)
        parent.composition.append(entry.identifier)

        if aggregate:
            for member in parameter["type"].get("member") or []:
                self._add_parameter(
                    build,
                    member,
                    f"{qualified_name}.{member['name']}",
                    entry,
                    name + "_",
                )
