"""Tests for the dictionary builder (ObjectProvider)."""

import asyncio
from typing import Any, Optional

import pytest

from yamcs_telemetry.adapters.mdb import UpstreamFetchError
from yamcs_telemetry.dictionary import ObjectProvider, parameter_kind, telemetry_metadata


class FakeMdbClient:
    """Serves canned MDB records and counts fetches."""

    def __init__(
        self,
        space_systems: Optional[list[dict[str, Any]]] = None,
        parameters: Optional[list[dict[str, Any]]] = None,
        *,
        fail: bool = False,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.space_systems = space_systems or []
        self.parameters = parameters or []
        self.fail = fail
        self.gate = gate
        self.space_system_calls = 0
        self.parameter_calls = 0

    async def fetch_space_systems(self) -> list[dict[str, Any]]:
        self.space_system_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise UpstreamFetchError("Simulated outage", url="http://mdb", status=503)
        return list(self.space_systems)

    async def fetch_parameters(self) -> list[dict[str, Any]]:
        self.parameter_calls += 1
        return list(self.parameters)


def _space_system(qualified_name: str, *subs: str) -> dict[str, Any]:
    record: dict[str, Any] = {
        "name": qualified_name.rsplit("/", 1)[-1],
        "qualifiedName": qualified_name,
    }
    if subs:
        record["sub"] = [
            {"name": sub.rsplit("/", 1)[-1], "qualifiedName": sub} for sub in subs
        ]
    return record


def _parameter(qualified_name: str, eng_type: Optional[str] = "float", **extra: Any):
    record: dict[str, Any] = {
        "name": qualified_name.rsplit("/", 1)[-1],
        "qualifiedName": qualified_name,
    }
    if eng_type is not None:
        record["type"] = {"engType": eng_type}
    record.update(extra)
    return record


@pytest.mark.asyncio
async def test_builds_root_folder_and_numeric_leaf():
    client = FakeMdbClient(
        space_systems=[{"qualifiedName": "/Sat"}],
        parameters=[{"qualifiedName": "/Sat/Temp", "type": {"engType": "float"}}],
    )
    provider = ObjectProvider(client, folder_name="myproject")

    root = await provider.get_node("spacecraft")
    sat = await provider.get_node("~Sat")
    temp = await provider.get_node("~Sat~Temp")

    assert root is not None
    assert root.name == "myproject"
    assert root.kind == "folder"
    assert root.location == "ROOT"
    assert root.composition == ("~Sat",)

    assert sat is not None
    assert sat.name == "Sat"
    assert sat.composition == ("~Sat~Temp",)

    assert temp is not None
    assert temp.name == "Temp"
    assert temp.kind == "numeric-telemetry"
    assert dict(temp.telemetry.value.hints) == {"range": 1}
    assert temp.telemetry.timestamp.format == "iso"
    assert temp.telemetry.timestamp.source == "timestamp"
    assert dict(temp.telemetry.timestamp.hints) == {"domain": 1}


@pytest.mark.asyncio
async def test_unknown_identifier_returns_none():
    provider = ObjectProvider(FakeMdbClient(space_systems=[_space_system("/Sat")]))

    assert await provider.get_node("~Nope") is None


@pytest.mark.asyncio
async def test_concurrent_lookups_share_one_build():
    gate = asyncio.Event()
    client = FakeMdbClient(
        space_systems=[_space_system("/Sat")],
        parameters=[_parameter("/Sat/Temp")],
        gate=gate,
    )
    provider = ObjectProvider(client)

    lookups = [asyncio.create_task(provider.get_node("~Sat~Temp")) for _ in range(5)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*lookups)

    assert client.space_system_calls == 1
    assert client.parameter_calls == 1
    assert all(node is results[0] for node in results)
    assert provider.is_built

    await provider.get_node("~Sat")
    assert client.space_system_calls == 1


@pytest.mark.asyncio
async def test_failed_build_is_not_cached():
    client = FakeMdbClient(space_systems=[_space_system("/Sat")], fail=True)
    provider = ObjectProvider(client)

    with pytest.raises(UpstreamFetchError):
        await provider.get_node("~Sat")
    assert not provider.is_built

    client.fail = False
    node = await provider.get_node("~Sat")

    assert node is not None
    assert client.space_system_calls == 2


@pytest.mark.asyncio
async def test_concurrent_callers_all_observe_build_failure():
    gate = asyncio.Event()
    client = FakeMdbClient(fail=True, gate=gate)
    provider = ObjectProvider(client)

    lookups = [asyncio.create_task(provider.get_node("~Sat")) for _ in range(3)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*lookups, return_exceptions=True)

    assert all(isinstance(result, UpstreamFetchError) for result in results)
    assert client.space_system_calls == 1


@pytest.mark.asyncio
async def test_folders_are_sorted_by_name():
    client = FakeMdbClient(
        space_systems=[
            _space_system("/b"),
            _space_system("/Sat", "/Sat/b", "/Sat/a", "/Sat/c"),
            _space_system("/a"),
            _space_system("/Sat/c"),
            _space_system("/Sat/a"),
            _space_system("/Sat/b"),
        ]
    )
    provider = ObjectProvider(client)

    root = await provider.get_node("spacecraft")
    sat = await provider.get_node("~Sat")

    assert root.composition == ("~Sat", "~a", "~b")
    assert sat.composition == ("~Sat~a", "~Sat~b", "~Sat~c")


@pytest.mark.asyncio
async def test_root_space_system_is_skipped():
    client = FakeMdbClient(
        space_systems=[
            {"name": "", "qualifiedName": "/", "sub": [{"name": "Sat", "qualifiedName": "/Sat"}]},
            _space_system("/Sat"),
        ]
    )
    provider = ObjectProvider(client)

    dictionary = await provider.get_dictionary()

    assert "~" not in dictionary
    assert dictionary["spacecraft"].composition == ("~Sat",)


@pytest.mark.asyncio
async def test_parameters_follow_sub_folders_in_composition():
    client = FakeMdbClient(
        space_systems=[_space_system("/Sat", "/Sat/Power"), _space_system("/Sat/Power")],
        parameters=[_parameter("/Sat/Temp"), _parameter("/Sat/Power/Voltage")],
    )
    provider = ObjectProvider(client)

    sat = await provider.get_node("~Sat")
    power = await provider.get_node("~Sat~Power")

    assert sat.composition == ("~Sat~Power", "~Sat~Temp")
    assert power.composition == ("~Sat~Power~Voltage",)


@pytest.mark.asyncio
async def test_aggregate_parameter_expands_into_folder():
    aggregate = _parameter(
        "/Sat/Attitude",
        eng_type=None,
        type={
            "engType": "aggregate",
            "member": [
                {"name": "x", "type": {"engType": "float"}},
                {
                    "name": "y",
                    "type": {
                        "engType": "aggregate",
                        "member": [{"name": "label", "type": {"engType": "string"}}],
                    },
                },
            ],
        },
    )
    client = FakeMdbClient(space_systems=[_space_system("/Sat")], parameters=[aggregate])
    provider = ObjectProvider(client)

    attitude = await provider.get_node("~Sat~Attitude")
    x = await provider.get_node("~Sat~Attitude.x")
    y = await provider.get_node("~Sat~Attitude.y")
    label = await provider.get_node("~Sat~Attitude.y.label")

    assert attitude.kind == "folder"
    assert attitude.telemetry is None
    assert attitude.composition == ("~Sat~Attitude.x", "~Sat~Attitude.y")
    assert x.name == "Attitude_x"
    assert x.kind == "numeric-telemetry"
    assert y.name == "Attitude_y"
    assert y.composition == ("~Sat~Attitude.y.label",)
    assert label.name == "Attitude_y_label"
    assert label.kind == "string-telemetry"


@pytest.mark.asyncio
async def test_suppressed_parameter_is_omitted():
    client = FakeMdbClient(
        space_systems=[_space_system("/Sat")],
        parameters=[
            _parameter("/Sat/Hidden", alias=[{"namespace": "OpenMCT:omit", "name": "x"}]),
            _parameter("/Sat/Shown"),
        ],
    )
    provider = ObjectProvider(client)

    dictionary = await provider.get_dictionary()

    assert "~Sat~Hidden" not in dictionary
    assert dictionary["~Sat"].composition == ("~Sat~Shown",)


@pytest.mark.asyncio
async def test_parameter_without_parent_is_dropped():
    client = FakeMdbClient(
        space_systems=[_space_system("/Sat")],
        parameters=[_parameter("/Other/Temp"), _parameter("/Loose")],
    )
    provider = ObjectProvider(client)

    dictionary = await provider.get_dictionary()

    assert set(dictionary) == {"spacecraft", "~Sat"}


@pytest.mark.asyncio
async def test_every_identifier_reachable_from_root_is_in_dictionary():
    client = FakeMdbClient(
        space_systems=[
            _space_system("/Sat", "/Sat/Power", "/Sat/Thermal"),
            _space_system("/Sat/Thermal"),
        ],
        parameters=[_parameter("/Sat/Thermal/Temp")],
    )
    provider = ObjectProvider(client)

    dictionary = await provider.get_dictionary()

    reached = []
    pending = ["spacecraft"]
    while pending:
        node = dictionary.get(pending.pop())
        if node is None:
            continue
        for child in node.composition or ():
            reached.append(child)
            pending.append(child)

    assert [identifier for identifier in reached if identifier not in dictionary] == []
    assert dictionary["~Sat"].composition == ("~Sat~Thermal",)


@pytest.mark.asyncio
async def test_dictionary_is_read_only():
    provider = ObjectProvider(FakeMdbClient(space_systems=[_space_system("/Sat")]))

    dictionary = await provider.get_dictionary()

    with pytest.raises(TypeError):
        dictionary["~Evil"] = dictionary["~Sat"]
    assert isinstance(dictionary["spacecraft"].composition, tuple)


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        ({"qualifiedName": "/yamcs/cpu"}, "numeric-telemetry"),
        ({"type": {"engType": "integer"}}, "numeric-telemetry"),
        ({"type": {"engType": "float"}}, "numeric-telemetry"),
        ({"type": {"engType": "string"}}, "string-telemetry"),
        ({"type": {"engType": "enumeration"}}, "string-telemetry"),
        ({"type": {"engType": "boolean"}}, "string-telemetry"),
        (
            {
                "type": {"engType": "binary"},
                "alias": [{"namespace": "OpenMCT:type", "name": "image"}],
            },
            "image-telemetry",
        ),
        (
            {
                "type": {"engType": "float"},
                "alias": [{"namespace": "OpenMCT:type", "name": "string"}],
            },
            "string-telemetry",
        ),
        (
            {
                "type": {"engType": "float"},
                "alias": [{"namespace": "OpenMCT:type", "name": "mystery"}],
            },
            "numeric-telemetry",
        ),
    ],
)
def test_parameter_kind(record, expected):
    assert parameter_kind(record) == expected


def test_telemetry_metadata_hints_per_kind():
    numeric = telemetry_metadata("numeric-telemetry")
    string = telemetry_metadata("string-telemetry")
    image = telemetry_metadata("image-telemetry")

    assert dict(numeric.value.hints) == {"range": 1}
    assert numeric.value.format is None
    assert dict(string.value.hints) == {}
    assert dict(image.value.hints) == {"image": 1}
    assert image.value.format == "image"
    assert image.timestamp == numeric.timestamp
    assert image.as_dict()["values"][1] == {
        "key": "utc",
        "name": "Timestamp",
        "source": "timestamp",
        "format": "iso",
        "hints": {"domain": 1},
    }
