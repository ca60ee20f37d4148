import asyncio

import pytest

from kqlschema.core.connection import ClusterConnection
from kqlschema.core.errors import DatabaseNotFoundError, UnknownColumnTypeError
from kqlschema.core.loader import ServerSchemaLoader
from kqlschema.core.symbols import (
    DatabaseName,
    DatabaseSymbol,
    EntityGroupSymbol,
    ExternalTableSymbol,
    FunctionSymbol,
    MaterializedViewSymbol,
    TableSymbol,
)

IDENTITY = ".show database identity"
SALES_SCHEMA = ".show database ['Sales'] schema"
EXT_LIST = ".show external tables | project TableName, DocString"
MV_LIST = ".show materialized-views | project Name, Query, DocString"
FUNCTIONS = ".show functions"
ENTITY_GROUPS = ".show entity_groups | project Name, Entities"

SALES = {"DatabaseName": "Sales", "PrettyName": "Sales DB"}


def _loader(providers: dict, default="https://help.kusto.windows.net"):
    """Loader whose providers come from `providers` keyed by data source."""
    created: list[str] = []

    def factory(connection: ClusterConnection):
        created.append(connection.data_source)
        return providers[connection.data_source]

    loader = ServerSchemaLoader(ClusterConnection(default, "Samples"), provider_factory=factory)
    return loader, created


@pytest.mark.asyncio
async def test_load_database_end_to_end(stub_provider_cls):
    provider = stub_provider_cls(
        {
            ".show databases": [SALES],
            ("Sales", IDENTITY): [SALES],
            SALES_SCHEMA: [
                {"TableName": "Orders", "ColumnName": "Id", "ColumnType": "System.Int32"},
                {"TableName": "Orders", "ColumnName": "Amount", "ColumnType": "System.Double"},
            ],
        }
    )
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    names = await loader.load_database_names()
    db = await loader.load_database("Sales")

    assert names == [DatabaseName("Sales", "Sales DB")]
    assert db == DatabaseSymbol(
        "Sales", "Sales DB", [TableSymbol("Orders", "(Id:int, Amount:real)")]
    )
    assert provider.calls[0] == (None, ".show databases")
    assert all(database == "Sales" for database, _ in provider.calls[1:])


@pytest.mark.asyncio
async def test_load_database_resolves_pretty_name(stub_provider_cls):
    provider = stub_provider_cls({("Sales DB", IDENTITY): [SALES]})
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    db = await loader.load_database("Sales DB")

    assert (db.name, db.pretty_name) == ("Sales", "Sales DB")
    assert SALES_SCHEMA in provider.commands()


@pytest.mark.asyncio
async def test_load_database_merges_categories_in_order(stub_provider_cls):
    provider = stub_provider_cls(
        {
            ("Sales", IDENTITY): [SALES],
            SALES_SCHEMA: [{"TableName": "T", "ColumnName": "a", "ColumnType": "System.Int64"}],
            EXT_LIST: [{"TableName": "Ext1", "DocString": ""}, {"TableName": "Ext2"}],
            ".show external table ['Ext1'] cslschema | project TableName, Schema": [],
            ".show external table ['Ext2'] cslschema | project TableName, Schema": [
                {"TableName": "Ext2", "Schema": "b:string"}
            ],
            MV_LIST: [{"Name": "MV", "Query": "T | take 1"}],
            ".show materialized-view ['MV'] cslschema | project TableName, Schema": [
                {"TableName": "MV", "Schema": "a:long"}
            ],
            FUNCTIONS: [{"Name": "f", "Parameters": "()", "Body": "{ T }"}],
            ENTITY_GROUPS: [{"Name": "eg", "Entities": "[]"}],
        }
    )
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    db = await loader.load_database("Sales")

    assert list(db.members) == [
        TableSymbol("T", "(a:long)"),
        ExternalTableSymbol("Ext2", "(b:string)"),
        MaterializedViewSymbol("MV", "(a:long)", query="T | take 1"),
        FunctionSymbol("f", "()", "{ T }"),
        EntityGroupSymbol("eg", "[]"),
    ]
    assert db.get_member("Ext1") is None


@pytest.mark.asyncio
async def test_missing_database_is_cached_as_absent(stub_provider_cls):
    provider = stub_provider_cls({("Nope", IDENTITY): []})
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    assert await loader.load_database("Nope") is None
    assert await loader.load_database("Nope") is None

    assert provider.commands() == [IDENTITY]


@pytest.mark.asyncio
async def test_missing_database_raises_when_strict(stub_provider_cls):
    provider = stub_provider_cls({("Nope", IDENTITY): []})
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    with pytest.raises(DatabaseNotFoundError) as excinfo:
        await loader.load_database("Nope", throw_on_error=True)
    assert excinfo.value.cluster == "help.kusto.windows.net"

    # the name is now known absent: no further remote call
    with pytest.raises(DatabaseNotFoundError):
        await loader.load_database("Nope", throw_on_error=True)
    assert provider.commands() == [IDENTITY]


@pytest.mark.asyncio
async def test_absent_database_is_tracked_per_cluster(stub_provider_cls):
    default = stub_provider_cls({("Sales", IDENTITY): []})
    other = stub_provider_cls({("Sales", IDENTITY): [SALES]})
    loader, created = _loader(
        {
            "https://help.kusto.windows.net": default,
            "https://other.kusto.windows.net": other,
        }
    )

    assert await loader.load_database("Sales") is None
    db = await loader.load_database("Sales", cluster_name="other")

    assert db is not None and db.name == "Sales"
    assert created == ["https://help.kusto.windows.net", "https://other.kusto.windows.net"]


@pytest.mark.asyncio
async def test_explicit_cluster_uris_keep_scheme_and_port(stub_provider_cls):
    local = {"DatabaseName": "a", "PrettyName": ""}
    first = stub_provider_cls({".show databases": [local], ("a", IDENTITY): [local]})
    second = stub_provider_cls({("a", IDENTITY): []})
    loader, created = _loader(
        {"http://localhost:8080": first, "http://localhost:9090": second}
    )

    names = await loader.load_database_names("http://localhost:8080")
    with pytest.raises(DatabaseNotFoundError) as excinfo:
        await loader.load_database("a", "http://localhost:9090", throw_on_error=True)
    # absent on :9090 only
    db = await loader.load_database("a", "http://localhost:8080")

    assert names == [DatabaseName("a")]
    assert db == DatabaseSymbol("a")
    assert excinfo.value.cluster == "localhost:9090"
    assert created == ["http://localhost:8080", "http://localhost:9090"]
    assert second.commands() == [IDENTITY]


@pytest.mark.asyncio
async def test_explicit_scheme_differs_from_default_cluster(stub_provider_cls):
    default = stub_provider_cls()
    plain = stub_provider_cls({".show databases": [SALES]})
    loader, created = _loader(
        {
            "https://help.kusto.windows.net": default,
            "http://help.kusto.windows.net": plain,
        }
    )

    names = await loader.load_database_names("http://help.kusto.windows.net")

    assert names == [DatabaseName("Sales", "Sales DB")]
    assert created == ["http://help.kusto.windows.net"]
    assert default.calls == []


@pytest.mark.asyncio
async def test_identity_transport_failure_propagates_when_strict(stub_provider_cls):
    provider = stub_provider_cls({("Sales", IDENTITY): ConnectionError("down")})
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    with pytest.raises(ConnectionError):
        await loader.load_database("Sales", throw_on_error=True)

    # not recorded as absent: the next strict call queries again
    with pytest.raises(ConnectionError):
        await loader.load_database("Sales", throw_on_error=True)
    assert provider.commands() == [IDENTITY, IDENTITY]


@pytest.mark.asyncio
async def test_failed_category_does_not_abort_lenient_load(stub_provider_cls):
    provider = stub_provider_cls(
        {
            ("Sales", IDENTITY): [SALES],
            SALES_SCHEMA: RuntimeError("no access"),
            FUNCTIONS: [{"Name": "f", "Parameters": "()", "Body": "{ 1 }"}],
        }
    )
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    db = await loader.load_database("Sales")

    assert list(db.members) == [FunctionSymbol("f", "()", "{ 1 }")]


@pytest.mark.asyncio
async def test_failed_category_raises_when_strict(stub_provider_cls):
    provider = stub_provider_cls(
        {("Sales", IDENTITY): [SALES], SALES_SCHEMA: RuntimeError("no access")}
    )
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    with pytest.raises(RuntimeError, match="no access"):
        await loader.load_database("Sales", throw_on_error=True)


@pytest.mark.asyncio
async def test_unknown_column_type_fails_lenient_load(stub_provider_cls):
    provider = stub_provider_cls(
        {
            ("Sales", IDENTITY): [SALES],
            SALES_SCHEMA: [{"TableName": "T", "ColumnName": "a", "ColumnType": "System.Single"}],
        }
    )
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    with pytest.raises(UnknownColumnTypeError):
        await loader.load_database("Sales", throw_on_error=False)


@pytest.mark.asyncio
async def test_load_database_propagates_cancellation(stub_provider_cls):
    started = asyncio.Event()

    class _Hanging(stub_provider_cls):
        async def execute_control_command(self, database, command):
            if command == IDENTITY:
                return [SALES]
            started.set()
            await asyncio.Event().wait()

    loader, _ = _loader({"https://help.kusto.windows.net": _Hanging()})

    task = asyncio.ensure_future(loader.load_database("Sales"))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_load_database_names_returns_none_when_empty(stub_provider_cls):
    provider = stub_provider_cls({".show databases": []})
    loader, _ = _loader({"https://help.kusto.windows.net": provider})

    assert await loader.load_database_names() is None


@pytest.mark.asyncio
async def test_load_database_names_on_other_cluster(stub_provider_cls):
    default = stub_provider_cls()
    other = stub_provider_cls({".show databases": [{"DatabaseName": "a", "PrettyName": ""}]})
    loader, _ = _loader(
        {
            "https://help.kusto.windows.net": default,
            "https://other.kusto.windows.net": other,
        }
    )

    names = await loader.load_database_names("other")

    assert names == [DatabaseName("a")]
    assert default.calls == []


@pytest.mark.asyncio
async def test_aclose_disposes_providers_once(stub_provider_cls):
    default = stub_provider_cls()
    other = stub_provider_cls()
    loader, created = _loader(
        {
            "https://help.kusto.windows.net": default,
            "https://other.kusto.windows.net": other,
        }
    )

    async with loader:
        await loader.load_database_names()
        await loader.load_database_names()
        await loader.load_database_names("other")
        await loader.load_database_names("https://other.kusto.windows.net")

    assert len(created) == 2
    assert (default.closed, other.closed) == (1, 1)


def test_loader_properties():
    loader = ServerSchemaLoader.from_connection_string(
        "Data Source=https://Help.kusto.windows.net;Initial Catalog=Samples",
        provider_factory=lambda conn: None,
    )

    assert loader.default_cluster == "help.kusto.windows.net"
    assert loader.default_database == "Samples"
    assert loader.default_domain == ".kusto.windows.net"
