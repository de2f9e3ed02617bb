"""Tests for the Supabase progress store."""

from dataclasses import dataclass, field

import httpx
import pytest
from postgrest.exceptions import APIError

from where_api.adapters.supabase_progress_store import SupabaseProgressStore
from where_api.domain.steps import StepRecord
from where_api.errors import FatalConfigError


@dataclass
class FakeResponse:
    data: object


@dataclass
class FakeQuery:
    name: str
    rows: list[dict[str, object]] = field(default_factory=list)
    error: Exception | None = None
    orders: list[tuple[str, bool]] = field(default_factory=list)
    limits: list[int] = field(default_factory=list)

    def select(self, *_args) -> "FakeQuery":
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.orders.append((column, desc))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.limits.append(count)
        return self

    def execute(self) -> FakeResponse:
        if self.error is not None:
            raise self.error
        return FakeResponse(data=self.rows)


@dataclass
class FakeRpc:
    result: object
    error: APIError | None = None

    def execute(self) -> FakeResponse:
        if self.error is not None:
            raise self.error
        return FakeResponse(data=self.result)


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeQuery] = field(default_factory=dict)
    rpc_results: dict[str, FakeRpc] = field(default_factory=dict)
    rpc_calls: list[tuple[str, dict[str, object]]] = field(default_factory=list)

    def table(self, name: str) -> FakeQuery:
        if name not in self.tables:
            self.tables[name] = FakeQuery(name=name)
        return self.tables[name]

    def rpc(self, name: str, params: dict[str, object]) -> FakeRpc:
        self.rpc_calls.append((name, params))
        return self.rpc_results.get(name, FakeRpc(result=None))


def _api_error(code: str) -> APIError:
    return APIError(
        {"message": f"error {code}", "code": code, "hint": None, "details": None}
    )


def test_commit_step_calls_conditional_upsert_function() -> None:
    client = FakeSupabaseClient(rpc_results={"commit_step": FakeRpc(result=True)})
    store = SupabaseProgressStore(client)
    record = StepRecord(
        item_id="abc-123",
        session="session-1",
        step="locate",
        step_index=0,
        completed=True,
        image_id="img-1",
        data={"note": "here"},
        geometry={"type": "Point", "coordinates": [1, 2]},
        centroid="1,2",
        client={"ip": "127.0.0.1"},
    )

    assert store.commit_step(record) is True
    name, params = client.rpc_calls[0]
    assert name == "commit_step"
    assert params["p_uuid"] == "abc-123"
    assert params["p_completed"] is True
    assert params["p_centroid"] == "1,2"
    assert params["p_data"] == {"note": "here"}


def test_commit_step_reports_unchanged_row() -> None:
    client = FakeSupabaseClient(rpc_results={"commit_step": FakeRpc(result=False)})
    store = SupabaseProgressStore(client)
    record = StepRecord(
        item_id="abc-123",
        session="session-1",
        step="locate",
        step_index=1,
        completed=False,
    )

    assert store.commit_step(record) is False


def test_latest_per_session_parses_view_rows() -> None:
    client = FakeSupabaseClient()
    client.table("latest_locations").rows = [
        {
            "uuid": "abc-123",
            "session": "session-1",
            "step": "locate",
            "step_index": 2,
            "completed": True,
            "image_id": "img-1",
            "date_created": "2024-01-01T10:00:00+00:00",
            "date_modified": "2024-01-01T11:00:00+00:00",
            "data": {"note": "here"},
            "client": {"ip": "127.0.0.1"},
            "geometry": {"type": "Point", "coordinates": [1, 2]},
            "centroid": "(1,2)",
        }
    ]
    store = SupabaseProgressStore(client)

    records = store.latest_per_session(limit=100)

    assert len(records) == 1
    assert records[0].centroid == "1,2"
    assert records[0].step_index == 2
    assert records[0].modified_at is not None
    view = client.tables["latest_locations"]
    assert view.orders == [("date_modified", True)]
    assert view.limits == [100]


def test_latest_per_session_without_limit() -> None:
    client = FakeSupabaseClient()
    store = SupabaseProgressStore(client)

    assert store.latest_per_session() == []
    assert client.tables["latest_locations"].limits == []


def test_ensure_schema_is_noop_when_table_exists() -> None:
    client = FakeSupabaseClient()
    store = SupabaseProgressStore(client)

    store.ensure_schema()

    assert client.rpc_calls == []


def test_ensure_schema_creates_missing_table() -> None:
    client = FakeSupabaseClient()
    client.table("locations").error = _api_error("42P01")
    store = SupabaseProgressStore(client)

    store.ensure_schema()

    assert client.rpc_calls == [("ensure_locations_schema", {})]


def test_ensure_schema_creation_failure_is_fatal() -> None:
    client = FakeSupabaseClient(
        rpc_results={
            "ensure_locations_schema": FakeRpc(
                result=None, error=_api_error("42501")
            )
        }
    )
    client.table("locations").error = _api_error("PGRST205")
    store = SupabaseProgressStore(client)

    with pytest.raises(FatalConfigError, match="Error creating table"):
        store.ensure_schema()


def test_ensure_schema_unreachable_database_is_fatal() -> None:
    client = FakeSupabaseClient()
    client.table("locations").error = _api_error("08006")
    store = SupabaseProgressStore(client)

    with pytest.raises(FatalConfigError, match="Error connecting to database"):
        store.ensure_schema()


def test_ensure_schema_connection_error_is_fatal() -> None:
    client = FakeSupabaseClient()
    client.table("locations").error = httpx.ConnectError("connection refused")
    store = SupabaseProgressStore(client)

    with pytest.raises(FatalConfigError, match="connection refused"):
        store.ensure_schema()
