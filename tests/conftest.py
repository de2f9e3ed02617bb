"""Shared test fixtures."""

import itertools
import threading
import time
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

import pytest

from where_api.adapters.mods_client import ModsClient
from where_api.config import Settings
from where_api.containers import AppContainer
from where_api.domain.items import CatalogItem, Collection, freeze
from where_api.domain.steps import StepRecord
from where_api.errors import AuthError
from where_api.services.broadcast import BroadcastHub
from where_api.services.catalog import ItemCatalog
from where_api.services.progress import LocationsService, ProgressStore
from where_api.services.submissions import StepSubmissionService
from where_api.services.tokens import TokenService

ITEM_URL_BASE = "http://digitalcollections.nypl.org/items/"
SIGNING_KEY = "test-signing-key"

_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


@dataclass
class InMemoryProgressStore(ProgressStore):
    """In-memory progress store applying the forward-only upsert atomically."""

    rows: dict[tuple[str, str, str], StepRecord] = field(default_factory=dict)
    commit_calls: int = 0
    schema_ensured: bool = False
    fail_with: Exception | None = None
    delay_seconds: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _clock: itertools.count = field(default_factory=itertools.count)

    def ensure_schema(self) -> None:
        self.schema_ensured = True

    def commit_step(self, record: StepRecord) -> bool:
        if self.delay_seconds:
            time.sleep(self.delay_seconds)
        if self.fail_with is not None:
            raise self.fail_with
        key = (record.item_id, record.session, record.step)
        with self._lock:
            self.commit_calls += 1
            now = _EPOCH + timedelta(seconds=next(self._clock))
            existing = self.rows.get(key)
            if existing is None:
                self.rows[key] = replace(record, created_at=now, modified_at=now)
                return True
            if existing.completed:
                return False
            self.rows[key] = replace(
                record, created_at=existing.created_at, modified_at=now
            )
            return True

    def latest_per_session(self, limit: int | None = None) -> list[StepRecord]:
        if self.fail_with is not None:
            raise self.fail_with
        best: dict[tuple[str, str], StepRecord] = {}
        with self._lock:
            for row in self.rows.values():
                if not row.completed:
                    continue
                pair = (row.item_id, row.session)
                current = best.get(pair)
                if current is None or row.step_index > current.step_index:
                    best[pair] = row
        ordered = sorted(best.values(), key=lambda row: row.modified_at, reverse=True)
        return ordered[:limit] if limit is not None else ordered


@dataclass
class RecordingBroadcastHub(BroadcastHub):
    """Broadcast hub that also remembers every published feature."""

    published: list[dict[str, object]] = field(default_factory=list)

    def publish(self, feature: dict[str, object]) -> int:
        self.published.append(feature)
        return super().publish(feature)


@dataclass
class FakeModsClient(ModsClient):
    """Fake MODS client with a fixed document."""

    mods: dict[str, object] = field(
        default_factory=lambda: {"titleInfo": {"title": {"$": "Broadway"}}}
    )
    enabled: bool = True
    requested: list[str] = field(default_factory=list)

    async def get_mods(self, uuid: str) -> dict[str, object]:
        if not self.enabled:
            raise AuthError()
        self.requested.append(uuid)
        return self.mods


def make_item(uuid: str, image_id: str | None = "img-1") -> CatalogItem:
    link = f"http://images.nypl.org/index.php?id={image_id}&t=w&download=1"
    return CatalogItem(
        uuid=uuid,
        collection_id="col-1",
        image_id=image_id,
        image_link=link,
        metadata=freeze({"uuid": uuid, "title": f"Item {uuid}", "imageID": image_id}),
    )


def make_feature(  # noqa: PLR0913
    step: str = "locate",
    step_index: int = 0,
    completed: bool = True,
    data: object = None,
    geometry: dict[str, object] | None = None,
) -> dict[str, object]:
    properties: dict[str, object] = {
        "step": step,
        "stepIndex": step_index,
        "completed": completed,
    }
    if data is not None:
        properties["data"] = data
    feature: dict[str, object] = {"type": "Feature", "properties": properties}
    if geometry is not None:
        feature["geometry"] = geometry
    else:
        feature["geometry"] = None
    return feature


@pytest.fixture
def settings() -> Settings:
    return Settings(
        where_private_key=SIGNING_KEY,
        supabase_url="https://example.supabase.co",
        supabase_service_key=(
            "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
            "eyJyb2xlIjoic2VydmljZV9yb2xlIn0."
            "c2lnbmF0dXJl"
        ),
        digital_collections_token="dc-token",
        item_url_base=ITEM_URL_BASE,
    )


@pytest.fixture
def catalog() -> ItemCatalog:
    items = {uuid: make_item(uuid) for uuid in ("abc-123", "def-456")}
    collections = (
        Collection(
            uuid="col-1",
            exclude=False,
            metadata=freeze({"uuid": "col-1", "title": "Streets"}),
        ),
    )
    return ItemCatalog(items_by_uuid=items, collections=collections)


@pytest.fixture
def progress_store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def broadcast_hub() -> RecordingBroadcastHub:
    return RecordingBroadcastHub(send_timeout_seconds=1.0)


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(SIGNING_KEY)


@pytest.fixture
def submission_service(
    catalog: ItemCatalog,
    progress_store: InMemoryProgressStore,
    broadcast_hub: RecordingBroadcastHub,
) -> StepSubmissionService:
    return StepSubmissionService(
        catalog=catalog,
        store=progress_store,
        hub=broadcast_hub,
        item_url_base=ITEM_URL_BASE,
        timeout_seconds=1.0,
    )


@pytest.fixture
def container(  # noqa: PLR0913
    settings: Settings,
    catalog: ItemCatalog,
    token_service: TokenService,
    progress_store: InMemoryProgressStore,
    broadcast_hub: RecordingBroadcastHub,
    submission_service: StepSubmissionService,
) -> AppContainer:
    locations_service = LocationsService(
        store=progress_store,
        item_url_base=ITEM_URL_BASE,
        timeout_seconds=1.0,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        catalog=catalog,
        token_service=token_service,
        progress_store=progress_store,
        broadcast_hub=broadcast_hub,
        submission_service=submission_service,
        locations_service=locations_service,
        mods_client=FakeModsClient(),
        close_resources=close_resources,
    )
