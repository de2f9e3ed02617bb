"""Step progress persistence interface and the locations read path."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar

from where_api.domain.steps import StepRecord, to_feature_collection
from where_api.errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProgressStore(Protocol):
    """Persistence interface for step records.

    `commit_step` must be a single atomic conditional upsert: a row that is
    already completed is never modified.
    """

    def ensure_schema(self) -> None:
        """Create the step table when it does not exist yet."""

    def commit_step(self, record: StepRecord) -> bool:
        """Insert or advance a step record; return whether a row changed."""

    def latest_per_session(self, limit: int | None = None) -> list[StepRecord]:
        """Return the furthest completed step of each item and session."""


async def run_storage_call(
    call: Callable[..., T], *args: object, timeout: float
) -> T:
    """Run a blocking storage call off the event loop with a bounded timeout."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(call, *args), timeout)
    except TimeoutError as exc:
        raise PersistenceError(
            f"Database operation timed out after {timeout:g} seconds"
        ) from exc
    except PersistenceError:
        raise
    except Exception as exc:
        raise PersistenceError(str(exc) or type(exc).__name__) from exc


@dataclass
class LocationsService:
    """Serves the current positions of all sessions as GeoJSON."""

    store: ProgressStore
    item_url_base: str
    timeout_seconds: float = 10.0

    async def latest(self, limit: int | None = None) -> dict[str, object]:
        """Return a FeatureCollection with one feature per item and session."""
        try:
            records = await run_storage_call(
                self.store.latest_per_session, limit, timeout=self.timeout_seconds
            )
        except PersistenceError:
            logger.exception("Failed to query locations", extra={"limit": limit})
            raise
        return to_feature_collection(records, self.item_url_base)
