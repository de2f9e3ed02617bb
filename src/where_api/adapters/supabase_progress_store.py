"""Supabase-backed step progress store."""

import logging
from dataclasses import dataclass
from datetime import datetime

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from where_api.domain.steps import StepRecord
from where_api.errors import FatalConfigError
from where_api.services.progress import ProgressStore

logger = logging.getLogger(__name__)

TABLE_NAME = "locations"
LATEST_VIEW_NAME = "latest_locations"
_MISSING_RELATION_CODES = {"42P01", "PGRST205"}


@dataclass
class SupabaseProgressStore(ProgressStore):
    """Supabase implementation for step records.

    The conditional upsert lives in the `commit_step` Postgres function so the
    forward-only rule is decided inside one statement.
    """

    client: Client

    def ensure_schema(self) -> None:
        """Create the locations table through RPC when the probe cannot see it."""
        try:
            self.client.table(TABLE_NAME).select("uuid").limit(1).execute()
        except APIError as exc:
            if exc.code not in _MISSING_RELATION_CODES:
                raise FatalConfigError(
                    f"Error connecting to database: {exc.message}"
                ) from exc
        except httpx.HTTPError as exc:
            raise FatalConfigError(f"Error connecting to database: {exc}") from exc
        else:
            return

        logger.info('Table "%s" does not exist - creating table...', TABLE_NAME)
        try:
            self.client.rpc("ensure_locations_schema", {}).execute()
        except APIError as exc:
            raise FatalConfigError(f"Error creating table: {exc.message}") from exc
        except httpx.HTTPError as exc:
            raise FatalConfigError(f"Error creating table: {exc}") from exc

    def commit_step(self, record: StepRecord) -> bool:
        """Insert or advance a step row; return whether a row changed."""
        response = self.client.rpc(
            "commit_step",
            {
                "p_uuid": record.item_id,
                "p_session": record.session,
                "p_step": record.step,
                "p_step_index": record.step_index,
                "p_completed": record.completed,
                "p_image_id": record.image_id,
                "p_data": record.data,
                "p_client": record.client,
                "p_geometry": record.geometry,
                "p_centroid": record.centroid,
            },
        ).execute()
        return bool(response.data)

    def latest_per_session(self, limit: int | None = None) -> list[StepRecord]:
        """Return the furthest completed step per item and session."""
        query = (
            self.client.table(LATEST_VIEW_NAME)
            .select(
                "uuid, session, step, step_index, completed, image_id, "
                "date_created, date_modified, data, client, geometry, centroid"
            )
            .order("date_modified", desc=True)
        )
        if limit is not None:
            query = query.limit(limit)
        response = query.execute()
        return [_parse_row(row) for row in response.data or []]


def _parse_row(row: dict[str, object]) -> StepRecord:
    return StepRecord(
        item_id=str(row["uuid"]),
        session=str(row["session"]),
        step=str(row["step"]),
        step_index=int(row["step_index"]),
        completed=bool(row["completed"]),
        image_id=row.get("image_id"),
        data=row.get("data"),
        geometry=row.get("geometry"),
        centroid=_parse_point(row.get("centroid")),
        client=row.get("client"),
        created_at=_parse_timestamp(row.get("date_created")),
        modified_at=_parse_timestamp(row.get("date_modified")),
    )


def _parse_point(raw: object) -> str | None:
    if not isinstance(raw, str) or not raw:
        return None
    return raw.strip("()")


def _parse_timestamp(raw: object) -> datetime | None:
    if isinstance(raw, str) and raw:
        return datetime.fromisoformat(raw)
    return None
