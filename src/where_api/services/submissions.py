"""Validation, persistence and broadcast of step submissions."""

import logging
import math
from dataclasses import dataclass

from where_api.domain.steps import Ack, StepRecord, to_feature
from where_api.errors import NotFoundError, PersistenceError, ValidationError
from where_api.services import geometry
from where_api.services.broadcast import BroadcastHub
from where_api.services.catalog import ItemCatalog
from where_api.services.progress import ProgressStore, run_storage_call

logger = logging.getLogger(__name__)

# Upper bound of the Postgres integer column.
MAX_STEP_INDEX = 2**31 - 1


@dataclass
class StepSubmissionService:
    """Runs one step submission from validation to observer fan-out.

    Every check happens before the store is touched, so a rejected submission
    never writes a row or reaches observers.
    """

    catalog: ItemCatalog
    store: ProgressStore
    hub: BroadcastHub
    item_url_base: str
    timeout_seconds: float = 10.0

    async def submit(
        self,
        item_id: str,
        session: str,
        feature: object,
        client_info: dict[str, object] | None = None,
    ) -> Ack:
        """Validate and commit a GeoJSON Feature describing a step."""
        item = self.catalog.get(item_id)
        if item is None:
            raise NotFoundError()

        record = build_step_record(
            item_id=item_id,
            session=session,
            feature=feature,
            image_id=item.image_id,
            client_info=client_info,
        )

        try:
            committed = await run_storage_call(
                self.store.commit_step, record, timeout=self.timeout_seconds
            )
        except PersistenceError:
            logger.exception(
                "Failed to commit step",
                extra={"item_id": item_id, "step": record.step},
            )
            raise

        broadcast = False
        if record.completed:
            self.hub.publish(to_feature(record, self.item_url_base))
            broadcast = True
        return Ack(committed=committed, broadcast=broadcast)


def build_step_record(
    *,
    item_id: str,
    session: str,
    feature: object,
    image_id: str | None,
    client_info: dict[str, object] | None,
) -> StepRecord:
    """Turn a submitted Feature into a step record or raise ValidationError."""
    if not isinstance(feature, dict):
        raise ValidationError("Feature should be a GeoJSON object")
    properties = feature.get("properties")
    if not isinstance(properties, dict):
        raise ValidationError("Feature should contain step and stepIndex")

    step = properties.get("step")
    step_index = properties.get("stepIndex")
    if not (isinstance(step, str) and step) or not _is_step_index(step_index):
        raise ValidationError("Feature should contain step and stepIndex")

    data = properties.get("data")
    submitted_geometry = feature.get("geometry")
    has_geometry = submitted_geometry is not None
    completed = not _is_falsy(properties.get("completed"))
    if completed:
        if _is_falsy(data):
            raise ValidationError("Completed steps should contain data")
    elif not _is_falsy(data) or has_geometry:
        raise ValidationError("Only completed steps should contain data or geometry")

    stored_geometry = None
    centroid = None
    if has_geometry:
        errors = geometry.validate(feature)
        if errors:
            raise ValidationError(errors)
        stored_geometry = submitted_geometry
        centroid = geometry.format_centroid(geometry.centroid_of(submitted_geometry))

    return StepRecord(
        item_id=item_id,
        session=session,
        step=step,
        step_index=step_index,
        completed=completed,
        image_id=image_id,
        data=data if completed else None,
        geometry=stored_geometry,
        centroid=centroid,
        client=client_info,
    )


def _is_step_index(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return 0 <= value <= MAX_STEP_INDEX


def _is_falsy(value: object) -> bool:
    # JavaScript falsiness: null, false, 0, NaN and "". Empty objects are truthy.
    if value is None or value == "":
        return True
    if isinstance(value, (int, float)):
        return value == 0 or math.isnan(value)
    return False
