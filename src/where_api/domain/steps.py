"""Domain models for step progress."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class StepRecord:
    """Progress of one session on one step of one item.

    Identity is `(item_id, session, step)`. `data` and `geometry` are only set
    on completed steps, and `centroid` is always derived from `geometry`.
    """

    item_id: str
    session: str
    step: str
    step_index: int
    completed: bool
    image_id: str | None = None
    data: object | None = None
    geometry: dict[str, object] | None = None
    centroid: str | None = None
    client: dict[str, object] | None = None
    created_at: datetime | None = None
    modified_at: datetime | None = None


@dataclass(frozen=True)
class Ack:
    """Acknowledgement of an accepted step submission."""

    committed: bool
    broadcast: bool

    def to_payload(self) -> dict[str, str]:
        return {"result": "success"}


def to_feature(record: StepRecord, item_url_base: str) -> dict[str, object]:
    """Convert a step record into the GeoJSON Feature shown on the map."""
    return {
        "type": "Feature",
        "properties": {
            "uuid": record.item_id,
            "imageId": record.image_id,
            "step": record.step,
            "completed": record.completed,
            "url": f"{item_url_base}{record.item_id}",
            "data": record.data,
        },
        "geometry": record.geometry,
    }


def to_feature_collection(
    records: list[StepRecord], item_url_base: str
) -> dict[str, object]:
    """Wrap step records into a GeoJSON FeatureCollection."""
    return {
        "type": "FeatureCollection",
        "features": [to_feature(record, item_url_base) for record in records],
    }
