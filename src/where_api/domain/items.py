"""Domain models for the item catalog."""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class CatalogItem:
    """A catalog item with its source metadata kept verbatim."""

    uuid: str
    collection_id: str
    image_id: str | None
    image_link: str | None
    metadata: Mapping[str, object]

    def to_dict(self) -> dict[str, object]:
        """Return the item as served by the REST API."""
        payload = dict(self.metadata)
        payload["uuid"] = self.uuid
        payload["collection"] = self.collection_id
        payload["imageLink"] = self.image_link
        return payload


@dataclass(frozen=True)
class Collection:
    """A catalog collection entry."""

    uuid: str
    exclude: bool
    metadata: Mapping[str, object]

    def to_dict(self) -> dict[str, object]:
        return dict(self.metadata)


def freeze(payload: dict[str, object]) -> Mapping[str, object]:
    """Wrap a metadata dict in a read-only view."""
    return MappingProxyType(dict(payload))
