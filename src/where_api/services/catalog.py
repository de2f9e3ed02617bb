"""Read-only catalog of items shared by every request."""

import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from where_api.domain.items import CatalogItem, Collection


@dataclass(frozen=True)
class ItemCatalog:
    """Immutable lookup from item uuid to item metadata."""

    items_by_uuid: Mapping[str, CatalogItem]
    collections: tuple[Collection, ...] = ()
    _uuids: tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        frozen = MappingProxyType(dict(self.items_by_uuid))
        object.__setattr__(self, "items_by_uuid", frozen)
        object.__setattr__(self, "_uuids", tuple(frozen))

    def get(self, uuid: str) -> CatalogItem | None:
        """Return the item for a uuid, if present."""
        return self.items_by_uuid.get(uuid)

    def contains(self, uuid: str | None) -> bool:
        return bool(uuid) and uuid in self.items_by_uuid

    def items(self) -> list[CatalogItem]:
        """Return every item in load order."""
        return list(self.items_by_uuid.values())

    def random_item(self) -> CatalogItem | None:
        """Return a uniformly chosen item, or None for an empty catalog."""
        if not self._uuids:
            return None
        return self.items_by_uuid[random.choice(self._uuids)]  # noqa: S311
