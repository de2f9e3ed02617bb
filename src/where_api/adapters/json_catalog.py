"""Loads the item catalog from per-collection JSON files."""

import json
import logging
from pathlib import Path

from where_api.domain.items import CatalogItem, Collection, freeze
from where_api.errors import FatalConfigError
from where_api.services.catalog import ItemCatalog

logger = logging.getLogger(__name__)

COLLECTIONS_FILE = "collections.json"
_WIDTH_LINK_MARKER = "&t=w&"


def load_catalog(data_dir: str | Path) -> ItemCatalog:
    """Build the catalog from `collections.json` and one file per collection.

    Excluded collections are skipped, items without an image link are dropped,
    and each item is tagged with the uuid of its collection.
    """
    root = Path(data_dir)
    raw_collections = _read_json(root / COLLECTIONS_FILE)
    if not isinstance(raw_collections, list):
        raise FatalConfigError(f"{COLLECTIONS_FILE} should contain a list")

    collections = tuple(_parse_collection(entry) for entry in raw_collections)
    items: dict[str, CatalogItem] = {}
    for collection in collections:
        if collection.exclude:
            continue
        raw_items = _read_json(root / f"{collection.uuid}.json")
        for raw_item in raw_items or []:
            item = _parse_item(raw_item, collection.uuid)
            if item is not None:
                items[item.uuid] = item

    logger.info(
        "Loaded item catalog",
        extra={"collections": len(collections), "items": len(items)},
    )
    return ItemCatalog(items_by_uuid=items, collections=collections)


def select_image_link(links: object) -> str | None:
    """Pick the first width-constrained image link from an item."""
    if isinstance(links, str):
        links = [links]
    if not isinstance(links, list):
        return None
    for link in links:
        if isinstance(link, str) and _WIDTH_LINK_MARKER in link:
            return link
    return None


def _parse_collection(entry: object) -> Collection:
    if not isinstance(entry, dict) or not entry.get("uuid"):
        raise FatalConfigError(f"Invalid collection entry in {COLLECTIONS_FILE}")
    return Collection(
        uuid=str(entry["uuid"]),
        exclude=bool(entry.get("exclude")),
        metadata=freeze(entry),
    )


def _parse_item(raw_item: object, collection_id: str) -> CatalogItem | None:
    if not isinstance(raw_item, dict) or not raw_item.get("uuid"):
        return None
    if not raw_item.get("imageLink"):
        return None
    image_id = raw_item.get("imageID")
    return CatalogItem(
        uuid=str(raw_item["uuid"]),
        collection_id=collection_id,
        image_id=str(image_id) if image_id is not None else None,
        image_link=select_image_link(raw_item["imageLink"]),
        metadata=freeze(raw_item),
    )


def _read_json(path: Path) -> object:
    try:
        with path.open(encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise FatalConfigError(f"Cannot load catalog file {path}: {exc}") from exc
