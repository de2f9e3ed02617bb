"""Dependency container wiring for the application."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from where_api.adapters.json_catalog import load_catalog
from where_api.adapters.mods_client import HttpxModsClient, ModsClient
from where_api.adapters.supabase_progress_store import SupabaseProgressStore
from where_api.config import Settings, load_settings
from where_api.services.broadcast import BroadcastHub
from where_api.services.catalog import ItemCatalog
from where_api.services.progress import LocationsService, ProgressStore
from where_api.services.submissions import StepSubmissionService
from where_api.services.tokens import TokenService

logger = logging.getLogger(__name__)


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    catalog: ItemCatalog
    token_service: TokenService
    progress_store: ProgressStore
    broadcast_hub: BroadcastHub
    submission_service: StepSubmissionService
    locations_service: LocationsService
    mods_client: ModsClient
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None, catalog: ItemCatalog | None = None
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or load_settings()
    resolved_catalog = catalog or load_catalog(resolved_settings.data_dir)
    token_service = TokenService(resolved_settings.where_private_key)
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    progress_store = SupabaseProgressStore(supabase_client)
    broadcast_hub = BroadcastHub(
        queue_size=resolved_settings.subscriber_queue_size,
        send_timeout_seconds=resolved_settings.broadcast_send_timeout_seconds,
    )
    submission_service = StepSubmissionService(
        catalog=resolved_catalog,
        store=progress_store,
        hub=broadcast_hub,
        item_url_base=resolved_settings.item_url_base,
        timeout_seconds=resolved_settings.database_timeout_seconds,
    )
    locations_service = LocationsService(
        store=progress_store,
        item_url_base=resolved_settings.item_url_base,
        timeout_seconds=resolved_settings.database_timeout_seconds,
    )
    mods_client = HttpxModsClient.create(
        token=resolved_settings.digital_collections_token,
        base_url=resolved_settings.mods_base_url,
    )

    async def close_resources() -> None:
        await mods_client.close()

    return AppContainer(
        settings=resolved_settings,
        catalog=resolved_catalog,
        token_service=token_service,
        progress_store=progress_store,
        broadcast_hub=broadcast_hub,
        submission_service=submission_service,
        locations_service=locations_service,
        mods_client=mods_client,
        close_resources=close_resources,
    )


def bootstrap(settings: Settings | None = None) -> AppContainer:
    """Build the container and make sure the progress table exists.

    Raises FatalConfigError when the service must not start.
    """
    container = build_container(settings)
    container.progress_store.ensure_schema()
    logger.info(
        "Application ready",
        extra={"items": len(container.catalog.items())},
    )
    return container
