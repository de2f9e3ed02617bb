"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from where_api import DESCRIPTION, __version__
from where_api.app_logging import configure_logging
from where_api.containers import AppContainer
from where_api.domain.items import CatalogItem
from where_api.errors import NotFoundError, ValidationError, WhereApiError

CORS_HEADERS = [
    "Accept",
    "Content-Type",
    "Authorization",
    "Content-Length",
    "Connection",
    "X-Powered-By",
]


def _get_container(request: Request) -> AppContainer:
    return request.app.state.container


async def issue_credential(
    authorization: str | None = Header(default=None),
    container: AppContainer = Depends(_get_container),
) -> str:
    """Return the caller's credential, issuing a new one when absent."""
    return container.token_service.issue_or_passthrough(authorization)


async def require_session(
    authorization: str | None = Header(default=None),
    container: AppContainer = Depends(_get_container),
) -> str:
    """Return the session of a valid credential or fail with 401."""
    return container.token_service.verify(authorization)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Serving catalog",
            extra={"items": len(app.state.container.catalog.items())},
        )
        yield
        await app.state.container.close_resources()

    app = FastAPI(title=DESCRIPTION, version=__version__, lifespan=lifespan)
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=CORS_HEADERS,
        expose_headers=CORS_HEADERS,
    )

    @app.exception_handler(WhereApiError)
    async def handle_error(request: Request, exc: WhereApiError) -> JSONResponse:
        if exc.status_code >= 500:  # noqa: PLR2004
            logger.error(
                "Request failed",
                extra={"path": request.url.path, "error": str(exc)},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.get("/")
    async def index() -> dict[str, str]:
        """Describe the service."""
        return {"title": DESCRIPTION, "version": __version__}

    @app.get("/items")
    async def list_items(request: Request) -> list[dict[str, object]]:
        """Return every catalog item."""
        state_container: AppContainer = request.app.state.container
        return [item.to_dict() for item in state_container.catalog.items()]

    @app.get("/items/random")
    async def random_item(
        request: Request, credential: str = Depends(issue_credential)
    ) -> JSONResponse:
        """Return one random item and the caller's credential."""
        state_container: AppContainer = request.app.state.container
        return _item_response(state_container.catalog.random_item(), credential)

    @app.get("/items/{uuid}")
    async def get_item(
        uuid: str, request: Request, credential: str = Depends(issue_credential)
    ) -> JSONResponse:
        """Return one item and the caller's credential."""
        state_container: AppContainer = request.app.state.container
        return _item_response(state_container.catalog.get(uuid), credential)

    @app.get("/items/{uuid}/mods")
    async def get_item_mods(uuid: str, request: Request) -> dict[str, object]:
        """Proxy the MODS metadata of an item."""
        state_container: AppContainer = request.app.state.container
        try:
            return await state_container.mods_client.get_mods(uuid)
        except WhereApiError:
            logger.warning("MODS lookup failed", extra={"uuid": uuid}, exc_info=True)
            raise

    @app.post("/items/{uuid}")
    async def submit_step(
        uuid: str,
        request: Request,
        session: str = Depends(require_session),
    ) -> JSONResponse:
        """Record a step submitted as a GeoJSON Feature."""
        state_container: AppContainer = request.app.state.container
        try:
            feature = await request.json()
        except ValueError as exc:
            raise ValidationError("Feature should be a GeoJSON object") from exc
        ack = await state_container.submission_service.submit(
            item_id=uuid,
            session=session,
            feature=feature,
            client_info=_client_info(request),
        )
        return JSONResponse(
            content=ack.to_payload(),
            headers={"Authorization": request.headers["authorization"]},
        )

    @app.get("/locations")
    async def locations(request: Request) -> dict[str, object]:
        """Return the furthest completed step of every session."""
        state_container: AppContainer = request.app.state.container
        return await state_container.locations_service.latest()

    @app.get("/locations/latest")
    async def latest_locations(request: Request) -> dict[str, object]:
        """Return the most recently updated sessions only."""
        state_container: AppContainer = request.app.state.container
        return await state_container.locations_service.latest(
            state_container.settings.locations_latest_limit
        )

    @app.get("/collections")
    async def collections(request: Request) -> list[dict[str, object]]:
        """Return the catalog collections."""
        state_container: AppContainer = request.app.state.container
        return [
            collection.to_dict()
            for collection in state_container.catalog.collections
        ]

    return app


def _item_response(item: CatalogItem | None, credential: str) -> JSONResponse:
    """Serialize an item, carrying the credential even on a miss."""
    headers = {"Authorization": credential}
    if item is None:
        error = NotFoundError()
        return JSONResponse(
            status_code=error.status_code, content=error.to_payload(), headers=headers
        )
    return JSONResponse(content=item.to_dict(), headers=headers)


def _client_info(request: Request) -> dict[str, object]:
    """Describe the submitting client for auditing."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return {"ip": ip}
