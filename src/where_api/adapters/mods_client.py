"""Digital Collections MODS metadata client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from where_api.errors import AuthError, UpstreamError, ValidationError


class ModsClient(Protocol):
    """Interface for fetching MODS records of catalog items."""

    async def get_mods(self, uuid: str) -> dict[str, object]:
        """Return the MODS document for an item."""


@dataclass
class HttpxModsClient(ModsClient):
    """HTTPX-backed client for the Digital Collections API."""

    token: str | None
    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, token: str | None, base_url: str) -> "HttpxModsClient":
        """Create a MODS client with a managed httpx session."""
        return cls(token=token, base_url=base_url, http_client=httpx.AsyncClient())

    async def get_mods(self, uuid: str) -> dict[str, object]:
        """Fetch the MODS capture of an item and unwrap the API envelope."""
        if not self.token:
            raise AuthError()
        url = f"{self.base_url.rstrip('/')}/{uuid}"
        try:
            response = await self.http_client.get(
                url,
                headers={"Authorization": f'Token token="{self.token}"'},
                timeout=15,
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamError(str(exc) or type(exc).__name__) from exc

        mods = _extract_mods(body)
        if mods is None:
            raise ValidationError("Cannot parse MODS result")
        return mods

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _extract_mods(body: object) -> dict[str, object] | None:
    if not isinstance(body, dict):
        return None
    api = body.get("nyplAPI")
    response = api.get("response") if isinstance(api, dict) else None
    mods = response.get("mods") if isinstance(response, dict) else None
    return mods if isinstance(mods, dict) and mods else None
