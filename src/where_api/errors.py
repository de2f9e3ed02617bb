"""Error taxonomy shared by services and the HTTP layer."""


class WhereApiError(Exception):
    """Base class for errors rendered as `{"result": "error"}` responses."""

    status_code = 500

    def __init__(self, message: str | list[str]) -> None:
        super().__init__(message if isinstance(message, str) else "; ".join(message))
        self.message = message

    def to_payload(self) -> dict[str, object]:
        """Return the JSON error body, collapsing single-item message lists."""
        message = self.message
        if isinstance(message, list) and len(message) == 1:
            message = message[0]
        return {"result": "error", "message": message}


class AuthError(WhereApiError):
    """Missing or invalid session credential."""

    status_code = 401

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)


class NotFoundError(WhereApiError):
    """Unknown catalog item."""

    status_code = 404

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class ValidationError(WhereApiError):
    """Malformed step submission or invalid geometry."""

    status_code = 406


class PersistenceError(WhereApiError):
    """Storage operation failed or timed out."""

    status_code = 500


class UpstreamError(WhereApiError):
    """External metadata service failed."""

    status_code = 500


class FatalConfigError(Exception):
    """Startup misconfiguration; the process must not serve traffic."""
