"""Anonymous session credentials."""

import secrets
from dataclasses import dataclass

import jwt

from where_api.errors import AuthError, FatalConfigError

SESSION_BYTES = 16
_ALGORITHM = "HS256"
_BEARER_PREFIX = "Bearer "


def new_session_id() -> str:
    """Return a random session identifier with 128 bits of entropy."""
    return secrets.token_hex(SESSION_BYTES)


@dataclass(frozen=True)
class TokenService:
    """Issues and verifies signed session credentials."""

    key: str

    def __post_init__(self) -> None:
        if not self.key:
            raise FatalConfigError("Please set WHERE_PRIVATE_KEY environment variable!")

    def issue(self, session: str | None = None) -> str:
        """Sign a credential for `session`, or for a freshly generated one."""
        return jwt.encode(
            {"session": session or new_session_id()}, self.key, algorithm=_ALGORITHM
        )

    def issue_or_passthrough(self, credential: str | None) -> str:
        """Return the presented credential unchanged, or issue a new one."""
        if credential:
            return credential
        return self.issue()

    def verify(self, credential: str | None) -> str:
        """Return the session embedded in a valid credential."""
        if not credential:
            raise AuthError()
        token = credential.removeprefix(_BEARER_PREFIX).strip()
        try:
            claims = jwt.decode(token, self.key, algorithms=[_ALGORITHM])
        except jwt.PyJWTError as exc:
            raise AuthError() from exc
        session = claims.get("session")
        if not isinstance(session, str) or not session:
            raise AuthError()
        return session
