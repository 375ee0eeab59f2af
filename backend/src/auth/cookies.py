"""Token transport: where the session token travels between client and server.

``TokenTransport`` is the primitive set the session layer needs (read, write,
delete). ``StarletteCookieTransport`` implements it over a Starlette/FastAPI
request and response: an HttpOnly cookie first, then an
``Authorization: Bearer`` header for API clients.
"""

from abc import ABC, abstractmethod
from typing import Optional

from starlette.requests import Request
from starlette.responses import Response


class TokenTransport(ABC):
    """Read/write/delete the session token on the current exchange."""

    @abstractmethod
    def read_token(self) -> Optional[str]:
        """Return the raw token string or None."""

    @abstractmethod
    def write_token(self, token: str, max_age: int) -> None:
        """Hand a newly issued token to the client."""

    @abstractmethod
    def delete_cookie(self) -> None:
        """Make the client forget its token."""


class StarletteCookieTransport(TokenTransport):
    """Cookie (preferred) or Bearer header transport for Starlette apps."""

    def __init__(
        self,
        request: Request,
        response: Optional[Response] = None,
        cookie_name: str = "session",
        secure: bool = True,
    ):
        self.request = request
        self.response = response
        self.cookie_name = cookie_name
        self.secure = secure

    def read_token(self) -> Optional[str]:
        token = self.request.cookies.get(self.cookie_name)
        if token:
            return token

        auth_header = self.request.headers.get("Authorization")
        if not auth_header:
            return None
        parts = auth_header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return None
        return parts[1]

    def write_token(self, token: str, max_age: int) -> None:
        self._require_response().set_cookie(
            self.cookie_name,
            token,
            max_age=max_age,
            httponly=True,
            secure=self.secure,
            samesite="lax",
            path="/",
        )

    def delete_cookie(self) -> None:
        self._require_response().delete_cookie(
            self.cookie_name,
            path="/",
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )

    def _require_response(self) -> Response:
        if self.response is None:
            raise RuntimeError("This transport was created without a response to write to")
        return self.response
