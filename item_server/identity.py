"""
Caller identity for every inbound call.
The Authorization header carries a raw local token (no "Bearer" prefix). A missing or invalid
token resolves to Anonymous instead of failing the call, so public and private RPCs share one
transport; routes that need a caller check the identity themselves (see policy.py).
"""
import logging
from dataclasses import dataclass

from fastapi import Request
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from item_server.errors import TokenError
from item_server.tokens import TokenCodec

logger = logging.getLogger(__name__)

IDENTITY_HEADER = "Authorization"


@dataclass(frozen=True)
class Anonymous:
    @property
    def is_authenticated(self) -> bool:
        return False


@dataclass(frozen=True)
class Authenticated:
    subject: str

    @property
    def is_authenticated(self) -> bool:
        return True


Identity = Anonymous | Authenticated

ANONYMOUS = Anonymous()


def resolve_identity(header_value: str | None, codec: TokenCodec) -> Identity:
    """Map a header value to an Identity. Never raises for bad tokens."""
    if not header_value:
        return ANONYMOUS
    try:
        subject = codec.subject_from_token(header_value)
    except TokenError as e:
        logger.debug("Token rejected (%s); continuing as anonymous", type(e).__name__)
        return ANONYMOUS
    return Authenticated(subject)


class IdentityMiddleware:
    """ASGI middleware: resolve the caller once per request into request.state.identity."""

    def __init__(self, app: ASGIApp, codec: TokenCodec):
        self.app = app
        self.codec = codec

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            headers = Headers(scope=scope)
            identity = resolve_identity(headers.get(IDENTITY_HEADER), self.codec)
            scope.setdefault("state", {})["identity"] = identity
        await self.app(scope, receive, send)


def get_identity(request: Request) -> Identity:
    """Dependency: identity attached by IdentityMiddleware."""
    return getattr(request.state, "identity", ANONYMOUS)
