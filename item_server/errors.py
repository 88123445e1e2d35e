"""
Error taxonomy for the item server. Each error carries the OAuth-style error code and
HTTP status the transport layer reports; nothing below main.py knows about HTTP responses.
"""


class ItemServerError(Exception):
    error = "server_error"
    status_code = 500

    def __init__(self, description: str = ""):
        super().__init__(description)
        self.description = description


class Unauthenticated(ItemServerError):
    error = "unauthenticated"
    status_code = 401


class Forbidden(ItemServerError):
    error = "forbidden"
    status_code = 403


class NotFound(ItemServerError):
    error = "not_found"
    status_code = 404


class TokenError(ItemServerError):
    """Base for token decode failures."""
    error = "invalid_token"
    status_code = 401


class MalformedToken(TokenError):
    pass


class InvalidSignature(TokenError):
    pass


class ExpiredToken(TokenError):
    pass


class UpstreamError(ItemServerError):
    """Identity provider unreachable or returned something we cannot use."""
    error = "upstream_error"
    status_code = 502


class MalformedProviderResponse(UpstreamError):
    pass


class StoreError(ItemServerError):
    error = "store_error"
    status_code = 500


class SerializationError(ItemServerError):
    error = "serialization_error"
    status_code = 500
