"""
Local token codec. HS256 JWTs signed with a process-wide secret; the only claim this
server interprets is "id" (the caller's subject).
"""
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from item_server.errors import ExpiredToken, InvalidSignature, MalformedToken

ALGORITHM = "HS256"
SUBJECT_CLAIM = "id"


class TokenCodec:
    def __init__(self, secret: str, expires_in: int = 0):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        # 0 keeps tokens free of an exp claim
        self._expires_in = expires_in

    def encode(self, claims: dict[str, Any]) -> str:
        """Sign the claims mapping. Adds exp when a lifetime is configured."""
        payload = dict(claims)
        if self._expires_in > 0:
            now = datetime.now(timezone.utc)
            payload.setdefault("iat", int(now.timestamp()))
            payload.setdefault("exp", int((now + timedelta(seconds=self._expires_in)).timestamp()))
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        if isinstance(token, bytes):
            token = token.decode("utf-8")
        return token

    def decode_and_validate(self, token: str) -> dict[str, Any]:
        """
        Verify signature (and exp, if present). Returns the claims.
        Raises MalformedToken, InvalidSignature or ExpiredToken.
        """
        if not token:
            raise MalformedToken("No token")
        try:
            return jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except jwt.ExpiredSignatureError:
            raise ExpiredToken("Token expired")
        except jwt.InvalidSignatureError:
            raise InvalidSignature("Token signature mismatch")
        except jwt.InvalidTokenError as e:
            raise MalformedToken(f"Malformed token: {e}")

    def subject_from_token(self, token: str) -> str:
        """Decode and return the string "id" claim."""
        claims = self.decode_and_validate(token)
        subject = claims.get(SUBJECT_CLAIM)
        if not isinstance(subject, str) or not subject:
            raise MalformedToken(f"Could not read subject from claim {SUBJECT_CLAIM!r}: {subject!r}")
        return subject

    def issue(self, subject: str) -> str:
        """Mint a token for the given subject."""
        return self.encode({SUBJECT_CLAIM: subject})
