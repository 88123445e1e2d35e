"""
OAuth code exchange against the identity provider (GitHub wire contract).
code -> provider access token -> provider profile -> local token.
The two outbound hops are strictly sequential, each on a fresh client with an explicit timeout.
"""
import logging

import httpx

from item_server.errors import MalformedProviderResponse, UpstreamError
from item_server.identity import Authenticated
from item_server.tokens import TokenCodec

logger = logging.getLogger(__name__)

ACCESS_TOKEN_PATH = "/login/oauth/access_token"
CURRENT_USER_PATH = "/user"


def parse_access_token(body: str) -> str:
    """
    Extract the access token from the provider's default (form-encoded) exchange response.
    Grammar: split on "=", take the second segment; split that on "&", take the first.
    "access_token=abc123&scope=repo&token_type=bearer" -> "abc123"
    """
    segments = body.split("=")
    if len(segments) < 2:
        raise MalformedProviderResponse("Unexpected access token response from provider")
    access_token = segments[1].split("&")[0]
    if not access_token:
        raise MalformedProviderResponse("Provider returned an empty access token")
    return access_token


def subject_from_profile(profile: object) -> str:
    """Render the profile's numeric id as the local subject."""
    user_id = profile.get("id") if isinstance(profile, dict) else None
    # bool is an int subclass; a provider id never is one
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise MalformedProviderResponse(f"Could not read numeric user id from profile: {user_id!r}")
    return str(user_id)


class OAuthExchanger:
    def __init__(
        self,
        codec: TokenCodec,
        *,
        client_id: str,
        client_secret: str,
        provider_url: str,
        api_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.codec = codec
        self.client_id = client_id
        self.client_secret = client_secret
        self.provider_url = provider_url.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        # Tests inject httpx.MockTransport here
        self._transport = transport

    def _client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport, **kwargs)

    async def fetch_access_token(self, code: str) -> str:
        """POST the one-time code with our client credentials; return the provider access token."""
        body = {"client_id": self.client_id, "client_secret": self.client_secret, "code": code}
        try:
            async with self._client() as client:
                r = await client.post(f"{self.provider_url}{ACCESS_TOKEN_PATH}", json=body)
        except httpx.HTTPError as e:
            logger.warning("Code exchange request failed: %s", type(e).__name__)
            raise UpstreamError(f"Code exchange request failed: {e}") from e
        if not r.is_success:
            logger.warning("Code exchange returned status %s", r.status_code)
            raise UpstreamError(f"Code exchange returned status {r.status_code}")
        # Response is form-encoded text even though the request is JSON
        return parse_access_token(r.text)

    async def fetch_profile(self, access_token: str) -> dict:
        """GET the current user's profile with a client authenticated by the access token."""
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
        }
        try:
            async with self._client(headers=headers) as client:
                r = await client.get(f"{self.api_url}{CURRENT_USER_PATH}")
        except httpx.HTTPError as e:
            logger.warning("Profile request failed: %s", type(e).__name__)
            raise UpstreamError(f"Profile request failed: {e}") from e
        if not r.is_success:
            logger.warning("Profile request returned status %s", r.status_code)
            raise UpstreamError(f"Profile request returned status {r.status_code}")
        try:
            return r.json()
        except ValueError as e:
            raise MalformedProviderResponse("Profile response is not JSON") from e

    async def exchange(self, code: str) -> tuple[Authenticated, str]:
        """
        Exchange a one-time provider code for (identity, local token).
        Any failure is returned to the caller; nothing is retried.
        """
        access_token = await self.fetch_access_token(code)
        profile = await self.fetch_profile(access_token)
        subject = subject_from_profile(profile)
        token = self.codec.issue(subject)
        logger.info("OAuth exchange succeeded for subject=%s", subject)
        return Authenticated(subject), token
