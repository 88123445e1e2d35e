"""
Tests for the OAuth code exchange. The provider is faked with httpx.MockTransport.
"""
import asyncio
import json

import httpx
import pytest

from item_server.errors import MalformedProviderResponse, UpstreamError
from item_server.identity import Authenticated
from item_server.oauth import OAuthExchanger, parse_access_token, subject_from_profile
from item_server.tokens import TokenCodec

PROVIDER = "https://provider.test"
API = "https://api.provider.test"


@pytest.fixture
def codec():
    return TokenCodec("oauth-test-secret-0123456789abcdef0123456")


def _exchanger(codec, handler):
    return OAuthExchanger(
        codec,
        client_id="cid",
        client_secret="csecret",
        provider_url=PROVIDER,
        api_url=API,
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


def _provider(calls, *, token_body="access_token=abc123&scope=repo&token_type=bearer", profile=None,
              token_status=200, profile_status=200):
    """Handler that records each request and answers like the provider."""
    if profile is None:
        profile = {"id": 7690509, "login": "someone"}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.url.path == "/login/oauth/access_token":
            return httpx.Response(token_status, text=token_body)
        if request.url.path == "/user":
            return httpx.Response(profile_status, json=profile)
        return httpx.Response(404)

    return handler


# --- parse_access_token ---


def test_parse_access_token_example():
    assert parse_access_token("access_token=abc123&scope=repo&token_type=bearer") == "abc123"


def test_parse_access_token_only_field():
    assert parse_access_token("access_token=xyz") == "xyz"


def test_parse_access_token_takes_second_segment_whatever_its_key():
    # Same splitting as the provider's default format: the key is not checked
    assert parse_access_token("scope=repo&access_token=abc") == "repo"


def test_parse_access_token_stops_at_next_equals():
    assert parse_access_token("access_token=abc&scope=a=b") == "abc"


@pytest.mark.parametrize("body", ["", "garbage", "access_token"])
def test_parse_access_token_without_equals_is_malformed(body):
    with pytest.raises(MalformedProviderResponse):
        parse_access_token(body)


def test_parse_access_token_empty_value_is_malformed():
    with pytest.raises(MalformedProviderResponse):
        parse_access_token("access_token=&scope=repo")


def test_malformed_provider_response_is_upstream_error():
    assert issubclass(MalformedProviderResponse, UpstreamError)


# --- subject_from_profile ---


def test_subject_from_profile_renders_decimal_string():
    assert subject_from_profile({"id": 7690509, "login": "x"}) == "7690509"


@pytest.mark.parametrize("profile", [{}, {"id": "7690509"}, {"id": True}, {"id": None}, [], "x"])
def test_subject_from_profile_requires_numeric_id(profile):
    with pytest.raises(MalformedProviderResponse):
        subject_from_profile(profile)


# --- exchange ---


def test_exchange_success(codec):
    calls = []
    exchanger = _exchanger(codec, _provider(calls))

    identity, token = asyncio.run(exchanger.exchange("one-time-code"))

    assert identity == Authenticated("7690509")
    assert codec.decode_and_validate(token)["id"] == "7690509"


def test_exchange_request_shape_and_order(codec):
    calls = []
    exchanger = _exchanger(codec, _provider(calls))

    asyncio.run(exchanger.exchange("one-time-code"))

    assert [c.url.path for c in calls] == ["/login/oauth/access_token", "/user"]
    exchange_req, profile_req = calls
    assert exchange_req.method == "POST"
    assert str(exchange_req.url) == f"{PROVIDER}/login/oauth/access_token"
    assert exchange_req.headers["content-type"] == "application/json"
    assert json.loads(exchange_req.content) == {
        "client_id": "cid",
        "client_secret": "csecret",
        "code": "one-time-code",
    }
    assert profile_req.method == "GET"
    assert str(profile_req.url) == f"{API}/user"
    assert profile_req.headers["authorization"] == "Bearer abc123"


def test_exchange_applies_configured_timeout_to_both_hops(codec):
    calls = []
    exchanger = _exchanger(codec, _provider(calls))

    asyncio.run(exchanger.exchange("one-time-code"))

    assert [c.url.path for c in calls] == ["/login/oauth/access_token", "/user"]
    for request in calls:
        assert request.extensions["timeout"] == {"connect": 5.0, "read": 5.0, "write": 5.0, "pool": 5.0}


def test_exchange_network_failure(codec):
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError):
        asyncio.run(_exchanger(codec, handler).exchange("code"))
    assert len(calls) == 1


def test_exchange_error_status(codec):
    calls = []
    exchanger = _exchanger(codec, _provider(calls, token_status=500))
    with pytest.raises(UpstreamError):
        asyncio.run(exchanger.exchange("code"))
    assert len(calls) == 1


def test_exchange_malformed_body_skips_profile(codec):
    calls = []
    exchanger = _exchanger(codec, _provider(calls, token_body="unexpected"))
    with pytest.raises(MalformedProviderResponse):
        asyncio.run(exchanger.exchange("code"))
    assert [c.url.path for c in calls] == ["/login/oauth/access_token"]


def test_exchange_profile_unauthorized(codec):
    """A rejected code parses to a bogus token; the profile fetch then fails."""
    calls = []
    exchanger = _exchanger(
        codec,
        _provider(
            calls,
            token_body="error=bad_verification_code&error_description=The+code+is+incorrect",
            profile_status=401,
        ),
    )
    with pytest.raises(UpstreamError):
        asyncio.run(exchanger.exchange("stale-code"))
    assert calls[1].headers["authorization"] == "Bearer bad_verification_code"


def test_exchange_profile_network_failure(codec):
    def handler(request):
        if request.url.path == "/user":
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(200, text="access_token=abc123&scope=")

    with pytest.raises(UpstreamError):
        asyncio.run(_exchanger(codec, handler).exchange("code"))


def test_exchange_profile_without_id(codec):
    calls = []
    exchanger = _exchanger(codec, _provider(calls, profile={"login": "someone"}))
    with pytest.raises(MalformedProviderResponse):
        asyncio.run(exchanger.exchange("code"))


def test_exchange_profile_not_json(codec):
    def handler(request):
        if request.url.path == "/user":
            return httpx.Response(200, text="<html>nope</html>")
        return httpx.Response(200, text="access_token=abc123")

    with pytest.raises(MalformedProviderResponse):
        asyncio.run(_exchanger(codec, handler).exchange("code"))
