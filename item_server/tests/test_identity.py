"""Tests for identity resolution: missing, bad and valid tokens, and the middleware."""
import time

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from item_server.identity import (
    ANONYMOUS,
    Anonymous,
    Authenticated,
    IdentityMiddleware,
    get_identity,
    resolve_identity,
)
from item_server.tokens import TokenCodec

SECRET = "identity-test-secret-0123456789abcdef012345"


@pytest.fixture
def codec():
    return TokenCodec(SECRET)


@pytest.fixture
def client(codec):
    app = FastAPI()
    app.add_middleware(IdentityMiddleware, codec=codec)

    @app.get("/whoami")
    def whoami(identity=Depends(get_identity)):
        if isinstance(identity, Authenticated):
            return {"authenticated": True, "subject": identity.subject}
        return {"authenticated": False}

    return TestClient(app)


@pytest.mark.parametrize("header", [None, ""])
def test_missing_header_is_anonymous(codec, header):
    assert resolve_identity(header, codec) == ANONYMOUS


def test_valid_token_is_authenticated(codec):
    identity = resolve_identity(codec.issue("42"), codec)
    assert identity == Authenticated("42")
    assert identity.is_authenticated


@pytest.mark.parametrize("header", ["garbage", "a.b.c", "Bearer x.y.z"])
def test_malformed_token_is_anonymous(codec, header):
    identity = resolve_identity(header, codec)
    assert isinstance(identity, Anonymous)
    assert not identity.is_authenticated


def test_bearer_prefix_not_accepted(codec):
    """Header carries the raw token; a scheme prefix makes it unreadable."""
    assert resolve_identity(f"Bearer {codec.issue('42')}", codec) == ANONYMOUS


def test_token_from_other_secret_is_anonymous(codec):
    other = TokenCodec("another-secret-0123456789abcdef0123456789")
    assert resolve_identity(other.issue("42"), codec) == ANONYMOUS


def test_expired_token_is_anonymous(codec):
    token = codec.encode({"id": "42", "exp": int(time.time()) - 5})
    assert resolve_identity(token, codec) == ANONYMOUS


def test_token_without_id_is_anonymous(codec):
    assert resolve_identity(codec.encode({"sub": "42"}), codec) == ANONYMOUS


def test_middleware_without_header(client):
    r = client.get("/whoami")
    assert r.status_code == 200
    assert r.json() == {"authenticated": False}


def test_middleware_with_valid_token(client, codec):
    r = client.get("/whoami", headers={"Authorization": codec.issue("42")})
    assert r.status_code == 200
    assert r.json() == {"authenticated": True, "subject": "42"}


def test_middleware_bad_token_does_not_fail_request(client):
    r = client.get("/whoami", headers={"Authorization": "not-a-token"})
    assert r.status_code == 200
    assert r.json() == {"authenticated": False}
