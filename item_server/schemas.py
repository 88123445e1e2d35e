"""
Request/response messages of the items.ItemService RPC surface.
Items themselves stay plain JSON objects: the store is schemaless and nothing validates them.
"""
from typing import Any

from pydantic import BaseModel

JsonObject = dict[str, Any]


class Query(BaseModel):
    """Envelope shared by AddItem, GetItem, UpdateItem and DeleteItem."""
    id: str = ""
    item: JsonObject | None = None


class SearchQuery(BaseModel):
    query: str = ""


class Token(BaseModel):
    """VerifyOauth: one-time provider code. VerifyJwt: local token."""
    token: str = ""


class User(BaseModel):
    name: str
    jwt: str


class Items(BaseModel):
    items: list[JsonObject]
