"""
ItemService: CRUD and search over the document store, gated by caller identity.
The identity is passed in explicitly by the transport layer (resolved by IdentityMiddleware).
"""
import json
import logging
import time
from collections.abc import Callable

from item_server.errors import NotFound, SerializationError, StoreError
from item_server.identity import Identity
from item_server.oauth import OAuthExchanger
from item_server.policy import AuthorizationPolicy
from item_server.schemas import JsonObject, Query, SearchQuery, Token, User
from item_server.store import DocumentStore, StoreResult
from item_server.tokens import TokenCodec

logger = logging.getLogger(__name__)

# Fields only the server may set
SERVER_OWNED_FIELDS = ("id", "user", "createdAt")


def _decode(result: StoreResult) -> JsonObject:
    """Decode a stored document and tag it with its store id."""
    try:
        item = json.loads(result.document)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Could not decode item {result.id}: {e}") from e
    if not isinstance(item, dict):
        raise SerializationError(f"Item {result.id} is not a JSON object")
    # The id lives beside the document, not in it
    item["id"] = result.id
    return item


def _decode_all(results: list[StoreResult | None]) -> list[JsonObject]:
    return [_decode(r) for r in results if r is not None and r.document is not None]


def _client_fields(item: JsonObject | None) -> JsonObject:
    """Copy of the client payload without server-owned fields."""
    return {k: v for k, v in (item or {}).items() if k not in SERVER_OWNED_FIELDS}


class ItemService:
    def __init__(
        self,
        store: DocumentStore,
        codec: TokenCodec,
        policy: AuthorizationPolicy,
        exchanger: OAuthExchanger,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.codec = codec
        self.policy = policy
        self.exchanger = exchanger
        self._clock = clock

    def add_item(self, identity: Identity, query: Query) -> JsonObject:
        """
        Insert the item as-is (schemaless). user and createdAt are always overwritten
        with the caller's subject and the server clock, whatever the client sent.
        """
        subject = self.policy.require_authenticated(identity)
        item = _client_fields(query.item)
        item["user"] = subject
        item["createdAt"] = int(self._clock())

        item_id = self.store.insert(item)
        if not item_id:
            raise StoreError("Unable to insert into collection.")
        logger.info("Item created id=%s user=%s", item_id, subject)
        item["id"] = item_id
        return item

    def get_item(self, query: Query) -> JsonObject:
        result = self.store.find_by_id(query.id)
        if result is None or result.document is None:
            raise NotFound(f"Item {query.id} not found")
        return _decode(result)

    def get_items(self) -> list[JsonObject]:
        """Every stored item. Entries without a document are skipped."""
        return _decode_all(self.store.find_all())

    def update_item(self, identity: Identity, query: Query) -> JsonObject:
        """Admin only. Replaces the client fields; user and createdAt keep their stored values."""
        subject = self.policy.require_admin(identity)
        existing = self.store.find_by_id(query.id)
        if existing is None or existing.document is None:
            logger.warning("Update matched no item id=%s", query.id)
            raise StoreError("Failed to update Item.")
        stored = _decode(existing)

        item = _client_fields(query.item)
        for field in ("user", "createdAt"):
            if field in stored:
                item[field] = stored[field]

        if not self.store.update_by_id(query.id, item):
            logger.warning("Update matched no item id=%s", query.id)
            raise StoreError("Failed to update Item.")
        logger.info("Item updated id=%s by=%s", query.id, subject)
        item["id"] = query.id
        return item

    def delete_item(self, identity: Identity, query: Query) -> Query:
        """Admin only. Echoes the query on success."""
        subject = self.policy.require_admin(identity)
        if not self.store.delete_by_id(query.id):
            logger.warning("Delete matched no item id=%s", query.id)
            raise StoreError("Failed to delete Item.")
        logger.info("Item deleted id=%s by=%s", query.id, subject)
        return query

    def search(self, search_query: SearchQuery) -> list[JsonObject]:
        return _decode_all(self.store.search(search_query.query))

    async def verify_oauth(self, token: Token) -> User:
        """Exchange a one-time provider code for a local token."""
        identity, jwt = await self.exchanger.exchange(token.token)
        return User(name=identity.subject, jwt=jwt)

    def verify_jwt(self, token: Token) -> User:
        """
        Validate a local token and return its user. Unlike IdentityMiddleware this
        surfaces MalformedToken / InvalidSignature / ExpiredToken to the caller.
        """
        subject = self.codec.subject_from_token(token.token)
        return User(name=subject, jwt=token.token)
