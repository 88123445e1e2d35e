"""
Document store: key-addressed JSON documents plus free-text search.
ItemService only talks to DocumentStore; SqlDocumentStore is the SQLAlchemy implementation.
Documents cross this boundary as raw JSON text so the service owns decoding.
"""
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from item_server.errors import SerializationError, StoreError
from item_server.models import ItemDocument


@dataclass
class StoreResult:
    id: str
    document: str | None  # raw JSON text; None when the store holds no source for this id


class DocumentStore(ABC):
    @abstractmethod
    def insert(self, document: dict[str, Any]) -> str:
        """Store a new document; return its assigned id."""

    @abstractmethod
    def find_by_id(self, item_id: str) -> StoreResult | None:
        ...

    @abstractmethod
    def find_all(self) -> list[StoreResult | None]:
        ...

    @abstractmethod
    def update_by_id(self, item_id: str, document: dict[str, Any]) -> bool:
        """Replace the document. False if no document has this id."""

    @abstractmethod
    def delete_by_id(self, item_id: str) -> bool:
        """False if no document has this id."""

    @abstractmethod
    def search(self, query: str) -> list[StoreResult | None]:
        ...


def _dumps(document: dict[str, Any]) -> str:
    # NaN/Infinity are not JSON; they could never be rendered back to a client
    try:
        return json.dumps(document, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Could not encode document: {e}") from e


def _text_values(value: Any):
    """Yield the searchable (string/number) leaves of a JSON value."""
    if isinstance(value, dict):
        for v in value.values():
            yield from _text_values(v)
    elif isinstance(value, list):
        for v in value:
            yield from _text_values(v)
    elif isinstance(value, (str, int, float)) and not isinstance(value, bool):
        yield str(value)


def _matches(document: str | None, terms: list[str]) -> bool:
    """Every term must appear (case-insensitive) in some value; keys do not count."""
    if document is None:
        return False
    try:
        haystack = " ".join(_text_values(json.loads(document))).lower()
    except ValueError:
        return False
    return all(t in haystack for t in terms)


class SqlDocumentStore(DocumentStore):
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def insert(self, document: dict[str, Any]) -> str:
        raw = _dumps(document)
        item_id = uuid.uuid4().hex
        db = self._session()
        try:
            db.add(ItemDocument(id=item_id, document=raw))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Unable to insert into collection: {e}") from e
        finally:
            db.close()
        return item_id

    def find_by_id(self, item_id: str) -> StoreResult | None:
        db = self._session()
        try:
            row = db.get(ItemDocument, item_id)
            return StoreResult(id=row.id, document=row.document) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"Unable to read item {item_id}: {e}") from e
        finally:
            db.close()

    def find_all(self) -> list[StoreResult | None]:
        db = self._session()
        try:
            rows = db.query(ItemDocument).order_by(ItemDocument.created_at).all()
            return [StoreResult(id=r.id, document=r.document) for r in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"Unable to list items: {e}") from e
        finally:
            db.close()

    def update_by_id(self, item_id: str, document: dict[str, Any]) -> bool:
        raw = _dumps(document)
        db = self._session()
        try:
            row = db.get(ItemDocument, item_id)
            if row is None:
                return False
            row.document = raw
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Unable to update item {item_id}: {e}") from e
        finally:
            db.close()

    def delete_by_id(self, item_id: str) -> bool:
        db = self._session()
        try:
            row = db.get(ItemDocument, item_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"Unable to delete item {item_id}: {e}") from e
        finally:
            db.close()

    def search(self, query: str) -> list[StoreResult | None]:
        """
        Case-insensitive match of every whitespace-separated term against document values.
        Matching runs on decoded values in Python: SQL over the raw JSON text would see escaped
        quotes/backslashes, fold only ASCII case, and match field names.
        """
        terms = [t.lower() for t in query.split()]
        if not terms:
            return []
        db = self._session()
        try:
            rows = (
                db.query(ItemDocument)
                .filter(ItemDocument.document.is_not(None))
                .order_by(ItemDocument.created_at)
                .all()
            )
        except SQLAlchemyError as e:
            raise StoreError(f"Unable to search items: {e}") from e
        finally:
            db.close()
        return [StoreResult(id=r.id, document=r.document) for r in rows if _matches(r.document, terms)]
