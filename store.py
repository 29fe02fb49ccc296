"""
Entity store: one contract over the relational and the document backend.

Services only ever talk to ``EntityStore``; which backend sits behind it is
decided once, at process start, by ``create_store``.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
import tempfile
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Union

from sqlalchemy import delete, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from config import Settings
from database import Base, make_engine, make_session_factory, session_scope
from errors import CorruptStoreError, StorageError
from models import (
    BudgetCategory,
    Expense,
    FinancialSettings,
    GroceryItem,
    GroceryList,
    MonthlySavings,
    PriceHistory,
)

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Predicate = Callable[[Record], bool]


class Collection(str, Enum):
    expenses = "expenses"
    budget_categories = "budget_categories"
    grocery_lists = "grocery_lists"
    grocery_items = "grocery_items"
    price_history = "price_history"
    financial_settings = "financial_settings"
    monthly_savings = "monthly_savings"


CollectionName = Union[Collection, str]


class KeyedLocks:
    """Re-entrant locks keyed by aggregate id (``"list:<id>"``, ``"month:2025-01"``)."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
        with lock:
            yield


class EntityStore(ABC):
    """
    Backend-agnostic persistence over named record collections.

    Records are plain dicts with a string ``id``. ``get`` of a missing id
    returns None and ``delete`` of a missing id is a no-op. Backend failures
    raise ``StorageError``, or ``CorruptStoreError`` when the stored layout no
    longer matches.
    """

    def __init__(self) -> None:
        self.locks = KeyedLocks()

    @abstractmethod
    def get_all(self, collection: CollectionName) -> list[Record]:
        """Every record of the collection, in no particular order."""

    @abstractmethod
    def get(self, collection: CollectionName, record_id: str) -> Optional[Record]:
        """The record with this id, or None."""

    @abstractmethod
    def put(self, collection: CollectionName, record: Record) -> None:
        """Insert or replace by ``record["id"]``."""

    @abstractmethod
    def delete(self, collection: CollectionName, record_id: str) -> None:
        """Remove the record if present."""

    def create_schema(self) -> None:
        """Create any missing collections; a no-op for schemaless backends."""

    def filter(self, collection: CollectionName, predicate: Predicate) -> list[Record]:
        return [record for record in self.get_all(collection) if predicate(record)]

    @abstractmethod
    def reset(self) -> None:
        """Drop every collection and recreate them empty."""

    def close(self) -> None:
        pass


def _collection(name: CollectionName) -> Collection:
    return name if isinstance(name, Collection) else Collection(name)


def _require_id(record: Record) -> str:
    record_id = record.get("id")
    if not isinstance(record_id, str) or not record_id:
        raise ValueError("Record requires a non-empty string id")
    return record_id


SQL_MODELS: dict[Collection, type[Base]] = {
    Collection.expenses: Expense,
    Collection.budget_categories: BudgetCategory,
    Collection.grocery_lists: GroceryList,
    Collection.grocery_items: GroceryItem,
    Collection.price_history: PriceHistory,
    Collection.financial_settings: FinancialSettings,
    Collection.monthly_savings: MonthlySavings,
}

# the field set of every collection, shared by both backends
RECORD_FIELDS: dict[Collection, tuple[str, ...]] = {
    collection: tuple(attr.key for attr in inspect(model).column_attrs)
    for collection, model in SQL_MODELS.items()
}


def normalise_record(collection: CollectionName, record: Record) -> Record:
    """Return ``record`` over the full field set, absent fields as None."""
    collection = _collection(collection)
    _require_id(record)
    fields = RECORD_FIELDS[collection]
    unknown = set(record) - set(fields)
    if unknown:
        raise ValueError(
            f"Unknown fields for {collection.value}: {', '.join(sorted(unknown))}"
        )
    return {field: record.get(field) for field in fields}


_SCHEMA_MISMATCH = re.compile(r"no such (table|column)|has no column named", re.I)


def _storage_error(exc: SQLAlchemyError, message: str) -> StorageError:
    if isinstance(exc, OperationalError) and _SCHEMA_MISMATCH.search(str(exc.orig)):
        return CorruptStoreError(f"{message}: schema mismatch ({exc.orig})")
    return StorageError(message)


class SQLEntityStore(EntityStore):
    """Relational backend: one SQLAlchemy session scope per operation."""

    def __init__(self, engine: Engine, *, create_schema: bool = True) -> None:
        super().__init__()
        self.engine = engine
        self.session_factory = make_session_factory(engine)
        if create_schema:
            self.create_schema()

    @classmethod
    def from_url(cls, database_url: str) -> "SQLEntityStore":
        return cls(make_engine(database_url))

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise _storage_error(exc, "Failed to create relational schema") from exc

    @staticmethod
    def _to_record(row: Base) -> Record:
        mapper = inspect(type(row))
        return {attr.key: getattr(row, attr.key) for attr in mapper.column_attrs}

    def get_all(self, collection: CollectionName) -> list[Record]:
        model = SQL_MODELS[_collection(collection)]
        try:
            with session_scope(self.session_factory) as session:
                rows = session.scalars(select(model)).all()
                return [self._to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise _storage_error(exc, f"Failed to read {collection}") from exc

    def get(self, collection: CollectionName, record_id: str) -> Optional[Record]:
        model = SQL_MODELS[_collection(collection)]
        try:
            with session_scope(self.session_factory) as session:
                row = session.get(model, record_id)
                return self._to_record(row) if row is not None else None
        except SQLAlchemyError as exc:
            message = f"Failed to read {collection}/{record_id}"
            raise _storage_error(exc, message) from exc

    def put(self, collection: CollectionName, record: Record) -> None:
        model = SQL_MODELS[_collection(collection)]
        record = normalise_record(collection, record)
        try:
            with session_scope(self.session_factory) as session:
                session.merge(model(**record))
        except SQLAlchemyError as exc:
            message = f"Failed to write {collection}/{record['id']}"
            raise _storage_error(exc, message) from exc

    def delete(self, collection: CollectionName, record_id: str) -> None:
        model = SQL_MODELS[_collection(collection)]
        try:
            with session_scope(self.session_factory) as session:
                session.execute(delete(model).where(model.id == record_id))
        except SQLAlchemyError as exc:
            message = f"Failed to delete {collection}/{record_id}"
            raise _storage_error(exc, message) from exc

    def reset(self) -> None:
        logger.info("store_reset: backend=sql")
        try:
            Base.metadata.drop_all(self.engine)
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError("Failed to reset relational schema") from exc

    def close(self) -> None:
        self.engine.dispose()


class DocumentEntityStore(EntityStore):
    """
    Document backend: one ``{id: record}`` mapping per collection.

    With a ``path`` the whole document is rewritten atomically after every
    mutation; without one it lives in memory only. The file is read on first
    access, so a damaged file surfaces as ``CorruptStoreError`` from the first
    operation and ``reset`` can replace it. All access is serialised by one
    store-wide lock, and a mutation whose write fails is undone in memory.
    There is no foreign-key enforcement, dependents are removed by the
    services.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        super().__init__()
        self.path = Path(path) if path is not None else None
        self._mutex = threading.RLock()
        self._data: Optional[dict[str, dict[str, Record]]] = None

    @staticmethod
    def _empty() -> dict[str, dict[str, Record]]:
        return {collection.value: {} for collection in Collection}

    def _records(self, collection: CollectionName) -> dict[str, Record]:
        if self._data is None:
            if self.path is not None and self.path.exists():
                self._data = self._load()
            else:
                self._data = self._empty()
        return self._data[_collection(collection).value]

    def _load(self) -> dict[str, dict[str, Record]]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except ValueError as exc:
            raise CorruptStoreError(f"Unreadable document store {self.path}") from exc
        except OSError as exc:
            raise StorageError(f"Failed to load document store {self.path}") from exc
        if not isinstance(payload, dict):
            raise CorruptStoreError(f"Unexpected document store layout in {self.path}")
        data = self._empty()
        for name, records in payload.items():
            if name not in data or not isinstance(records, dict):
                raise CorruptStoreError(
                    f"Unknown collection in document store: {name}"
                )
            data[name] = records
        return data

    def _flush(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            raise StorageError(f"Failed to write document store {self.path}") from exc

    def get_all(self, collection: CollectionName) -> list[Record]:
        with self._mutex:
            records = self._records(collection)
            return [copy.deepcopy(record) for record in records.values()]

    def get(self, collection: CollectionName, record_id: str) -> Optional[Record]:
        with self._mutex:
            record = self._records(collection).get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def put(self, collection: CollectionName, record: Record) -> None:
        record = normalise_record(collection, record)
        with self._mutex:
            records = self._records(collection)
            previous = records.get(record["id"])
            records[record["id"]] = copy.deepcopy(record)
            try:
                self._flush()
            except StorageError:
                if previous is None:
                    del records[record["id"]]
                else:
                    records[record["id"]] = previous
                raise

    def delete(self, collection: CollectionName, record_id: str) -> None:
        with self._mutex:
            records = self._records(collection)
            previous = records.pop(record_id, None)
            if previous is None:
                return
            try:
                self._flush()
            except StorageError:
                records[record_id] = previous
                raise

    def reset(self) -> None:
        logger.info("store_reset: backend=document")
        with self._mutex:
            previous = self._data
            self._data = self._empty()
            try:
                self._flush()
            except StorageError:
                self._data = previous
                raise


def create_store(settings: Settings) -> EntityStore:
    if settings.storage_backend == "document":
        logger.info(f"store_open: backend=document path={settings.document_path}")
        return DocumentEntityStore(settings.document_path)
    if settings.storage_backend == "sql":
        logger.info(f"store_open: backend=sql url={settings.database_url}")
        return SQLEntityStore.from_url(settings.database_url)
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


# parents before children so relational foreign keys are satisfied
COPY_ORDER = (
    Collection.financial_settings,
    Collection.budget_categories,
    Collection.expenses,
    Collection.monthly_savings,
    Collection.grocery_lists,
    Collection.grocery_items,
    Collection.price_history,
)


def copy_store(source: EntityStore, target: EntityStore) -> int:
    """Copy every record of ``source`` into ``target``; returns the record count."""
    count = 0
    for collection in COPY_ORDER:
        for record in source.get_all(collection):
            target.put(collection, record)
            count += 1
        logger.info(f"store_copy: collection={collection.value} total={count}")
    return count
