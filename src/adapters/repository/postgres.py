"""
PostgreSQL document store adapter - Implements DocumentStore protocol.

This module provides the PostgreSQL implementation of the domain's
document store port using psycopg3 with raw SQL.

Storage Design:
--------------
Documents live in a single ``documents`` table keyed by their full path,
with the parent collection path stored alongside so collection queries
are a single indexed predicate. Fields are stored as JSONB.

1. **Arrival order**: ``seq`` is a BIGSERIAL assigned on first insert and
   kept on replacement; snapshots are ordered by it.

2. **Collection groups**: wildcard collection paths (``ns/users/*``) are
   translated into an anchored regular expression evaluated with ``~``.

3. **Change notification**: every write issues
   ``pg_notify('document_changes', <parent>)`` in the same transaction.
   A ChangeListener thread holds a dedicated LISTEN connection and
   republishes full snapshots to the subscriptions whose pattern matches
   the notified parent. Notifications are only delivered after commit, so
   subscribers never observe uncommitted state.

All psycopg errors are translated into StoreError at this boundary.
"""

import itertools
import logging
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import psycopg
from psycopg.types.json import Jsonb
from psycopg_pool import ConnectionPool

from src.adapters.repository.matching import collection_regex, parent_of, validate_document_path
from src.domain.exceptions import NotFoundError, StoreError
from src.domain.ports import Document, FieldFilter, SnapshotCallback, Unsubscribe

logger = logging.getLogger(__name__)

NOTIFY_CHANNEL = "document_changes"


@dataclass
class _Subscription:
    regex: str
    pattern: re.Pattern[str]
    callback: SnapshotCallback
    where: FieldFilter | None
    # Until ``ready``, the subscribing thread owns delivery and dispatch only
    # marks the subscription ``dirty``; afterwards the listener thread does.
    ready: bool = False
    dirty: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock)


class PostgresDocumentStore:
    """
    Implements DocumentStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool
        self._subscriptions: dict[int, _Subscription] = {}
        self._ids = itertools.count()
        self._lock = threading.Lock()

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    @contextmanager
    def _connection(self) -> Iterator[psycopg.Connection]:
        try:
            with self._pool.connection() as conn:
                yield conn
        except psycopg.Error as e:
            logger.error("Document store failure: %s", e)
            raise StoreError(str(e)) from e

    def get(self, path: str) -> Document | None:
        path = self._validate(path)
        sql = "SELECT fields FROM documents WHERE path = %s"

        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (path,))
            row = cursor.fetchone()
        if row is None:
            return None
        return Document(path=path, fields=row[0])

    def set(self, path: str, fields: dict[str, Any]) -> None:
        """
        Create or replace the document at path.

        Replacement keeps the original ``seq`` so the document does not
        move within its collection's arrival order.
        """
        path = self._validate(path)
        parent = parent_of(path)
        sql = """
            INSERT INTO documents (path, parent, fields)
            VALUES (%s, %s, %s)
            ON CONFLICT (path) DO UPDATE
            SET fields = EXCLUDED.fields,
                updated_at = NOW()
        """

        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (path, parent, Jsonb(fields)))
            cursor.execute("SELECT pg_notify(%s, %s)", (NOTIFY_CHANNEL, parent))
            conn.commit()

    def update(self, path: str, fields: dict[str, Any]) -> None:
        """
        Merge fields into an existing document (top-level JSONB merge).

        Raises:
            NotFoundError: If no document exists at path
        """
        path = self._validate(path)
        parent = parent_of(path)
        sql = """
            UPDATE documents
            SET fields = fields || %s, updated_at = NOW()
            WHERE path = %s
        """

        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, (Jsonb(fields), path))
            if cursor.rowcount != 1:
                conn.rollback()
                raise NotFoundError(path)
            cursor.execute("SELECT pg_notify(%s, %s)", (NOTIFY_CHANNEL, parent))
            conn.commit()

    def delete(self, path: str) -> None:
        path = self._validate(path)
        parent = parent_of(path)

        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute("DELETE FROM documents WHERE path = %s", (path,))
            if cursor.rowcount == 1:
                cursor.execute("SELECT pg_notify(%s, %s)", (NOTIFY_CHANNEL, parent))
            conn.commit()

    def subscribe_collection(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        where: FieldFilter | None = None,
    ) -> Unsubscribe:
        """
        Open a live subscription and deliver the initial snapshot.

        The subscription is registered before the initial query. A change
        dispatched while that query runs makes this call query and deliver
        again, so the subscriber's last snapshot is never older than the
        change. Later snapshots are delivered from the ChangeListener thread.
        """
        regex = collection_regex(path)
        subscription = _Subscription(
            regex=regex,
            pattern=re.compile(regex),
            callback=on_snapshot,
            where=where,
        )
        with self._lock:
            subscription_id = next(self._ids)
            self._subscriptions[subscription_id] = subscription

        def unsubscribe() -> None:
            with self._lock:
                self._subscriptions.pop(subscription_id, None)

        try:
            while True:
                self._deliver(subscription_id, subscription)
                with subscription.lock:
                    if not subscription.dirty:
                        subscription.ready = True
                        break
                    subscription.dirty = False
        except Exception:
            unsubscribe()
            raise
        return unsubscribe

    def ping(self) -> None:
        with self._connection() as conn:
            conn.execute("SELECT 1")

    def dispatch(self, parent: str) -> None:
        """
        Republish snapshots to every subscription watching ``parent``.

        Called by the single ChangeListener thread for each notification,
        so deliveries to a ready subscription never overlap. Subscriptions
        still delivering their initial snapshot are marked for a re-query
        instead. A failing subscriber is logged and does not stop delivery
        to the others. No store lock is held while a callback runs.
        """
        with self._lock:
            targets = [
                (subscription_id, subscription)
                for subscription_id, subscription in self._subscriptions.items()
                if subscription.pattern.match(parent)
            ]

        for subscription_id, subscription in targets:
            with subscription.lock:
                if not subscription.ready:
                    subscription.dirty = True
                    continue
            try:
                self._deliver(subscription_id, subscription)
            except Exception:
                logger.exception("Snapshot delivery failed for collection %s", parent)

    def _deliver(self, subscription_id: int, subscription: _Subscription) -> None:
        snapshot = self._query(subscription)
        with self._lock:
            if subscription_id not in self._subscriptions:
                return
        subscription.callback(snapshot)

    def _query(self, subscription: _Subscription) -> list[Document]:
        sql = "SELECT path, fields FROM documents WHERE parent ~ %s"
        params: list[Any] = [subscription.regex]
        if subscription.where is not None:
            sql += " AND fields -> %s = %s"
            params.extend([subscription.where.field, Jsonb(subscription.where.value)])
        sql += " ORDER BY seq"

        with self._connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            rows = cursor.fetchall()
        return [Document(path=row[0], fields=row[1]) for row in rows]

    def _validate(self, path: str) -> str:
        try:
            return validate_document_path(path)
        except ValueError as e:
            raise StoreError(str(e)) from e


class ChangeListener(threading.Thread):
    """
    Background LISTEN loop feeding a PostgresDocumentStore.

    Holds its own autocommit connection outside the pool, since a
    listening connection is never returned.
    """

    def __init__(self, store: PostgresDocumentStore, conninfo: str, poll_seconds: float = 1.0) -> None:
        super().__init__(name="document-change-listener", daemon=True)
        self._store = store
        self._conninfo = conninfo
        self._poll_seconds = poll_seconds
        self._stop_event = threading.Event()

    def run(self) -> None:
        logger.info("Listening for document changes on %s", NOTIFY_CHANNEL)
        with psycopg.connect(self._conninfo, autocommit=True) as conn:
            conn.execute(f"LISTEN {NOTIFY_CHANNEL}")
            while not self._stop_event.is_set():
                for notify in conn.notifies(timeout=self._poll_seconds):
                    self._store.dispatch(notify.payload)
                    if self._stop_event.is_set():
                        break
        logger.info("Document change listener stopped")

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
