"""
Integration tests for PostgresDocumentStore.

Tests store operations against a real PostgreSQL database, including
change delivery through the LISTEN/NOTIFY listener thread.
Requires PostgreSQL to be running; skipped otherwise.
"""

import threading
from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.postgres import ChangeListener, PostgresDocumentStore
from src.domain.exceptions import NotFoundError
from src.domain.ports import Document, FieldFilter

pytestmark = pytest.mark.integration


@pytest.fixture
def store(pool: ConnectionPool) -> PostgresDocumentStore:
    """Create store instance for each test."""
    return PostgresDocumentStore(pool)


@pytest.fixture
def listener(
    store: PostgresDocumentStore, database_url: str
) -> Generator[ChangeListener, None, None]:
    listener = ChangeListener(store, database_url, poll_seconds=0.1)
    listener.start()
    yield listener
    listener.stop(timeout=5.0)


class SnapshotWaiter:
    """Records snapshots and lets a test wait for one matching a predicate."""

    def __init__(self) -> None:
        self.snapshots: list[list[Document]] = []
        self._condition = threading.Condition()

    def __call__(self, documents: list[Document]) -> None:
        with self._condition:
            self.snapshots.append(documents)
            self._condition.notify_all()

    def wait_for(self, predicate, timeout: float = 5.0) -> list[Document]:
        with self._condition:
            assert self._condition.wait_for(
                lambda: bool(self.snapshots) and predicate(self.snapshots[-1]), timeout
            ), f"No matching snapshot, last: {self.snapshots[-1:]}"
            return self.snapshots[-1]


class TestCrud:
    """Tests for document reads and writes."""

    def test_set_then_get(self, store: PostgresDocumentStore) -> None:
        """A written document is readable with its JSON fields."""
        store.set("ns/users/U1/profile", {"status": "pending", "isAdmin": False})

        document = store.get("ns/users/U1/profile")

        assert document == Document(
            path="ns/users/U1/profile", fields={"status": "pending", "isAdmin": False}
        )

    def test_get_missing_returns_none(self, store: PostgresDocumentStore) -> None:
        """Reading an absent document returns None."""
        assert store.get("ns/users/nobody/profile") is None

    def test_update_merges_fields(self, store: PostgresDocumentStore) -> None:
        """update() changes only the given fields."""
        store.set("ns/users/U1/profile", {"name": "One", "status": "pending"})

        store.update("ns/users/U1/profile", {"status": "active"})

        assert store.get("ns/users/U1/profile").fields == {"name": "One", "status": "active"}

    def test_update_missing_raises_not_found(self, store: PostgresDocumentStore) -> None:
        """update() on an absent document raises NotFoundError."""
        with pytest.raises(NotFoundError):
            store.update("ns/users/ghost/profile", {"status": "active"})

    def test_delete(self, store: PostgresDocumentStore) -> None:
        """A deleted document reads back as None; deleting again is a no-op."""
        store.set("ns/users/U1/profile", {"status": "pending"})

        store.delete("ns/users/U1/profile")
        store.delete("ns/users/U1/profile")

        assert store.get("ns/users/U1/profile") is None

    def test_ping(self, store: PostgresDocumentStore) -> None:
        """ping() succeeds against a live database."""
        store.ping()


class TestSubscriptions:
    """Tests for live collection subscriptions."""

    def test_initial_snapshot_in_arrival_order(self, store: PostgresDocumentStore) -> None:
        """Replacement keeps a document's original position."""
        store.set("ns/public/gallery/b", {"title": "B"})
        store.set("ns/public/gallery/a", {"title": "A"})
        store.set("ns/public/gallery/b", {"title": "B2"})
        waiter = SnapshotWaiter()

        store.subscribe_collection("ns/public/gallery", waiter)

        assert [doc.id for doc in waiter.snapshots[0]] == ["b", "a"]

    def test_collection_group_with_filter(self, store: PostgresDocumentStore) -> None:
        """Wildcard subscriptions span user collections and honour the filter."""
        store.set("ns/users/U1/profile", {"status": "pending"})
        store.set("ns/users/U2/profile", {"status": "active"})
        store.set("other/users/U3/profile", {"status": "pending"})
        waiter = SnapshotWaiter()

        store.subscribe_collection("ns/users/*", waiter, where=FieldFilter("status", "pending"))

        assert [doc.path for doc in waiter.snapshots[0]] == ["ns/users/U1/profile"]

    def test_listener_delivers_changes(
        self, store: PostgresDocumentStore, listener: ChangeListener
    ) -> None:
        """Committed writes reach subscribers through the listener thread."""
        waiter = SnapshotWaiter()
        store.subscribe_collection(
            "ns/users/*", waiter, where=FieldFilter("status", "pending")
        )

        store.set("ns/users/U1/profile", {"status": "pending"})
        waiter.wait_for(lambda docs: [d.id for d in docs] == ["profile"])

        store.update("ns/users/U1/profile", {"status": "active"})
        assert waiter.wait_for(lambda docs: docs == []) == []

    def test_unsubscribe_stops_delivery(
        self, store: PostgresDocumentStore, listener: ChangeListener
    ) -> None:
        """Closed subscriptions receive nothing further."""
        waiter = SnapshotWaiter()
        unsubscribe = store.subscribe_collection("ns/public/activities", waiter)
        unsubscribe()

        store.set("ns/public/activities/a1", {"title": "A"})
        later = SnapshotWaiter()
        store.subscribe_collection("ns/public/activities", later)

        assert len(waiter.snapshots) == 1
        assert store.subscription_count == 1

    def test_boolean_filter_matches_json_true(self, store: PostgresDocumentStore) -> None:
        """Non-string filter values match their JSON counterparts."""
        store.set("ns/users/U1/profile", {"isAdmin": True})
        store.set("ns/users/U2/profile", {"isAdmin": False})
        waiter = SnapshotWaiter()

        store.subscribe_collection("ns/users/*", waiter, where=FieldFilter("isAdmin", True))

        assert [doc.path for doc in waiter.snapshots[0]] == ["ns/users/U1/profile"]
