"""
Dashboard data aggregator - Live subscriptions feeding the dashboard.

Keeps at most one open subscription per collection key:

- ``announcements``, ``activities``, ``gallery``: open whenever the
  lifecycle state grants content visibility.
- ``pending-users``: the pending-profile collection group, open only
  while content is visible and the caller is an administrator.

Each delivery is a complete snapshot and replaces the published list
as-is, in the order the store delivered it. Opening a key always closes
its previous handle first, and every handle is disposed exactly once.

State changes and store deliveries run under one re-entrant lock, which
the owning session shares so that both take the same lock.
"""

import logging
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager

from .lifecycle import LifecycleState, grants_content
from .models import ContentItem, PendingUserView, Profile, ProfileStatus
from .paths import ContentCollection, DocumentPaths
from .ports import Document, DocumentStore, FieldFilter, Unsubscribe, dispose_once

logger = logging.getLogger(__name__)

PENDING_USERS = "pending-users"


class DashboardAggregator:
    """Owns the dashboard's live subscriptions and the lists they publish."""

    def __init__(
        self,
        store: DocumentStore,
        paths: DocumentPaths,
        lock: AbstractContextManager | None = None,
    ) -> None:
        self._store = store
        self._lock = lock or threading.RLock()
        self._paths = paths
        self._handles: dict[str, Unsubscribe] = {}
        self._tokens: dict[str, object] = {}
        self._content: dict[ContentCollection, list[ContentItem]] = {
            collection: [] for collection in ContentCollection
        }
        self._pending: list[PendingUserView] = []

    @property
    def open_subscriptions(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._handles)

    def content(self, collection: ContentCollection) -> list[ContentItem]:
        with self._lock:
            return list(self._content[collection])

    @property
    def pending_users(self) -> list[PendingUserView]:
        with self._lock:
            return list(self._pending)

    def sync(self, state: LifecycleState, is_admin: bool) -> None:
        """
        Open or close subscriptions to match the lifecycle state.

        Already-open subscriptions that should stay open are left alone.

        Raises:
            StoreError: If a subscription cannot be opened
        """
        visible = grants_content(state)
        with self._lock:
            for collection in ContentCollection:
                if not visible:
                    self._close(collection.value)
                elif collection.value not in self._handles:
                    self._open(
                        collection.value,
                        self._paths.content(collection),
                        self._content_listener(collection),
                    )

            if visible and is_admin:
                if PENDING_USERS not in self._handles:
                    self._open(
                        PENDING_USERS,
                        self._paths.profiles(),
                        self._pending_listener(),
                        FieldFilter("status", ProfileStatus.PENDING.value),
                    )
            else:
                self._close(PENDING_USERS)

    def reset(self, state: LifecycleState, is_admin: bool) -> None:
        """Close every subscription, then reopen what the state requires."""
        with self._lock:
            self.close_all()
            self.sync(state, is_admin)

    def close_all(self) -> None:
        with self._lock:
            for key in list(self._handles):
                self._close(key)

    def _open(
        self,
        key: str,
        path: str,
        listener: Callable[[object, list[Document]], None],
        where: FieldFilter | None = None,
    ) -> None:
        self._close(key)
        token = object()
        self._tokens[key] = token

        def on_snapshot(documents: list[Document]) -> None:
            listener(token, documents)

        try:
            handle = self._store.subscribe_collection(path, on_snapshot, where)
        except Exception:
            self._tokens.pop(key, None)
            raise
        self._handles[key] = dispose_once(handle)
        logger.debug("Subscribed %s (%s)", key, path)

    def _close(self, key: str) -> None:
        self._tokens.pop(key, None)
        handle = self._handles.pop(key, None)
        if handle is None:
            return
        handle()
        if key == PENDING_USERS:
            self._pending = []
        else:
            self._content[ContentCollection(key)] = []
        logger.debug("Unsubscribed %s", key)

    def _content_listener(
        self, collection: ContentCollection
    ) -> Callable[[object, list[Document]], None]:
        def listener(token: object, documents: list[Document]) -> None:
            items = [ContentItem.from_document(doc.id, doc.fields) for doc in documents]
            with self._lock:
                if self._tokens.get(collection.value) is token:
                    self._content[collection] = items

        return listener

    def _pending_listener(self) -> Callable[[object, list[Document]], None]:
        def listener(token: object, documents: list[Document]) -> None:
            pending = [
                PendingUserView.from_profile(
                    DocumentPaths.owner_of(doc.path), Profile.from_fields(doc.fields)
                )
                for doc in documents
            ]
            with self._lock:
                if self._tokens.get(PENDING_USERS) is token:
                    self._pending = pending

        return listener
