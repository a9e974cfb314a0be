"""
In-memory document store adapter - Implements DocumentStore protocol.

Process-local store with synchronous change delivery: every write
republishes full snapshots to the matching subscriptions before the
write call returns. Used for local development (``store_backend=memory``)
and by the test-suite.
"""

import copy
import itertools
import logging
import re
import threading
from dataclasses import dataclass
from typing import Any

from src.adapters.repository.matching import collection_regex, parent_of, validate_document_path
from src.domain.exceptions import NotFoundError, StoreError
from src.domain.ports import Document, FieldFilter, SnapshotCallback, Unsubscribe

logger = logging.getLogger(__name__)


@dataclass
class _Subscription:
    pattern: re.Pattern[str]
    callback: SnapshotCallback
    where: FieldFilter | None


class InMemoryDocumentStore:
    """
    Implements DocumentStore protocol with a dict keyed by path.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Documents keep their first-write position, which is the arrival
    order reported to subscribers.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        self._subscriptions: dict[int, _Subscription] = {}
        self._ids = itertools.count()
        self._lock = threading.RLock()

    @property
    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def get(self, path: str) -> Document | None:
        path = self._validate(path)
        with self._lock:
            fields = self._documents.get(path)
            if fields is None:
                return None
            return Document(path=path, fields=copy.deepcopy(fields))

    def set(self, path: str, fields: dict[str, Any]) -> None:
        path = self._validate(path)
        with self._lock:
            self._documents[path] = copy.deepcopy(fields)
        self._publish(parent_of(path))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        path = self._validate(path)
        with self._lock:
            current = self._documents.get(path)
            if current is None:
                raise NotFoundError(path)
            current.update(copy.deepcopy(fields))
        self._publish(parent_of(path))

    def delete(self, path: str) -> None:
        path = self._validate(path)
        with self._lock:
            removed = self._documents.pop(path, None)
        if removed is not None:
            self._publish(parent_of(path))

    def subscribe_collection(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        where: FieldFilter | None = None,
    ) -> Unsubscribe:
        subscription = _Subscription(
            pattern=re.compile(collection_regex(path)),
            callback=on_snapshot,
            where=where,
        )
        with self._lock:
            subscription_id = next(self._ids)
            self._subscriptions[subscription_id] = subscription
            snapshot = self._snapshot(subscription)
        on_snapshot(snapshot)

        def unsubscribe() -> None:
            with self._lock:
                self._subscriptions.pop(subscription_id, None)

        return unsubscribe

    def ping(self) -> None:
        return None

    def _validate(self, path: str) -> str:
        try:
            return validate_document_path(path)
        except ValueError as e:
            raise StoreError(str(e)) from e

    def _snapshot(self, subscription: _Subscription) -> list[Document]:
        return [
            Document(path=path, fields=copy.deepcopy(fields))
            for path, fields in self._documents.items()
            if subscription.pattern.match(parent_of(path))
            and (subscription.where is None or subscription.where.matches(fields))
        ]

    def _publish(self, parent: str) -> None:
        # Callbacks may subscribe or unsubscribe; iterate over a copy and
        # skip subscriptions closed mid-delivery.
        with self._lock:
            targets = [
                (subscription_id, subscription)
                for subscription_id, subscription in self._subscriptions.items()
                if subscription.pattern.match(parent)
            ]
        for subscription_id, subscription in targets:
            with self._lock:
                if subscription_id not in self._subscriptions:
                    continue
                snapshot = self._snapshot(subscription)
            subscription.callback(snapshot)
