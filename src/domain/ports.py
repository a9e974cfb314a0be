"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure: a session capability producing principals and a
document capability with live collection subscriptions. Adapters
implement these protocols.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from .models import Principal

Unsubscribe = Callable[[], None]


def dispose_once(unsubscribe: Unsubscribe) -> Unsubscribe:
    """Wrap a disposer so repeated calls reach the underlying store only once."""
    disposed = False

    def dispose() -> None:
        nonlocal disposed
        if disposed:
            return
        disposed = True
        unsubscribe()

    return dispose


@dataclass(frozen=True)
class Document:
    """A stored document: its full slash-separated path and its fields."""

    path: str
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> str:
        return self.path.rsplit("/", 1)[0]


@dataclass(frozen=True)
class FieldFilter:
    """Equality filter on a top-level document field."""

    field: str
    value: Any

    def matches(self, fields: dict[str, Any]) -> bool:
        return fields.get(self.field) == self.value


SnapshotCallback = Callable[[list[Document]], None]
PrincipalCallback = Callable[[Principal | None], None]


class DocumentStore(Protocol):
    """Port interface for the namespaced document database."""

    def get(self, path: str) -> Document | None:
        """
        Fetch a single document.

        Returns:
            The document, or None if nothing is stored at path

        Raises:
            StoreError: On any read failure
        """
        ...

    def set(self, path: str, fields: dict[str, Any]) -> None:
        """
        Create or replace the document at path.

        Raises:
            StoreError: On any write failure
        """
        ...

    def update(self, path: str, fields: dict[str, Any]) -> None:
        """
        Merge fields into an existing document.

        Raises:
            NotFoundError: If no document exists at path
            StoreError: On any other write failure
        """
        ...

    def delete(self, path: str) -> None:
        """
        Delete the document at path. Deleting an absent document is a no-op.

        Raises:
            StoreError: On any write failure
        """
        ...

    def subscribe_collection(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        where: FieldFilter | None = None,
    ) -> Unsubscribe:
        """
        Open a live subscription on a collection.

        The collection path may contain ``*`` segments, which match any
        single path segment (collection group query). The callback receives
        the full current snapshot on open and again after every change to a
        matching document, in arrival order.

        Args:
            path: Collection path, e.g. ``ns/public/gallery`` or ``ns/users/*``
            on_snapshot: Called with the complete list of matching documents
            where: Optional equality filter

        Returns:
            Disposer that closes the subscription

        Raises:
            StoreError: If the subscription cannot be opened
        """
        ...

    def ping(self) -> None:
        """Raise StoreError if the store is unreachable."""
        ...


class SessionProvider(Protocol):
    """Port interface for the identity provider."""

    def current_principal(self) -> Principal | None:
        """Return the signed-in principal, or None."""
        ...

    def subscribe(self, on_change: PrincipalCallback) -> Unsubscribe:
        """Register a callback invoked with the new principal on every change."""
        ...

    def sign_in_federated(self, credential: str) -> Principal:
        """
        Sign in with a credential issued by the federated identity provider.

        Raises:
            AuthError: If the credential is rejected
        """
        ...

    def sign_in_anonymous(self) -> Principal:
        """Sign in with a fresh anonymous identity."""
        ...

    def sign_out(self) -> None:
        """Drop the current principal."""
        ...
