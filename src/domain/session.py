"""
Dashboard session - Per-client UI session state and its operations.

A DashboardSession is the explicit, injectable replacement for ambient UI
globals. It owns:

- the current principal and its profile (kept live through a watch on the
  principal's own profile document)
- the derived lifecycle state and the policy-derived admin flag
- the guest toggle and the selected dashboard section
- the dashboard aggregator's subscriptions
- the transient status message

Every user-facing operation catches MembershipError, turns it into an
error status message, remembers it as ``last_error`` and returns False.
Nothing is retried automatically.

Operations and store callbacks may arrive on different threads (request
handlers and the change listener). They all run under one re-entrant
lock per session, shared with the aggregator.
"""

import functools
import logging
import threading
from collections.abc import Callable
from typing import Any, TypeVar, cast

from .admin import MembershipAdminService
from .aggregator import DashboardAggregator
from .authorization import AdminPolicy
from .exceptions import (
    AlreadyRegisteredError,
    AuthError,
    MembershipError,
    PermissionDenied,
    StoreError,
    ValidationError,
)
from .lifecycle import LifecycleState, derive_lifecycle_state
from .messages import StatusMessage, StatusMessages
from .models import ContentItem, PendingUserView, Principal, Profile
from .paths import ContentCollection, DocumentPaths
from .ports import Document, DocumentStore, SessionProvider, Unsubscribe, dispose_once
from .registration import RegistrationService

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def synchronized(method: F) -> F:
    """Run a DashboardSession method under the session lock."""

    @functools.wraps(method)
    def wrapper(self: "DashboardSession", *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return cast(F, wrapper)


class DashboardSession:
    """Membership lifecycle state machine for one connected client."""

    def __init__(
        self,
        sessions: SessionProvider,
        store: DocumentStore,
        paths: DocumentPaths,
        policy: AdminPolicy,
        messages: StatusMessages | None = None,
        registration: RegistrationService | None = None,
    ) -> None:
        self._sessions = sessions
        self._store = store
        self._paths = paths
        self._policy = policy
        self._registration = registration or RegistrationService(store=store, paths=paths)
        self._admin = MembershipAdminService(store=store, paths=paths, policy=policy)
        self._lock = threading.RLock()
        self._aggregator = DashboardAggregator(store, paths, lock=self._lock)
        self.messages = messages or StatusMessages()

        self._principal: Principal | None = None
        self._profile: Profile | None = None
        self._is_admin = False
        self._guest = False
        self._view = ContentCollection.ANNOUNCEMENTS
        self._state = LifecycleState.UNAUTHENTICATED

        self._session_handle: Unsubscribe | None = None
        self._profile_watch: Unsubscribe | None = None
        self._watch_token: object | None = None
        self.last_error: MembershipError | None = None

    # -- read side -----------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def principal(self) -> Principal | None:
        return self._principal

    @property
    def profile(self) -> Profile | None:
        return self._profile

    @property
    def is_admin(self) -> bool:
        return self._is_admin

    @property
    def guest(self) -> bool:
        return self._guest

    @property
    def view(self) -> ContentCollection:
        return self._view

    @property
    def message(self) -> StatusMessage | None:
        return self.messages.current

    @property
    def show_expired_banner(self) -> bool:
        return self._state is LifecycleState.EXPIRED

    @property
    def open_subscriptions(self) -> frozenset[str]:
        return self._aggregator.open_subscriptions

    def content(self, collection: ContentCollection) -> list[ContentItem]:
        return self._aggregator.content(collection)

    @property
    def pending_users(self) -> list[PendingUserView]:
        return self._aggregator.pending_users if self._is_admin else []

    # -- lifecycle -----------------------------------------------------------

    @synchronized
    def start(self) -> None:
        """Attach to the session capability and evaluate the current principal."""
        if self._session_handle is None:
            self._session_handle = dispose_once(
                self._sessions.subscribe(self._on_principal_changed)
            )
        self._on_principal_changed(self._sessions.current_principal())

    @synchronized
    def close(self) -> None:
        """Tear down: detach from the session capability and close every subscription."""
        if self._session_handle is not None:
            self._session_handle()
            self._session_handle = None
        self._close_profile_watch()
        self._aggregator.close_all()

    # -- user actions --------------------------------------------------------

    @synchronized
    def browse_as_guest(self) -> bool:
        """Enter read-only guest mode. Only honoured while unauthenticated."""
        if self._state is not LifecycleState.UNAUTHENTICATED:
            logger.info("Guest mode ignored in state %s", self._state.value)
            return False
        self._guest = True
        self._refresh()
        return True

    @synchronized
    def leave_guest_mode(self) -> bool:
        if not self._guest:
            return False
        self._guest = False
        self._refresh()
        return True

    @synchronized
    def sign_in(self, credential: str) -> bool:
        self.last_error = None
        try:
            self._sessions.sign_in_federated(credential)
        except AuthError as exc:
            return self._fail(exc, "Failed to sign in.")
        return True

    @synchronized
    def sign_in_anonymously(self) -> bool:
        self.last_error = None
        try:
            self._sessions.sign_in_anonymous()
        except AuthError as exc:
            return self._fail(exc, "Failed to sign in.")
        return True

    @synchronized
    def sign_out(self) -> None:
        self._guest = False
        self._sessions.sign_out()
        if self._principal is not None:
            self._on_principal_changed(None)
        else:
            self._refresh()

    @synchronized
    def select_view(self, view: ContentCollection) -> None:
        self._view = view

    @synchronized
    def submit_registration(self, identification_number: str, receipt_url: str) -> bool:
        """
        Submit the membership registration for the signed-in principal.

        On success the lifecycle moves to PENDING immediately, without
        waiting for the profile watch to deliver the new document.
        """
        self.last_error = None
        try:
            profile = self._registration.submit(
                self._principal, identification_number, receipt_url
            )
        except (ValidationError, AuthError) as exc:
            return self._fail(exc, str(exc))
        except AlreadyRegisteredError as exc:
            return self._fail(exc, "You are already registered.")
        except MembershipError as exc:
            return self._fail(exc, "Error during registration.")

        self._profile = profile
        self._refresh()
        self.messages.success("Registration submitted successfully. Awaiting admin approval.")
        return True

    @synchronized
    def approve(self, uid: str) -> bool:
        self.last_error = None
        try:
            self._admin.approve(self._principal, uid)
        except PermissionDenied as exc:
            return self._fail(exc, "Administrator privileges required.")
        except MembershipError as exc:
            return self._fail(exc, "Error approving user.")
        self.messages.success(f"User {uid} approved successfully.")
        return True

    @synchronized
    def delete(self, uid: str) -> bool:
        self.last_error = None
        try:
            self._admin.delete(self._principal, uid)
        except PermissionDenied as exc:
            return self._fail(exc, "Administrator privileges required.")
        except MembershipError as exc:
            return self._fail(exc, "Error deleting user.")
        self.messages.success(f"User {uid} deleted successfully.")
        return True

    # -- internals -----------------------------------------------------------

    @synchronized
    def _on_principal_changed(self, principal: Principal | None) -> None:
        self._principal = principal
        if principal is not None:
            self._guest = False
        self._is_admin = self._policy.is_admin(principal)
        self._close_profile_watch()
        self._profile = None

        if principal is not None:
            try:
                self._profile = self._registration.load_profile(principal.uid)
                self._open_profile_watch(principal.uid)
            except StoreError as exc:
                self._fail(exc, "Failed to load your profile.")

        self._refresh(reset=True)

    def _refresh(self, reset: bool = False) -> None:
        previous = self._state
        self._state = derive_lifecycle_state(
            self._principal,
            self._profile.status if self._profile is not None else None,
            self._guest,
        )
        if self._state is not previous:
            logger.info("Lifecycle %s -> %s", previous.value, self._state.value)
        try:
            if reset:
                self._aggregator.reset(self._state, self._is_admin)
            else:
                self._aggregator.sync(self._state, self._is_admin)
        except StoreError as exc:
            self._fail(exc, "Failed to load dashboard data.")

    def _open_profile_watch(self, uid: str) -> None:
        path = self._paths.profile(uid)
        token = object()
        self._watch_token = token

        def on_snapshot(documents: list[Document]) -> None:
            match = next((doc for doc in documents if doc.path == path), None)
            profile = Profile.from_fields(match.fields) if match is not None else None
            with self._lock:
                if self._watch_token is not token or profile == self._profile:
                    return
                self._profile = profile
                self._refresh()

        self._profile_watch = dispose_once(
            self._store.subscribe_collection(self._paths.user_collection(uid), on_snapshot)
        )

    def _close_profile_watch(self) -> None:
        self._watch_token = None
        if self._profile_watch is not None:
            self._profile_watch()
            self._profile_watch = None

    def _fail(self, exc: MembershipError, text: str) -> bool:
        self.last_error = exc
        logger.warning("%s (%s: %s)", text, type(exc).__name__, exc)
        self.messages.error(text)
        return False
