"""
Registration lifecycle - Derived membership state machine.

The lifecycle state is never stored. It is recomputed from four inputs
every time one of them changes:

- principal presence (session capability)
- profile presence and its status (document store)
- the local guest flag (explicit user action)

Derivation table:

    principal  profile          guest   state
    ---------  ---------------  ------  ---------------------
    absent     -                false   UNAUTHENTICATED
    absent     -                true    GUEST
    present    absent           -       AWAITING_REGISTRATION
    present    status=pending   -       PENDING
    present    status=active    -       ACTIVE
    present    status=expired   -       EXPIRED

A present principal always wins over the guest flag, so signing in
implicitly cancels guest mode.
"""

from enum import Enum

from .models import Principal, ProfileStatus


class LifecycleState(str, Enum):
    """UI-visible stage of a principal's membership journey."""

    UNAUTHENTICATED = "unauthenticated"
    GUEST = "guest"
    AWAITING_REGISTRATION = "awaiting-registration"
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


_STATE_FOR_STATUS = {
    ProfileStatus.PENDING: LifecycleState.PENDING,
    ProfileStatus.ACTIVE: LifecycleState.ACTIVE,
    ProfileStatus.EXPIRED: LifecycleState.EXPIRED,
}

_CONTENT_STATES = frozenset(
    {
        LifecycleState.GUEST,
        LifecycleState.PENDING,
        LifecycleState.ACTIVE,
        LifecycleState.EXPIRED,
    }
)


def derive_lifecycle_state(
    principal: Principal | None,
    profile_status: ProfileStatus | None,
    guest: bool,
) -> LifecycleState:
    """
    Derive the lifecycle state from session and profile inputs.

    Pure function: identical inputs always yield the same state.

    Args:
        principal: Signed-in principal, or None
        profile_status: Status of the principal's profile, or None if absent
        guest: Whether the local guest toggle is set

    Returns:
        The derived LifecycleState
    """
    if principal is None:
        return LifecycleState.GUEST if guest else LifecycleState.UNAUTHENTICATED
    if profile_status is None:
        return LifecycleState.AWAITING_REGISTRATION
    return _STATE_FOR_STATUS[profile_status]


def grants_content(state: LifecycleState) -> bool:
    """Whether the dashboard (public content) is visible in this state."""
    return state in _CONTENT_STATES


def can_register(state: LifecycleState) -> bool:
    """Registration can only be submitted by a signed-in, unregistered principal."""
    return state is LifecycleState.AWAITING_REGISTRATION
