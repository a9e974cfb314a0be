"""
Authorization policy - Administrator privilege from principal identity.

Admin authority comes only from the configured allow-list of email
addresses. The ``isAdmin`` field of a profile document is writable by
its owner and is therefore never read here.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from .exceptions import PermissionDenied
from .models import Principal


def _normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True)
class AdminPolicy:
    """Decides whether a principal is an administrator."""

    admin_emails: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_emails(cls, emails: Iterable[str]) -> "AdminPolicy":
        return cls(frozenset(_normalize_email(e) for e in emails if e.strip()))

    def is_admin(self, principal: Principal | None) -> bool:
        """
        Return True if the principal's email is on the admin allow-list.

        Anonymous principals and principals without an email are never
        administrators.
        """
        if principal is None or principal.is_anonymous or not principal.email:
            return False
        return _normalize_email(principal.email) in self.admin_emails

    def require_admin(self, principal: Principal | None) -> Principal:
        """
        Return the principal if it is an administrator.

        Raises:
            PermissionDenied: If the principal is not an administrator
        """
        if principal is None or not self.is_admin(principal):
            raise PermissionDenied("Administrator privileges required")
        return principal
