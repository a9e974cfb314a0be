"""
Admin domain service - Approval and deletion of registrations.

Every operation checks the authorization policy before touching the
store, so a non-admin caller never produces a write. The document
store's own access rules are expected to enforce the same boundary
server-side.
"""

import logging
from dataclasses import dataclass

from .authorization import AdminPolicy
from .models import Principal, ProfileStatus
from .paths import DocumentPaths
from .ports import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class MembershipAdminService:
    """Administrator operations on other principals' profiles."""

    store: DocumentStore
    paths: DocumentPaths
    policy: AdminPolicy

    def approve(self, caller: Principal | None, uid: str) -> None:
        """
        Mark a principal's profile as active.

        Args:
            caller: The principal performing the approval
            uid: Target principal id

        Raises:
            PermissionDenied: If caller is not an administrator
            NotFoundError: If the target has no profile
            StoreError: On any other write failure
        """
        admin = self.policy.require_admin(caller)
        self.store.update(self.paths.profile(uid), {"status": ProfileStatus.ACTIVE.value})
        logger.info("Profile %s approved by %s", uid, admin.uid)

    def delete(self, caller: Principal | None, uid: str) -> None:
        """
        Delete a principal's profile entirely.

        Rejection is modelled as deletion; the applicant has to register
        again to reapply.

        Raises:
            PermissionDenied: If caller is not an administrator
            StoreError: On write failure
        """
        admin = self.policy.require_admin(caller)
        self.store.delete(self.paths.profile(uid))
        logger.info("Profile %s deleted by %s", uid, admin.uid)
