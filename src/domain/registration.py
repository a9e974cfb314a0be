"""
Registration domain service - Membership signup.

This module contains the business logic for submitting a membership
registration: field validation, the duplicate-submission guard and
creation of the pending profile document.

Profile Status (stored)
=======================

    pending -> active     (administrator approval)
    pending -> (deleted)  (administrator rejection, applicant must re-register)
    active  -> expired    (membership lapses, managed outside this system)

Registration only ever creates ``pending`` profiles. The existence check
and the write are two separate store calls; a concurrent duplicate
submission by the same principal can slip between them.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .exceptions import AlreadyRegisteredError, AuthError, ValidationError
from .models import Principal, Profile, ProfileStatus
from .paths import DocumentPaths
from .ports import DocumentStore

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RegistrationService:
    """
    Domain service for membership registration.

    Orchestrates the signup flow: validation, duplicate guard and
    profile persistence.
    """

    store: DocumentStore
    paths: DocumentPaths
    clock: Callable[[], datetime] = field(default=_utc_now)

    def load_profile(self, uid: str) -> Profile | None:
        """
        Read a principal's profile.

        Returns:
            The profile, or None if the principal has not registered

        Raises:
            StoreError: If the read fails
        """
        document = self.store.get(self.paths.profile(uid))
        if document is None:
            return None
        return Profile.from_fields(document.fields)

    def submit(
        self,
        principal: Principal | None,
        identification_number: str,
        receipt_url: str,
    ) -> Profile:
        """
        Submit a registration for the signed-in principal.

        Args:
            principal: The signed-in principal
            identification_number: Free-text identification number
            receipt_url: Proof-of-payment reference (opaque URL)

        Returns:
            The newly written pending profile

        Raises:
            ValidationError: If either field is empty (no store access)
            AuthError: If nobody is signed in
            AlreadyRegisteredError: If a profile already exists (no write)
            StoreError: If the read or write fails
        """
        identification_number = (identification_number or "").strip()
        receipt_url = (receipt_url or "").strip()
        if not identification_number or not receipt_url:
            raise ValidationError("Please fill out all fields.")

        if principal is None:
            raise AuthError("Sign in before registering.")

        path = self.paths.profile(principal.uid)
        if self.store.get(path) is not None:
            raise AlreadyRegisteredError(principal.uid)

        profile = Profile(
            name=principal.display_name,
            email=principal.email,
            identification_number=identification_number,
            receipt_url=receipt_url,
            status=ProfileStatus.PENDING,
            registered_at=self.clock().isoformat(),
            is_admin=False,
        )
        self.store.set(path, profile.to_fields())
        logger.info("Registration submitted for %s", principal.uid)
        return profile
