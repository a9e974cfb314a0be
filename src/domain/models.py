"""
Domain models - Principals, profiles and dashboard content.

Plain dataclasses with explicit mapping to and from stored document
fields. Stored field names are camelCase to stay compatible with
documents written by other clients of the same namespace.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ProfileStatus(str, Enum):
    """
    Stored registration status of a profile document.

    There is no REJECTED value: an administrator rejects an
    applicant by deleting the profile, after which the applicant must
    register again from scratch.
    """

    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Principal:
    """Identity of the current actor, issued by the session capability."""

    uid: str
    email: str | None = None
    display_name: str | None = None
    is_anonymous: bool = False


@dataclass(frozen=True)
class Profile:
    """
    Persisted registration record for a principal.

    ``is_admin`` is informational only. It lives in a document the owner
    can write, so it must never be consulted for authorization.
    """

    name: str | None
    email: str | None
    identification_number: str
    receipt_url: str
    status: ProfileStatus
    registered_at: str
    is_admin: bool = False

    def to_fields(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "identificationNumber": self.identification_number,
            "receiptUrl": self.receipt_url,
            "status": self.status.value,
            "isAdmin": self.is_admin,
            "registeredAt": self.registered_at,
        }

    @classmethod
    def from_fields(cls, fields: dict[str, Any]) -> "Profile":
        """
        Build a profile from stored fields.

        Unknown status values are treated as expired so a malformed
        document never unlocks member content.
        """
        try:
            status = ProfileStatus(fields.get("status"))
        except ValueError:
            status = ProfileStatus.EXPIRED
        return cls(
            name=fields.get("name"),
            email=fields.get("email"),
            identification_number=str(fields.get("identificationNumber") or ""),
            receipt_url=str(fields.get("receiptUrl") or ""),
            status=status,
            registered_at=str(fields.get("registeredAt") or ""),
            is_admin=bool(fields.get("isAdmin", False)),
        )


@dataclass(frozen=True)
class ContentItem:
    """An announcement, activity or gallery entry."""

    id: str
    title: str
    description: str
    image_url: str | None = None
    created_at: str | None = None

    @classmethod
    def from_document(cls, doc_id: str, fields: dict[str, Any]) -> "ContentItem":
        return cls(
            id=doc_id,
            title=str(fields.get("title") or ""),
            description=str(fields.get("description") or ""),
            image_url=fields.get("imageUrl"),
            created_at=fields.get("createdAt"),
        )


@dataclass(frozen=True)
class PendingUserView:
    """Admin-panel projection of a pending profile plus its owner's uid."""

    uid: str
    name: str | None
    email: str | None
    identification_number: str
    receipt_url: str
    registered_at: str

    @classmethod
    def from_profile(cls, uid: str, profile: Profile) -> "PendingUserView":
        return cls(
            uid=uid,
            name=profile.name,
            email=profile.email,
            identification_number=profile.identification_number,
            receipt_url=profile.receipt_url,
            registered_at=profile.registered_at,
        )
