"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from pydantic import BaseModel, Field

from src.domain.lifecycle import can_register
from src.domain.models import ContentItem, PendingUserView, Principal, Profile
from src.domain.paths import ContentCollection
from src.domain.session import DashboardSession


class CreateSessionRequest(BaseModel):
    """Request model for opening a session, optionally already signed in."""

    id_token: str | None = Field(
        None, min_length=1, description="ID token to sign in with before the first response"
    )


class SignInRequest(BaseModel):
    """Request model for federated sign-in."""

    id_token: str = Field(..., min_length=1, description="ID token from the identity provider")


class RegisterRequest(BaseModel):
    """Request model for membership registration."""

    identification_number: str = Field(..., description="Identification number (free text)")
    receipt_url: str = Field(..., description="Proof-of-payment receipt or QR URL")


class ViewRequest(BaseModel):
    """Request model for selecting a dashboard section."""

    view: ContentCollection


class PrincipalResponse(BaseModel):
    uid: str
    email: str | None
    display_name: str | None
    is_anonymous: bool

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalResponse":
        return cls(
            uid=principal.uid,
            email=principal.email,
            display_name=principal.display_name,
            is_anonymous=principal.is_anonymous,
        )


class ProfileResponse(BaseModel):
    name: str | None
    email: str | None
    identification_number: str
    receipt_url: str
    status: str
    registered_at: str
    is_admin: bool = Field(..., description="Stored flag, display only")

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileResponse":
        return cls(
            name=profile.name,
            email=profile.email,
            identification_number=profile.identification_number,
            receipt_url=profile.receipt_url,
            status=profile.status.value,
            registered_at=profile.registered_at,
            is_admin=profile.is_admin,
        )


class MessageResponse(BaseModel):
    text: str
    kind: str


class SessionResponse(BaseModel):
    """Response model describing the caller's dashboard session."""

    state: str
    is_admin: bool
    guest: bool
    view: ContentCollection
    show_expired_banner: bool
    can_register: bool = Field(..., description="Whether the registration form applies")
    principal: PrincipalResponse | None = None
    profile: ProfileResponse | None = None
    message: MessageResponse | None = None

    @classmethod
    def from_session(cls, session: DashboardSession) -> "SessionResponse":
        return cls(**_session_fields(session))


class CreateSessionResponse(SessionResponse):
    """Response model for a newly created session."""

    session_id: str

    @classmethod
    def for_session(cls, session_id: str, session: DashboardSession) -> "CreateSessionResponse":
        return cls(session_id=session_id, **_session_fields(session))


class ContentItemResponse(BaseModel):
    id: str
    title: str
    description: str
    image_url: str | None = None
    created_at: str | None = None

    @classmethod
    def from_item(cls, item: ContentItem) -> "ContentItemResponse":
        return cls(
            id=item.id,
            title=item.title,
            description=item.description,
            image_url=item.image_url,
            created_at=item.created_at,
        )


class PendingUserResponse(BaseModel):
    uid: str
    name: str | None
    email: str | None
    identification_number: str
    receipt_url: str
    registered_at: str

    @classmethod
    def from_view(cls, view: PendingUserView) -> "PendingUserResponse":
        return cls(
            uid=view.uid,
            name=view.name,
            email=view.email,
            identification_number=view.identification_number,
            receipt_url=view.receipt_url,
            registered_at=view.registered_at,
        )


class DashboardResponse(BaseModel):
    """Response model for the dashboard's live content lists."""

    view: ContentCollection
    show_expired_banner: bool
    announcements: list[ContentItemResponse]
    activities: list[ContentItemResponse]
    gallery: list[ContentItemResponse]
    pending_users: list[PendingUserResponse]

    @classmethod
    def from_session(cls, session: DashboardSession) -> "DashboardResponse":
        def items(collection: ContentCollection) -> list[ContentItemResponse]:
            return [ContentItemResponse.from_item(item) for item in session.content(collection)]

        return cls(
            view=session.view,
            show_expired_banner=session.show_expired_banner,
            announcements=items(ContentCollection.ANNOUNCEMENTS),
            activities=items(ContentCollection.ACTIVITIES),
            gallery=items(ContentCollection.GALLERY),
            pending_users=[PendingUserResponse.from_view(v) for v in session.pending_users],
        )


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str


def _session_fields(session: DashboardSession) -> dict:
    message = session.message
    return {
        "state": session.state.value,
        "is_admin": session.is_admin,
        "guest": session.guest,
        "view": session.view,
        "show_expired_banner": session.show_expired_banner,
        "can_register": can_register(session.state),
        "principal": (
            PrincipalResponse.from_principal(session.principal) if session.principal else None
        ),
        "profile": ProfileResponse.from_profile(session.profile) if session.profile else None,
        "message": (
            MessageResponse(text=message.text, kind=message.kind.value) if message else None
        ),
    }
