"""
API v1 routes.

Defines REST endpoints for the Membership Dashboard API. Each route
delegates to the caller's DashboardSession; a failed operation is
answered with the status code for its error and the session's status
message as the detail.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.api.dependencies import (
    get_admin_session,
    get_registry,
    get_session,
    get_session_id,
)
from src.api.models import (
    CreateSessionRequest,
    CreateSessionResponse,
    DashboardResponse,
    ErrorResponse,
    RegisterRequest,
    SessionResponse,
    SignInRequest,
    ViewRequest,
)
from src.api.sessions import SessionRegistry
from src.domain.exceptions import (
    AlreadyRegisteredError,
    AuthError,
    NotFoundError,
    PermissionDenied,
    StoreError,
    ValidationError,
)
from src.domain.lifecycle import LifecycleState, grants_content
from src.domain.session import DashboardSession

router = APIRouter(tags=["v1"])

# Checked in order; NotFoundError must precede its StoreError base.
_STATUS_FOR_ERROR = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (AlreadyRegisteredError, status.HTTP_409_CONFLICT),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
)

_SESSION_ERRORS = {
    404: {"model": ErrorResponse, "description": "Unknown session"},
    503: {"model": ErrorResponse, "description": "Application loading or store unavailable"},
}


def _raise_for_failure(session: DashboardSession) -> None:
    error = session.last_error
    message = session.message
    detail = message.text if message is not None else str(error)
    for error_type, status_code in _STATUS_FOR_ERROR:
        if isinstance(error, error_type):
            raise HTTPException(status_code=status_code, detail=detail)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


@router.post(
    "/sessions",
    response_model=CreateSessionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse, "description": "Initial ID token rejected"},
        503: _SESSION_ERRORS[503],
    },
    summary="Open a dashboard session",
    description="Create a dashboard session, unauthenticated unless an id_token is given, "
    "in which case it is signed in before the first response. "
    "Pass the returned session_id in the X-Session-Id header on later calls.",
)
async def create_session(
    request_data: CreateSessionRequest | None = None,
    registry: SessionRegistry = Depends(get_registry),
) -> CreateSessionResponse:
    session_id, session = registry.create()
    if request_data is not None and request_data.id_token is not None:
        if not session.sign_in(request_data.id_token):
            registry.close(session_id)
            _raise_for_failure(session)
    return CreateSessionResponse.for_session(session_id, session)


@router.get(
    "/session",
    response_model=SessionResponse,
    responses=_SESSION_ERRORS,
    summary="Get session state",
)
async def get_session_state(
    session: DashboardSession = Depends(get_session),
) -> SessionResponse:
    return SessionResponse.from_session(session)


@router.delete(
    "/session",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=_SESSION_ERRORS,
    summary="Close the session",
    description="Tear the session down and close all of its live subscriptions.",
)
async def close_session(
    session_id: str = Depends(get_session_id),
    registry: SessionRegistry = Depends(get_registry),
) -> Response:
    if not registry.close(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown session")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/session/guest",
    response_model=SessionResponse,
    responses={409: {"model": ErrorResponse, "description": "Not unauthenticated"}, **_SESSION_ERRORS},
    summary="Browse as guest",
)
async def enter_guest_mode(
    session: DashboardSession = Depends(get_session),
) -> SessionResponse:
    if not session.browse_as_guest():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Guest mode is only available before signing in",
        )
    return SessionResponse.from_session(session)


@router.delete(
    "/session/guest",
    response_model=SessionResponse,
    responses=_SESSION_ERRORS,
    summary="Leave guest mode",
)
async def leave_guest_mode(
    session: DashboardSession = Depends(get_session),
) -> SessionResponse:
    session.leave_guest_mode()
    return SessionResponse.from_session(session)


@router.post(
    "/session/sign-in",
    response_model=SessionResponse,
    responses={401: {"model": ErrorResponse, "description": "Sign-in failed"}, **_SESSION_ERRORS},
    summary="Sign in with an ID token",
)
async def sign_in(
    request_data: SignInRequest,
    session: DashboardSession = Depends(get_session),
) -> SessionResponse:
    if not session.sign_in(request_data.id_token):
        _raise_for_failure(session)
    return SessionResponse.from_session(session)


@router.post(
    "/session/sign-in/anonymous",
    response_model=SessionResponse,
    responses=_SESSION_ERRORS,
    summary="Sign in anonymously",
)
async def sign_in_anonymously(
    session: DashboardSession = Depends(get_session),
) -> SessionResponse:
    if not session.sign_in_anonymously():
        _raise_for_failure(session)
    return SessionResponse.from_session(session)


@router.post(
    "/session/sign-out",
    response_model=SessionResponse,
    responses=_SESSION_ERRORS,
    summary="Sign out",
)
async def sign_out(
    session: DashboardSession = Depends(get_session),
) -> SessionResponse:
    session.sign_out()
    return SessionResponse.from_session(session)


@router.put(
    "/session/view",
    response_model=SessionResponse,
    responses=_SESSION_ERRORS,
    summary="Select dashboard section",
)
async def select_view(
    request_data: ViewRequest,
    session: DashboardSession = Depends(get_session),
) -> SessionResponse:
    session.select_view(request_data.view)
    return SessionResponse.from_session(session)


@router.post(
    "/register",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        401: {"model": ErrorResponse, "description": "Not signed in"},
        409: {"model": ErrorResponse, "description": "Already registered"},
        422: {"model": ErrorResponse, "description": "Missing registration fields"},
        **_SESSION_ERRORS,
    },
    summary="Submit membership registration",
    description="Submit identification number and proof-of-payment URL. "
    "The registration stays pending until an administrator approves it.",
)
async def register(
    request_data: RegisterRequest,
    session: DashboardSession = Depends(get_session),
) -> SessionResponse:
    """
    Submit a membership registration for the signed-in principal.

    - **identification_number**: Identification number (required)
    - **receipt_url**: Proof-of-payment URL (required)
    """
    if not session.submit_registration(
        request_data.identification_number, request_data.receipt_url
    ):
        _raise_for_failure(session)
    return SessionResponse.from_session(session)


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    responses={403: {"model": ErrorResponse, "description": "No content access"}, **_SESSION_ERRORS},
    summary="Get dashboard content",
    description="Announcements, activities and gallery as last delivered by the store, "
    "plus pending registrations for administrators.",
)
async def get_dashboard(
    session: DashboardSession = Depends(get_session),
) -> DashboardResponse:
    if not grants_content(session.state):
        detail = (
            "Registration required"
            if session.state is LifecycleState.AWAITING_REGISTRATION
            else "Sign in or continue as guest"
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    return DashboardResponse.from_session(session)


@router.post(
    "/admin/users/{uid}/approve",
    response_model=SessionResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not an administrator"},
        **_SESSION_ERRORS,
    },
    summary="Approve a pending registration",
)
async def approve_user(
    uid: str,
    session: DashboardSession = Depends(get_admin_session),
) -> SessionResponse:
    if not session.approve(uid):
        _raise_for_failure(session)
    return SessionResponse.from_session(session)


@router.delete(
    "/admin/users/{uid}",
    response_model=SessionResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not an administrator"},
        **_SESSION_ERRORS,
    },
    summary="Delete a registration",
    description="Deletes the profile entirely; the applicant must register again to reapply.",
)
async def delete_user(
    uid: str,
    session: DashboardSession = Depends(get_admin_session),
) -> SessionResponse:
    if not session.delete(uid):
        _raise_for_failure(session)
    return SessionResponse.from_session(session)
