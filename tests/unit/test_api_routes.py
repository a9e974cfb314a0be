"""
Unit tests for API v1 routes.

Tests endpoint responses against a test application wired with the
in-memory document store, so every request runs the real dashboard
session logic.
"""

from collections.abc import Callable

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient

from src.adapters.repository.memory import InMemoryDocumentStore
from src.api.dependencies import build_session_factory
from src.api.sessions import SessionRegistry
from src.api.v1.routes import _STATUS_FOR_ERROR, router
from src.config.settings import Settings
from src.domain.exceptions import ValidationError
from src.domain.paths import ContentCollection, DocumentPaths
from tests.conftest import ADMIN_EMAIL, NAMESPACE

TokenIssuer = Callable[..., str]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        store_backend="memory",
        app_id=NAMESPACE,
        admin_emails=[ADMIN_EMAIL],
        identity_token_secret="test-secret",
        identity_token_issuer="test-issuer",
        identity_token_audience="test-audience",
    )


@pytest.fixture
def registry(settings: Settings, store: InMemoryDocumentStore) -> SessionRegistry:
    return SessionRegistry(build_session_factory(settings, store))


@pytest.fixture
def app(registry: SessionRegistry) -> FastAPI:
    """Create test FastAPI application."""
    test_app = FastAPI()
    test_app.include_router(router, prefix="/v1")
    test_app.state.registry = registry
    return test_app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create test client for the application."""
    return TestClient(app)


def open_session(client: TestClient) -> dict[str, str]:
    """Create a session and return the headers identifying it."""
    response = client.post("/v1/sessions")
    assert response.status_code == 201
    return {"X-Session-Id": response.json()["session_id"]}


def signed_in(client: TestClient, token: str) -> dict[str, str]:
    headers = open_session(client)
    response = client.post("/v1/session/sign-in", json={"id_token": token}, headers=headers)
    assert response.status_code == 200
    return headers


class TestSessionEndpoints:
    """Tests for session lifecycle endpoints."""

    def test_create_session(self, client: TestClient, registry: SessionRegistry) -> None:
        """A new session starts unauthenticated."""
        response = client.post("/v1/sessions")

        assert response.status_code == 201
        body = response.json()
        assert body["state"] == "unauthenticated"
        assert body["session_id"]
        assert body["view"] == "announcements"
        assert len(registry) == 1

    def test_create_session_with_initial_token(
        self, client: TestClient, issue_token: TokenIssuer
    ) -> None:
        """An id_token in the body signs the session in before the first response."""
        response = client.post(
            "/v1/sessions", json={"id_token": issue_token("U1", email="u1@example.com")}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["state"] == "awaiting-registration"
        assert body["principal"]["uid"] == "U1"
        headers = {"X-Session-Id": body["session_id"]}
        assert client.get("/v1/session", headers=headers).json()["principal"]["uid"] == "U1"

    def test_create_session_with_rejected_token(
        self, client: TestClient, registry: SessionRegistry
    ) -> None:
        """A rejected initial token returns 401 and keeps no session."""
        response = client.post("/v1/sessions", json={"id_token": "garbage"})

        assert response.status_code == 401
        assert response.json() == {"detail": "Failed to sign in."}
        assert len(registry) == 0

    def test_create_session_with_empty_body(self, client: TestClient) -> None:
        """An empty JSON body opens an unauthenticated session."""
        response = client.post("/v1/sessions", json={})

        assert response.status_code == 201
        assert response.json()["state"] == "unauthenticated"

    def test_get_session_state(self, client: TestClient) -> None:
        """GET /v1/session echoes the session state."""
        headers = open_session(client)

        response = client.get("/v1/session", headers=headers)

        assert response.status_code == 200
        assert response.json()["principal"] is None

    def test_unknown_session_returns_404(self, client: TestClient) -> None:
        """An unknown session id is rejected."""
        response = client.get("/v1/session", headers={"X-Session-Id": "nope"})

        assert response.status_code == 404
        assert response.json() == {"detail": "Unknown session"}

    def test_missing_session_header_returns_422(self, client: TestClient) -> None:
        """The X-Session-Id header is required."""
        response = client.get("/v1/session")

        assert response.status_code == 422

    def test_close_session(
        self, client: TestClient, registry: SessionRegistry, store: InMemoryDocumentStore
    ) -> None:
        """DELETE /v1/session tears down every subscription."""
        headers = open_session(client)
        client.post("/v1/session/guest", headers=headers)
        assert store.subscription_count == 3

        response = client.delete("/v1/session", headers=headers)

        assert response.status_code == 204
        assert len(registry) == 0
        assert store.subscription_count == 0
        assert client.delete("/v1/session", headers=headers).status_code == 404

    def test_registry_missing_returns_503(self, app: FastAPI, client: TestClient) -> None:
        """Without a registry the application is still loading."""
        app.state.registry = None

        response = client.post("/v1/sessions")

        assert response.status_code == 503
        assert response.json() == {"detail": "Loading"}


class TestSignIn:
    """Tests for sign-in and sign-out endpoints."""

    def test_sign_in_without_profile(self, client: TestClient, issue_token: TokenIssuer) -> None:
        """A principal without profile awaits registration."""
        headers = signed_in(client, issue_token("U1", email="u1@example.com", name="One"))

        body = client.get("/v1/session", headers=headers).json()
        assert body["state"] == "awaiting-registration"
        assert body["principal"]["uid"] == "U1"
        assert body["principal"]["display_name"] == "One"
        assert body["can_register"] is True
        assert body["is_admin"] is False

    def test_invalid_token_returns_401(self, client: TestClient) -> None:
        """A rejected ID token returns 401 with the session message."""
        headers = open_session(client)

        response = client.post(
            "/v1/session/sign-in", json={"id_token": "garbage"}, headers=headers
        )

        assert response.status_code == 401
        assert response.json() == {"detail": "Failed to sign in."}

    def test_empty_token_rejected(self, client: TestClient) -> None:
        """An empty id_token fails request validation."""
        headers = open_session(client)

        response = client.post("/v1/session/sign-in", json={"id_token": ""}, headers=headers)

        assert response.status_code == 422

    def test_anonymous_sign_in(self, client: TestClient) -> None:
        """Anonymous principals must register like anyone else."""
        headers = open_session(client)

        response = client.post("/v1/session/sign-in/anonymous", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["principal"]["is_anonymous"] is True
        assert body["state"] == "awaiting-registration"

    def test_admin_flag_from_allow_list(self, client: TestClient, issue_token: TokenIssuer) -> None:
        """An allow-listed email is reported as administrator."""
        headers = signed_in(client, issue_token("A", email=ADMIN_EMAIL))

        assert client.get("/v1/session", headers=headers).json()["is_admin"] is True

    def test_sign_out(self, client: TestClient, issue_token: TokenIssuer) -> None:
        """Sign-out returns to unauthenticated."""
        headers = signed_in(client, issue_token("U1"))

        response = client.post("/v1/session/sign-out", headers=headers)

        assert response.status_code == 200
        assert response.json()["state"] == "unauthenticated"
        assert response.json()["principal"] is None


class TestGuestMode:
    """Tests for guest mode endpoints."""

    def test_enter_and_leave_guest_mode(self, client: TestClient) -> None:
        """Guest mode toggles between guest and unauthenticated."""
        headers = open_session(client)

        entered = client.post("/v1/session/guest", headers=headers)
        left = client.delete("/v1/session/guest", headers=headers)

        assert entered.status_code == 200
        assert entered.json()["state"] == "guest"
        assert entered.json()["guest"] is True
        assert left.json()["state"] == "unauthenticated"

    def test_guest_mode_rejected_when_signed_in(
        self, client: TestClient, issue_token: TokenIssuer
    ) -> None:
        """Signed-in principals cannot switch to guest mode."""
        headers = signed_in(client, issue_token("U1"))

        response = client.post("/v1/session/guest", headers=headers)

        assert response.status_code == 409


class TestRegisterEndpoint:
    """Tests for POST /v1/register endpoint."""

    def test_register_success_returns_201(
        self, client: TestClient, issue_token: TokenIssuer
    ) -> None:
        """Successful registration returns 201 and a pending profile."""
        headers = signed_in(client, issue_token("U1", email="u1@example.com"))

        response = client.post(
            "/v1/register",
            json={"identification_number": "ID123", "receipt_url": "https://x/r.png"},
            headers=headers,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["state"] == "pending"
        assert body["profile"]["status"] == "pending"
        assert body["profile"]["identification_number"] == "ID123"
        assert body["message"] == {
            "text": "Registration submitted successfully. Awaiting admin approval.",
            "kind": "success",
        }

    def test_register_empty_field_returns_422(
        self,
        client: TestClient,
        issue_token: TokenIssuer,
        store: InMemoryDocumentStore,
        paths: DocumentPaths,
    ) -> None:
        """An empty identification number returns 422 and writes nothing."""
        headers = signed_in(client, issue_token("U1"))

        response = client.post(
            "/v1/register",
            json={"identification_number": "", "receipt_url": "https://x/r.png"},
            headers=headers,
        )

        assert response.status_code == 422
        assert response.json() == {"detail": "Please fill out all fields."}
        assert store.get(paths.profile("U1")) is None

    def test_validation_errors_map_to_unprocessable_content(self) -> None:
        """Domain validation failures use the 422 Unprocessable Content status."""
        status_for = dict(_STATUS_FOR_ERROR)

        assert status_for[ValidationError] == status.HTTP_422_UNPROCESSABLE_CONTENT == 422

    def test_register_twice_returns_409(self, client: TestClient, issue_token: TokenIssuer) -> None:
        """A second registration returns 409 Conflict."""
        headers = signed_in(client, issue_token("U1"))
        payload = {"identification_number": "ID123", "receipt_url": "https://x/r.png"}
        client.post("/v1/register", json=payload, headers=headers)

        response = client.post("/v1/register", json=payload, headers=headers)

        assert response.status_code == 409
        assert response.json() == {"detail": "You are already registered."}

    def test_register_signed_out_returns_401(self, client: TestClient) -> None:
        """Registration requires a signed-in principal."""
        headers = open_session(client)

        response = client.post(
            "/v1/register",
            json={"identification_number": "ID123", "receipt_url": "https://x/r.png"},
            headers=headers,
        )

        assert response.status_code == 401

    def test_register_requires_fields(self, client: TestClient, issue_token: TokenIssuer) -> None:
        """Missing body fields fail request validation."""
        headers = signed_in(client, issue_token("U1"))

        response = client.post(
            "/v1/register", json={"identification_number": "ID123"}, headers=headers
        )

        assert response.status_code == 422


class TestDashboardEndpoint:
    """Tests for GET /v1/dashboard."""

    def test_unauthenticated_forbidden(self, client: TestClient) -> None:
        """Content is hidden before sign-in or guest mode."""
        headers = open_session(client)

        response = client.get("/v1/dashboard", headers=headers)

        assert response.status_code == 403
        assert response.json() == {"detail": "Sign in or continue as guest"}

    def test_awaiting_registration_forbidden(
        self, client: TestClient, issue_token: TokenIssuer
    ) -> None:
        """Content is hidden until the principal registers."""
        headers = signed_in(client, issue_token("U1"))

        response = client.get("/v1/dashboard", headers=headers)

        assert response.status_code == 403
        assert response.json() == {"detail": "Registration required"}

    def test_guest_sees_content(
        self, client: TestClient, store: InMemoryDocumentStore, paths: DocumentPaths
    ) -> None:
        """Guests receive the three content lists and no pending users."""
        store.set(
            f"{paths.content(ContentCollection.ANNOUNCEMENTS)}/a1",
            {"title": "Welcome", "description": "Hello"},
        )
        headers = open_session(client)
        client.post("/v1/session/guest", headers=headers)

        response = client.get("/v1/dashboard", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert [item["id"] for item in body["announcements"]] == ["a1"]
        assert body["activities"] == []
        assert body["gallery"] == []
        assert body["pending_users"] == []

    def test_live_update_visible(
        self, client: TestClient, store: InMemoryDocumentStore, paths: DocumentPaths
    ) -> None:
        """Documents written after opening appear on the next read."""
        headers = open_session(client)
        client.post("/v1/session/guest", headers=headers)

        store.set(f"{paths.content(ContentCollection.GALLERY)}/g1", {"title": "Pic"})

        body = client.get("/v1/dashboard", headers=headers).json()
        assert [item["title"] for item in body["gallery"]] == ["Pic"]

    def test_select_view(self, client: TestClient) -> None:
        """PUT /v1/session/view changes the selected section."""
        headers = open_session(client)

        response = client.put("/v1/session/view", json={"view": "gallery"}, headers=headers)

        assert response.status_code == 200
        assert response.json()["view"] == "gallery"

    def test_select_unknown_view_rejected(self, client: TestClient) -> None:
        """Only the three content sections are selectable."""
        headers = open_session(client)

        response = client.put("/v1/session/view", json={"view": "admin"}, headers=headers)

        assert response.status_code == 422


class TestAdminEndpoints:
    """Tests for approval and deletion endpoints."""

    def test_admin_approves_pending_user(
        self,
        client: TestClient,
        issue_token: TokenIssuer,
        store: InMemoryDocumentStore,
        paths: DocumentPaths,
    ) -> None:
        """Approval activates the applicant and clears the pending list."""
        applicant = signed_in(client, issue_token("U1", email="u1@example.com"))
        client.post(
            "/v1/register",
            json={"identification_number": "ID123", "receipt_url": "https://x/r.png"},
            headers=applicant,
        )
        store.set(paths.profile("A"), {"status": "active"})
        admin = signed_in(client, issue_token("A", email=ADMIN_EMAIL))
        pending = client.get("/v1/dashboard", headers=admin).json()["pending_users"]
        assert [p["uid"] for p in pending] == ["U1"]

        response = client.post("/v1/admin/users/U1/approve", headers=admin)

        assert response.status_code == 200
        assert response.json()["message"]["text"] == "User U1 approved successfully."
        assert client.get("/v1/dashboard", headers=admin).json()["pending_users"] == []
        assert client.get("/v1/session", headers=applicant).json()["state"] == "active"

    def test_admin_deletes_user(
        self,
        client: TestClient,
        issue_token: TokenIssuer,
        store: InMemoryDocumentStore,
        paths: DocumentPaths,
    ) -> None:
        """Deletion removes the profile document."""
        store.set(paths.profile("U1"), {"status": "pending"})
        admin = signed_in(client, issue_token("A", email=ADMIN_EMAIL))

        response = client.delete("/v1/admin/users/U1", headers=admin)

        assert response.status_code == 200
        assert store.get(paths.profile("U1")) is None

    def test_approve_unknown_user_returns_404(
        self, client: TestClient, issue_token: TokenIssuer
    ) -> None:
        """Approving a missing profile returns 404 with the error message."""
        admin = signed_in(client, issue_token("A", email=ADMIN_EMAIL))

        response = client.post("/v1/admin/users/ghost/approve", headers=admin)

        assert response.status_code == 404
        assert response.json() == {"detail": "Error approving user."}

    def test_non_admin_forbidden(
        self,
        client: TestClient,
        issue_token: TokenIssuer,
        store: InMemoryDocumentStore,
        paths: DocumentPaths,
    ) -> None:
        """Non-administrators are rejected even with a stored isAdmin flag."""
        store.set(paths.profile("U1"), {"status": "active", "isAdmin": True})
        store.set(paths.profile("U2"), {"status": "pending"})
        headers = signed_in(client, issue_token("U1", email="u1@example.com"))

        approve = client.post("/v1/admin/users/U2/approve", headers=headers)
        delete = client.delete("/v1/admin/users/U2", headers=headers)

        assert approve.status_code == 403
        assert delete.status_code == 403
        assert store.get(paths.profile("U2")).fields["status"] == "pending"

    def test_guest_forbidden(self, client: TestClient) -> None:
        """Guests cannot reach admin endpoints."""
        headers = open_session(client)
        client.post("/v1/session/guest", headers=headers)

        response = client.delete("/v1/admin/users/U1", headers=headers)

        assert response.status_code == 403
