"""
Tests for the HTTP surface.
"""

import pytest
from fastapi.testclient import TestClient

from HearthChat.core.server.auth import CredentialAuthenticator, SessionTokenIssuer, TOKEN_COOKIE
from HearthChat.test.conftest import cookie
from HearthChat.web.routes import create_app


@pytest.fixture
def client(authenticator):
    return TestClient(create_app(authenticator))


class TestCredentialGate:

    @pytest.mark.parametrize("path", ["/", "/index.html", "/does-not-exist"])
    def test_without_credentials_serves_login_page(self, client, path):
        response = client.get(path)
        assert response.status_code == 403
        assert "HearthChat - Login" in response.text

    def test_wrong_password(self, client):
        response = client.get("/", headers={"Cookie": cookie("alice", "nope")})
        assert response.status_code == 403

    def test_valid_credentials_serve_the_page(self, client):
        response = client.get("/", headers={"Cookie": cookie("alice", "wonderland")})
        assert response.status_code == 200
        assert "<title>HearthChat</title>" in response.text

    def test_page_loads_the_chat_client(self, client):
        page = client.get("/", headers={"Cookie": cookie("alice", "wonderland")})
        assert '<script src="script.js"></script>' in page.text

        script = client.get("/script.js", headers={"Cookie": cookie("alice", "wonderland")})
        assert script.status_code == 200
        assert "new WebSocket(" in script.text

    def test_client_script_needs_credentials(self, client):
        assert client.get("/script.js").status_code == 403

    def test_no_token_cookie_by_default(self, client):
        response = client.get("/", headers={"Cookie": cookie("alice", "wonderland")})
        assert TOKEN_COOKIE not in response.cookies


class TestSessionTokens:

    @pytest.fixture
    def token_client(self, directory):
        issuer = SessionTokenIssuer(secret="test-session-secret-0123456789abcdef")
        return TestClient(create_app(CredentialAuthenticator(directory, issuer)))

    def test_token_is_issued_and_accepted(self, token_client):
        response = token_client.get("/", headers={"Cookie": cookie("alice", "wonderland")})
        assert response.status_code == 200
        token = response.cookies[TOKEN_COOKIE]

        follow_up = token_client.get("/", headers={"Cookie": f"{TOKEN_COOKIE}={token}"})
        assert follow_up.status_code == 200
