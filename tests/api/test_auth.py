"""
Tests for API key parsing, principal resolution and the health endpoint.
"""

import pytest

from library_api.auth import APIKeyManager
from library_api.config import config


class TestParseAuthorization:
    """Test cases for Authorization header parsing."""

    @pytest.mark.parametrize("header", [
        "Token token=abc123",
        'Token token="abc123"',
        "Token token = abc123",
        "Token abc123",
        "Bearer abc123",
        "token token=abc123",
    ])
    def test_accepted_forms(self, header):
        """Test every accepted header form yields the key."""
        assert APIKeyManager.parse_authorization(header) == "abc123"

    @pytest.mark.parametrize("header", [
        None,
        "",
        "Token",
        "Token ",
        "Basic dXNlcjpwYXNz",
        "Token other=abc123",
        "abc123",
    ])
    def test_rejected_forms(self, header):
        """Test malformed headers yield no key."""
        assert APIKeyManager.parse_authorization(header) is None


class TestAPIKeyManager:
    """Test cases for key generation."""

    def test_generated_keys_are_prefixed_and_unique(self):
        """Test generated keys carry the configured prefix."""
        first = APIKeyManager.generate_api_key()
        second = APIKeyManager.generate_api_key()
        assert first.startswith(config.api_key_prefix)
        assert first != second

    def test_mask(self):
        """Test keys are truncated for logs."""
        assert APIKeyManager.mask("lib_abcdefghijklmnop") == "lib_abcdef..."


class TestPrincipalResolution:
    """Test cases for the authentication gate over HTTP."""

    def test_bearer_header_authenticates(self, client, admin):
        """Test the Bearer form resolves the principal."""
        response = client.get("/book_copies", headers={"Authorization": f"Bearer {admin.api_key}"})
        assert response.status_code == 200

    def test_quoted_token_authenticates(self, client, admin):
        """Test the quoted Token form resolves the principal."""
        response = client.get(
            "/book_copies", headers={"Authorization": f'Token token="{admin.api_key}"'}
        )
        assert response.status_code == 200

    def test_error_body(self, client):
        """Test that 401 responses use the error schema."""
        response = client.get("/authors")
        assert response.status_code == 401
        assert response.json() == {
            "error": "Missing API key",
            "detail": None,
            "status_code": 401,
        }

    def test_rotated_key_stops_working(self, client, factory, admin):
        """Test that rotating a key invalidates the old one."""
        factory.run(factory.db_service.rotate_api_key(admin.id, "lib_fresh"))

        old = client.get("/authors", headers={"Authorization": f"Token token={admin.api_key}"})
        new = client.get("/authors", headers={"Authorization": "Token token=lib_fresh"})

        assert old.status_code == 401
        assert new.status_code == 200


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert "status" in data
    assert "timestamp" in data
    assert data["version"] == config.api_version
    assert "database_status" in data


def test_unknown_route_uses_error_schema(client):
    """Test that the framework's own 404 renders like every other error."""
    response = client.get("/no_such_route")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found", "detail": None, "status_code": 404}


def test_unsupported_method_uses_error_schema(client, headers, admin, book_copy):
    """Test that a 405 renders with the error schema and keeps its Allow header."""
    response = client.post(f"/book_copies/{book_copy.id}", headers=headers(admin))
    assert response.status_code == 405
    assert response.json() == {
        "error": "Method Not Allowed",
        "detail": None,
        "status_code": 405,
    }
    assert "allow" in response.headers


def test_openapi_description_comes_from_config(client):
    """Test the API description is read from configuration."""
    schema = client.get("/openapi.json").json()
    assert schema["info"]["description"] == config.api_description
