"""Tests for bearer token authentication."""

import pytest

from warelay.api.auth import authenticate, extract_bearer_token
from warelay.errors import AuthError

from .helpers import API_TOKEN, auth_headers

SEND_BODY = {"numbers": "987654321", "message": "hi"}


class TestExtractBearerToken:
    def test_valid(self):
        assert extract_bearer_token("Bearer abc") == "abc"

    def test_scheme_case_insensitive(self):
        assert extract_bearer_token("bearer abc") == "abc"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer ", "Basic abc", "abc"])
    def test_missing_or_malformed(self, header):
        assert extract_bearer_token(header) is None


class TestAuthenticate:
    def test_missing_header_is_401(self):
        with pytest.raises(AuthError) as exc_info:
            authenticate(None, expected_token=API_TOKEN)
        assert exc_info.value.status_code == 401

    def test_missing_token_segment_is_401(self):
        with pytest.raises(AuthError) as exc_info:
            authenticate("Bearer", expected_token=API_TOKEN)
        assert exc_info.value.status_code == 401

    def test_wrong_token_is_403(self):
        with pytest.raises(AuthError) as exc_info:
            authenticate("Bearer wrong", expected_token=API_TOKEN)
        assert exc_info.value.status_code == 403

    def test_prefix_of_token_is_403(self):
        with pytest.raises(AuthError) as exc_info:
            authenticate(f"Bearer {API_TOKEN[:-1]}", expected_token=API_TOKEN)
        assert exc_info.value.status_code == 403

    def test_correct_token_allowed(self):
        assert authenticate(f"Bearer {API_TOKEN}", expected_token=API_TOKEN) is None


class TestProtectedRoutes:
    @pytest.mark.parametrize("path", ["/send-message", "/send-media"])
    def test_no_header_returns_401(self, client, fake_client, path):
        response = client.post(path, json=SEND_BODY)
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Token not provided."}
        assert fake_client.sends == []

    @pytest.mark.parametrize("path", ["/send-message", "/send-media"])
    def test_wrong_token_returns_403(self, client, fake_client, path):
        response = client.post(path, json=SEND_BODY, headers=auth_headers("wrong"))
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Invalid token."}
        assert fake_client.sends == []

    def test_auth_checked_before_body_validation(self, client):
        response = client.post("/send-message", json={"numbers": 123, "message": ["x"]})
        assert response.status_code == 401

    @pytest.mark.parametrize("path", ["/send-message", "/send-media"])
    def test_auth_checked_before_json_parsing(self, client, fake_client, path):
        response = client.post(
            path, content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Token not provided."}
        assert fake_client.sends == []

    def test_correct_token_processes_request(self, client, fake_client):
        response = client.post("/send-message", json=SEND_BODY, headers=auth_headers())
        assert response.status_code == 200
        assert len(fake_client.sends) == 1

    def test_status_is_public(self, client):
        assert client.get("/status").status_code == 200
