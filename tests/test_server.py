"""Tests for preview_api/server.py - Preview and render endpoints."""

from unittest.mock import patch

import pytest

from block_visibility.config import Settings
from preview_api import server


@pytest.fixture
def client():
    server.app.config["TESTING"] = True
    with patch.object(server, "AUTH_TOKEN", ""), \
         patch.object(server, "settings", Settings()):
        with server.app.test_client() as client:
            yield client


class TestPreview:
    """Tests for POST /preview."""

    def test_preview_visible(self, client):
        response = client.post("/preview", json={
            "attributes": {"visibilityByRole": "logged-in", "restrictedRoles": ["editor"]},
            "context": {"roles": ["editor"]},
        })

        assert response.status_code == 200
        data = response.get_json()
        assert data["visible"] is True
        assert data["controls"] == [{
            "control": "userRole",
            "state": "true",
            "description": "User has a restricted role",
            "source": "block",
        }]

    def test_preview_hidden(self, client):
        response = client.post("/preview", json={
            "attributes": {"dateTime": {"end": "2024-01-31T23:59:59Z"}},
            "context": {"now": "2024-02-01T00:00:00Z"},
        })

        assert response.get_json()["visible"] is False

    def test_preview_empty_body(self, client):
        response = client.post("/preview")

        assert response.status_code == 200
        assert response.get_json() == {"visible": True, "controls": []}

    def test_preview_requires_token(self, client):
        with patch.object(server, "AUTH_TOKEN", "secret"):
            denied = client.post("/preview", json={})
            allowed = client.post(
                "/preview", json={}, headers={"Authorization": "Bearer secret"}
            )

        assert denied.status_code == 401
        assert allowed.status_code == 200

    def test_rejected_token_is_logged(self, client, caplog):
        with patch.object(server, "AUTH_TOKEN", "secret"), caplog.at_level("WARNING"):
            client.post("/preview", json={}, headers={"Authorization": "Bearer wrong"})

        assert "Rejected unauthorized request to /preview" in caplog.text

    def test_non_object_body(self, client):
        response = client.post("/preview", json=["hideBlock"])

        assert response.status_code == 200
        assert response.get_json() == {"visible": True, "controls": []}


class TestRender:
    """Tests for POST /render."""

    BLOCKS = [
        {"name": "core/paragraph", "html": "<p>all</p>", "attributes": {}},
        {"name": "core/paragraph", "html": "<p>members</p>",
         "attributes": {"blockVisibility": {"visibilityByRole": "logged-in"}}},
        {"name": "core/paragraph", "html": "<p>newsletter</p>",
         "attributes": {"queryString": [{"param": "ref", "operator": "=", "value": "newsletter"}]}},
    ]

    def test_anonymous_render(self, client):
        response = client.post("/render", json={"blocks": self.BLOCKS})

        assert response.status_code == 200
        assert response.get_data(as_text=True) == "<p>all</p>"

    def test_roles_and_query_from_request(self, client):
        response = client.post(
            "/render?ref=newsletter",
            json={"blocks": self.BLOCKS},
            headers={"X-User-Roles": "subscriber, editor"},
        )

        assert response.get_data(as_text=True) == "<p>all</p><p>members</p><p>newsletter</p>"

    @pytest.mark.parametrize("extra", [
        {"integrations": ["wp_fusion"]},
        {"metadata": [1, 2]},
        {"location": "home"},
        {"timezone": 5},
    ])
    def test_malformed_facts_do_not_break_render(self, client, extra):
        response = client.post("/render", json=dict(extra, blocks=self.BLOCKS))

        assert response.status_code == 200
        assert response.get_data(as_text=True) == "<p>all</p>"

    def test_blocks_must_be_list(self, client):
        response = client.post("/render", json={"blocks": {"a": 1}})
        assert response.status_code == 400


class TestControls:
    """Tests for GET /controls."""

    def test_lists_controls(self, client):
        with patch.object(server, "settings", Settings.from_dict(
            {"visibility_controls": {"cookie": {"enable": False}}}
        )):
            data = client.get("/controls").get_json()

        controls = {c["identifier"]: c for c in data["controls"]}
        assert controls["cookie"]["enabled"] is False
        assert controls["userRole"]["enabled"] is True
        assert controls["wpFusion"]["requires_integration"] == "wp_fusion"
