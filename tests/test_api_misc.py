"""
HTTP tests for client administration, federation, health checks and error rendering.
"""

import pytest
import pytest_asyncio

from social.tube.pod.app.config import HealthGaugeAppKey, MediaStoreAppKey
from social.tube.pod.library.media import MediaStore
from tests.test_helpers import (
    ROOT_PASSWORD,
    ROOT_USERNAME,
    FakeHandshake,
    access_token,
    bearer,
    login,
    video_form,
)


@pytest_asyncio.fixture
async def root_token(http_client):
    return await access_token(http_client, ROOT_USERNAME, ROOT_PASSWORD)


@pytest_asyncio.fixture
async def user_token(http_client, root_token):
    response = await http_client.post(
        "/api/v1/users",
        json={"username": "user_1", "password": "password"},
        headers=bearer(root_token),
    )
    assert response.status == 200
    return await access_token(http_client, "user_1", "password")


async def test_health_endpoints(http_client):
    assert (await http_client.get("/internal/alive")).status == 200
    assert (await http_client.get("/internal/ready")).status == 200


async def test_token_endpoint_accepts_json(http_client):
    response = await http_client.post(
        "/api/v1/users/token",
        json={
            "grant_type": "password",
            "client_id": "tube-test-client",
            "client_secret": "tube-test-secret",
            "username": ROOT_USERNAME,
            "password": ROOT_PASSWORD,
        },
    )
    assert response.status == 200
    assert "access_token" in await response.json()


@pytest.mark.parametrize(
    "data,error",
    [
        ({}, "invalid_grant"),
        ({"grant_type": "client_credentials"}, "invalid_grant"),
        ({"grant_type": "password"}, "invalid_client"),
        (
            {
                "grant_type": "refresh_token",
                "client_id": "tube-test-client",
                "client_secret": "tube-test-secret",
                "refresh_token": "unknown",
            },
            "invalid_grant",
        ),
    ],
)
async def test_token_endpoint_errors(http_client, data, error):
    response = await http_client.post("/api/v1/users/token", data=data)
    assert response.status == 400
    assert (await response.json()) == {"error": error}


async def test_user_creation_rules(http_client, root_token, user_token):
    response = await http_client.post(
        "/api/v1/users",
        json={"username": "user_1", "password": "password"},
        headers=bearer(root_token),
    )
    assert response.status == 400
    assert (await response.json()) == {"error": "username_taken"}

    response = await http_client.post(
        "/api/v1/users",
        json={"username": "mallory", "password": "password", "role": "admin"},
        headers=bearer(user_token),
    )
    assert response.status == 403

    response = await http_client.post(
        "/api/v1/users",
        json={"username": "helper", "password": "password", "role": "admin"},
        headers=bearer(root_token),
    )
    assert response.status == 200

    response = await http_client.post(
        "/api/v1/users", data=b"not json", headers=bearer(root_token)
    )
    assert response.status == 400
    assert (await response.json()) == {"error": "invalid_request"}

    response = await http_client.post(
        "/api/v1/users", json={"username": "someone", "password": "pw"}
    )
    assert response.status == 401


async def test_listing_errors(http_client):
    response = await http_client.get("/api/v1/users", params={"sort": "password"})
    assert response.status == 400
    assert (await response.json()) == {"error": "invalid_sort"}

    response = await http_client.get("/api/v1/videos", params={"start": "-3"})
    assert response.status == 400

    response = await http_client.get("/api/v1/videos/01JUNKNOWNVIDEO")
    assert response.status == 404
    assert await response.read() == b""


async def test_upload_validation(http_client, root_token):
    response = await http_client.post(
        "/api/v1/videos", data=video_form(filename="notes.txt"), headers=bearer(root_token)
    )
    assert response.status == 400
    assert (await response.json()) == {"error": "invalid_video_file"}

    response = await http_client.post(
        "/api/v1/videos", data=video_form(tags=["a"]), headers=bearer(root_token)
    )
    assert response.status == 400

    response = await http_client.post(
        "/api/v1/videos", data=video_form(filename=None, content=b""), headers=bearer(root_token)
    )
    assert response.status == 400

    response = await http_client.get("/api/v1/videos")
    assert (await response.json())["total"] == 0


async def test_admin_may_remove_any_video(http_client, root_token, user_token):
    response = await http_client.post(
        "/api/v1/videos", data=video_form(), headers=bearer(user_token)
    )
    assert response.status == 204
    video = (await (await http_client.get("/api/v1/videos")).json())["data"][0]

    response = await http_client.delete(
        f"/api/v1/videos/{video['id']}", headers=bearer(root_token)
    )
    assert response.status == 204


async def test_user_may_delete_itself(http_client, user_token):
    me = await (await http_client.get("/api/v1/users/me", headers=bearer(user_token))).json()

    response = await http_client.delete(
        f"/api/v1/users/{me['id']}", headers=bearer(user_token)
    )
    assert response.status == 200

    response = await login(http_client, "user_1", "password")
    assert response.status == 400


async def test_oauth_client_administration(http_client, root_token, user_token):
    response = await http_client.get("/api/v1/oauth-clients", headers=bearer(user_token))
    assert response.status == 403

    response = await http_client.post(
        "/api/v1/oauth-clients",
        json={"name": "mobile", "grant_types": ["password"]},
        headers=bearer(root_token),
    )
    assert response.status == 200
    created = await response.json()
    assert created["grant_types"] == ["password"]

    response = await login(
        http_client,
        ROOT_USERNAME,
        ROOT_PASSWORD,
        client_id=created["client_id"],
        client_secret=created["client_secret"],
    )
    assert response.status == 200

    response = await http_client.get("/api/v1/oauth-clients", headers=bearer(root_token))
    listed = (await response.json())["data"]
    assert [c["client_id"] for c in listed] == ["tube-test-client", created["client_id"]]
    assert all("client_secret" not in c for c in listed)

    response = await http_client.post(
        "/api/v1/oauth-clients",
        json={"grant_types": ["implicit"]},
        headers=bearer(root_token),
    )
    assert response.status == 400

    response = await http_client.delete(
        f"/api/v1/oauth-clients/{created['client_id']}", headers=bearer(root_token)
    )
    assert response.status == 204

    response = await login(
        http_client,
        ROOT_USERNAME,
        ROOT_PASSWORD,
        client_id=created["client_id"],
        client_secret=created["client_secret"],
    )
    assert (await response.json())["error"] == "invalid_client"


async def test_federation(http_client, user_token, handshake):
    response = await http_client.post(
        "/api/v1/pods/makefriends", headers=bearer(user_token)
    )
    assert response.status == 200
    states = {r["host"]: r["state"] for r in (await response.json())["data"]}
    assert states == {
        "http://friend.example": "active",
        "http://refusing.example": "terminated",
    }

    response = await http_client.post(
        "/api/v1/pods/makefriends",
        json={"urls": ["not a url"]},
        headers=bearer(user_token),
    )
    assert response.status == 400
    assert (await response.json()) == {"error": "invalid_pod"}

    response = await http_client.post(
        "/api/v1/pods/quitfriends", headers=bearer(user_token)
    )
    assert response.status == 200
    assert [r["host"] for r in (await response.json())["data"]] == ["http://friend.example"]
    assert handshake.departed == ["http://friend.example"]

    response = await http_client.get("/api/v1/pods")
    assert {r["state"] for r in (await response.json())["data"]} == {"terminated"}


class TestAdminOnlyFederation:
    @pytest.fixture
    def settings(self, settings):
        return settings.model_copy(update={"federation_requires_admin": True})

    async def test_non_admin_is_refused(self, http_client, root_token, user_token):
        response = await http_client.post(
            "/api/v1/pods/makefriends", headers=bearer(user_token)
        )
        assert response.status == 403

        response = await http_client.post(
            "/api/v1/pods/makefriends",
            json={"urls": ["http://friend.example"]},
            headers=bearer(root_token),
        )
        assert response.status == 200


class TestFlakyPeer:
    @pytest.fixture
    def handshake(self):
        return FakeHandshake(failing_once={"http://friend.example"})

    async def test_failed_handshake_is_not_left_pending(self, http_client, user_token):
        body = {"urls": ["http://friend.example"]}

        response = await http_client.post(
            "/api/v1/pods/makefriends", json=body, headers=bearer(user_token)
        )
        assert response.status == 200
        assert (await response.json())["data"][0]["state"] == "terminated"

        response = await http_client.post(
            "/api/v1/pods/makefriends", json=body, headers=bearer(user_token)
        )
        assert (await response.json())["data"][0]["state"] == "active"

        response = await http_client.get("/api/v1/pods")
        assert [r["state"] for r in (await response.json())["data"]] == ["active"]


class ExplodingMediaStore(MediaStore):
    async def save(self, chunks, filename):
        raise RuntimeError("disk on fire")

    async def remove(self, file_ref):
        pass


class TestUnexpectedErrors:
    @pytest_asyncio.fixture
    async def app(self, app):
        app[MediaStoreAppKey] = ExplodingMediaStore()
        return app

    async def test_internal_error_is_reported(self, app, http_client, root_token):
        response = await http_client.post(
            "/api/v1/videos", data=video_form(), headers=bearer(root_token)
        )
        assert response.status == 500
        assert (await response.json()) == {
            "error": "Internal Server Error",
            "error_type": "RuntimeError",
        }
        assert await app[HealthGaugeAppKey].value() == 1
