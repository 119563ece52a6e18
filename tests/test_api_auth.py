"""Tests for /api/auth: login, refresh rotation and logout."""

from jose import jwt

from bizflow.models import UserSession

from tests.factories import PASSWORD, auth_headers, login


class TestLogin:
    def test_success(self, client, seed):
        body = login(client, "owner@example.com")

        assert body["user"]["id"] == seed.owner.id
        assert body["user"]["role"] == "admin"
        assert body["user"]["name"] == "Olive Owner"
        assert body["accessToken"]
        assert body["refreshToken"]

        claims = jwt.get_unverified_claims(body["accessToken"])
        assert claims["sub"] == seed.owner.id
        assert claims["type"] == "access"
        assert claims["sid"]

    def test_email_is_case_insensitive(self, client, seed):
        body = login(client, "Owner@Example.com")
        assert body["user"]["id"] == seed.owner.id

    def test_with_member_tenant(self, client, seed):
        body = login(client, "owner@example.com", tenant_id=seed.clinic.id)

        assert body["user"]["tenantId"] == seed.clinic.id
        assert jwt.get_unverified_claims(body["accessToken"])["tenant_id"] == seed.clinic.id

    def test_failures_are_indistinguishable(self, client, seed):
        attempts = [
            {"email": "owner@example.com", "password": "wrong"},
            {"email": "nobody@example.com", "password": PASSWORD},
            {"email": "gone@example.com", "password": PASSWORD},
            {"email": "owner@example.com", "password": PASSWORD, "tenantId": seed.other.id},
        ]
        for attempt in attempts:
            response = client.post("/api/auth/login", json=attempt)

            assert response.status_code == 401
            assert response.json()["detail"] == "Invalid credentials"
            assert response.json()["code"] == "INVALID_CREDENTIALS"

    def test_opens_session_row(self, client, db, seed):
        login(client, "staff@example.com")

        sessions = db.query(UserSession).filter(UserSession.user_id == seed.staff.id).all()
        assert len(sessions) == 1
        assert sessions[0].is_revoked is False

    def test_rejects_malformed_body(self, client, seed):
        response = client.post("/api/auth/login", json={"email": "not-an-email", "password": "x"})
        assert response.status_code == 422


class TestRefresh:
    def test_rotates_refresh_token(self, client, seed):
        tokens = login(client, "owner@example.com")

        response = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})

        assert response.status_code == 200
        pair = response.json()
        assert pair["refreshToken"] != tokens["refreshToken"]
        assert jwt.get_unverified_claims(pair["accessToken"])["sub"] == seed.owner.id

        # The new access token works
        assert client.get("/api/tenants", headers=auth_headers(pair)).status_code == 200

    def test_reused_refresh_token_revokes_family(self, client, seed):
        tokens = login(client, "owner@example.com")
        rotated = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]}).json()

        replay = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})

        assert replay.status_code == 401
        assert replay.json()["code"] == "REUSE_DETECTED"

        # The legitimate holder's newer token is dead too
        follow_up = client.post("/api/auth/refresh", json={"refreshToken": rotated["refreshToken"]})
        assert follow_up.status_code == 401
        assert follow_up.json()["code"] == "SESSION_REVOKED"

    def test_reuse_leaves_other_logins_alone(self, client, seed):
        stolen = login(client, "owner@example.com")
        other_device = login(client, "owner@example.com")
        client.post("/api/auth/refresh", json={"refreshToken": stolen["refreshToken"]})
        client.post("/api/auth/refresh", json={"refreshToken": stolen["refreshToken"]})

        response = client.post("/api/auth/refresh", json={"refreshToken": other_device["refreshToken"]})

        assert response.status_code == 200

    def test_unknown_refresh_token(self, client, seed):
        response = client.post("/api/auth/refresh", json={"refreshToken": "made-up"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_REFRESH_TOKEN"

    def test_inactive_user_cannot_refresh(self, client, db, seed):
        tokens = login(client, "staff@example.com")
        seed.staff.is_active = False
        db.add(seed.staff)
        db.commit()

        response = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})

        assert response.status_code == 401
        assert response.json()["code"] == "USER_INACTIVE"


class TestLogout:
    def test_revokes_session(self, client, seed):
        tokens = login(client, "owner@example.com")

        response = client.post("/api/auth/logout", json={"refreshToken": tokens["refreshToken"]})

        assert response.status_code == 200
        assert response.json() == {"success": True}

        refreshed = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert refreshed.json()["code"] == "SESSION_REVOKED"

    def test_logout_by_access_token(self, client, seed):
        tokens = login(client, "owner@example.com")

        client.post("/api/auth/logout", headers=auth_headers(tokens))

        refreshed = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        assert refreshed.status_code == 401

    def test_always_succeeds(self, client, seed):
        response = client.post("/api/auth/logout", json={"refreshToken": "unknown"})

        assert response.status_code == 200


def test_protected_route_requires_token(client, seed):
    response = client.get("/api/tenants")

    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_TOKEN"


def test_garbage_token_is_rejected(client, seed):
    response = client.get("/api/tenants", headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"
