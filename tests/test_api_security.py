"""Tests for /api/security: sessions and step-up authentication."""

from bizflow.core.security import create_step_up_token

from tests.factories import PASSWORD, auth_headers, login


def step_up(client, tokens, purpose, password=PASSWORD):
    return client.post(
        "/api/security/step-up/verify",
        json={"password": password, "purpose": purpose},
        headers=auth_headers(tokens),
    )


def test_lists_active_sessions_with_current_flag(client, seed):
    first = login(client, "owner@example.com")
    login(client, "owner@example.com")

    response = client.get("/api/security/sessions", headers=auth_headers(first))

    assert response.status_code == 200
    sessions = response.json()
    assert len(sessions) == 2
    assert sum(s["isCurrent"] for s in sessions) == 1


class TestStepUpVerify:
    def test_correct_password_issues_token(self, client, seed):
        tokens = login(client, "owner@example.com")

        response = step_up(client, tokens, "revoke_session")

        assert response.status_code == 200
        assert response.json()["stepUpToken"]
        assert response.json()["expiresIn"] == 300

    def test_wrong_password(self, client, seed):
        tokens = login(client, "owner@example.com")

        response = step_up(client, tokens, "revoke_session", password="nope")

        assert response.status_code == 401
        assert response.json()["code"] == "STEP_UP_FAILED"


class TestRevokeSession:
    def test_requires_step_up(self, client, seed):
        tokens = login(client, "owner@example.com")
        other = login(client, "owner@example.com")
        other_id = [s for s in client.get("/api/security/sessions", headers=auth_headers(other)).json()
                    if s["isCurrent"]][0]["id"]

        response = client.post(f"/api/security/sessions/{other_id}/revoke", headers=auth_headers(tokens))

        assert response.status_code == 428
        assert response.json() == {
            "code": "STEP_UP_REQUIRED",
            "purpose": "revoke_session",
            "detail": "Step-up authentication required",
        }

    def test_revokes_with_step_up_token(self, client, seed):
        tokens = login(client, "owner@example.com")
        other = login(client, "owner@example.com")
        other_id = [s for s in client.get("/api/security/sessions", headers=auth_headers(other)).json()
                    if s["isCurrent"]][0]["id"]
        proof = step_up(client, tokens, "revoke_session").json()["stepUpToken"]

        headers = {**auth_headers(tokens), "X-Step-Up-Token": proof}
        response = client.post(f"/api/security/sessions/{other_id}/revoke", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"revoked": 1}
        refreshed = client.post("/api/auth/refresh", json={"refreshToken": other["refreshToken"]})
        assert refreshed.json()["code"] == "SESSION_REVOKED"

    def test_step_up_token_is_bound_to_purpose(self, client, seed):
        tokens = login(client, "owner@example.com")
        proof = step_up(client, tokens, "revoke_all_sessions").json()["stepUpToken"]

        headers = {**auth_headers(tokens), "X-Step-Up-Token": proof}
        response = client.post("/api/security/sessions/whatever/revoke", headers=headers)

        assert response.status_code == 428

    def test_step_up_token_is_bound_to_user(self, client, seed):
        tokens = login(client, "owner@example.com")
        proof = create_step_up_token(seed.staff.id, "revoke_session")

        headers = {**auth_headers(tokens), "X-Step-Up-Token": proof}
        response = client.post("/api/security/sessions/whatever/revoke", headers=headers)

        assert response.status_code == 428

    def test_cannot_revoke_someone_elses_session(self, client, seed):
        staff = login(client, "staff@example.com")
        staff_session = client.get("/api/security/sessions", headers=auth_headers(staff)).json()[0]["id"]
        tokens = login(client, "owner@example.com")
        proof = step_up(client, tokens, "revoke_session").json()["stepUpToken"]

        headers = {**auth_headers(tokens), "X-Step-Up-Token": proof}
        response = client.post(f"/api/security/sessions/{staff_session}/revoke", headers=headers)

        assert response.status_code == 404


class TestRevokeAll:
    def test_revokes_everything_but_current(self, client, seed):
        current = login(client, "owner@example.com")
        others = [login(client, "owner@example.com") for _ in range(2)]
        proof = step_up(client, current, "revoke_all_sessions").json()["stepUpToken"]

        headers = {**auth_headers(current), "X-Step-Up-Token": proof}
        response = client.post("/api/security/sessions/revoke-all", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"revoked": 2}

        remaining = client.get("/api/security/sessions", headers=auth_headers(current)).json()
        assert len(remaining) == 1
        assert remaining[0]["isCurrent"] is True
        for tokens in others:
            refreshed = client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
            assert refreshed.status_code == 401

    def test_requires_step_up(self, client, seed):
        tokens = login(client, "owner@example.com")

        response = client.post("/api/security/sessions/revoke-all", headers=auth_headers(tokens))

        assert response.status_code == 428
        assert response.json()["purpose"] == "revoke_all_sessions"
