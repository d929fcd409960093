"""HTTP tests for /api/auth: envelope, cookies, request gate and the session scenarios."""

import unittest
from datetime import timedelta

from bugtracker.api.responses import ACCESS_COOKIE, REFRESH_COOKIE
from bugtracker.services import credentials
from support import TEST_PASSWORD, ApiTestCase, add_user, make_token_service


class TestRegisterAndLogin(ApiTestCase):
    def test_register_then_login_then_duplicate(self) -> None:
        resp = self.register(email="a@x.com", password="Passw0rd!")
        self.assertEqual(resp.status_code, 201, resp.text)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["message"], "Registration successful")
        self.assertTrue(body["timestamp"].endswith("Z"))
        self.assertTrue(body["data"]["accessToken"])
        self.assertTrue(body["data"]["refreshToken"])
        self.assertEqual(body["data"]["expiresIn"], "7d")

        login = self.login(email="a@x.com", password="Passw0rd!")
        self.assertEqual(login.status_code, 200)
        self.assertTrue(login.json()["data"]["accessToken"])

        again = self.register(email="a@x.com")
        self.assertEqual(again.status_code, 409)
        self.assertFalse(again.json()["success"])
        self.assertEqual(again.json()["message"], "User with this email already exists")

    def test_user_payload_is_redacted(self) -> None:
        user = self.register().json()["data"]["user"]
        self.assertEqual(user["email"], "a@x.com")
        self.assertEqual(user["role"], "user")
        self.assertIn("_id", user)
        self.assertIn("isActive", user)
        for secret in ("password", "passwordHash", "password_hash", "refreshToken", "loginAttempts", "lockUntil"):
            self.assertNotIn(secret, user)

    def test_tokens_set_as_http_only_cookies(self) -> None:
        resp = self.register()
        cookies = resp.headers.get_list("set-cookie")
        access = next(c for c in cookies if c.startswith(f"{ACCESS_COOKIE}="))
        refresh = next(c for c in cookies if c.startswith(f"{REFRESH_COOKIE}="))
        self.assertIn("HttpOnly", access)
        self.assertIn("Max-Age=604800", access)
        self.assertIn("Max-Age=2592000", refresh)

    def test_public_registration_cannot_pick_admin(self) -> None:
        resp = self.register(role="admin")
        self.assertEqual(resp.status_code, 400)
        fields = [e["field"] for e in resp.json()["errors"]]
        self.assertIn("role", fields)

    def test_weak_password_rejected_with_field_errors(self) -> None:
        resp = self.register(password="alllowercase")
        self.assertEqual(resp.status_code, 400)
        body = resp.json()
        self.assertEqual(body["message"], "Validation failed")
        self.assertIn("password", [e["field"] for e in body["errors"]])

    def test_login_unknown_email_same_as_wrong_password(self) -> None:
        self.register()
        unknown = self.login(email="nobody@x.com")
        wrong = self.login(password="Wrong0ne!")
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(unknown.json()["message"], wrong.json()["message"])

    def test_login_then_me_returns_same_user(self) -> None:
        user_id = self.register().json()["data"]["user"]["_id"]
        tokens = self.login_tokens()
        self.client.cookies.clear()
        me = self.client.get("/api/auth/me", headers=self.bearer(tokens["accessToken"]))
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["data"]["_id"], user_id)


class TestLockout(ApiTestCase):
    def test_five_failures_lock_the_account(self) -> None:
        self.register()
        for _ in range(5):
            self.assertEqual(self.login(password="Wrong0ne!").status_code, 401)
        resp = self.login()
        self.assertEqual(resp.status_code, 403)
        self.assertIn("Try again in 2 hours", resp.json()["message"])

    def test_lock_expires(self) -> None:
        self.register()
        for _ in range(5):
            self.login(password="Wrong0ne!")
        self.clock.advance(hours=2)
        self.assertEqual(self.login().status_code, 200)

    def test_deactivated_login_forbidden(self) -> None:
        add_user(self.db, is_active=False)
        resp = self.login()
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["message"], "Account deactivated. Contact support.")


class TestRefresh(ApiTestCase):
    def test_rotation_rejects_old_refresh_token(self) -> None:
        self.register()
        old = self.login_tokens()["refreshToken"]
        resp = self.client.post("/api/auth/refresh", json={"refreshToken": old})
        self.assertEqual(resp.status_code, 200, resp.text)
        new = resp.json()["data"]["refreshToken"]
        self.assertNotEqual(new, old)

        replay = self.client.post("/api/auth/refresh", json={"refreshToken": old})
        self.assertEqual(replay.status_code, 401)
        self.assertEqual(replay.json()["message"], "Refresh token invalid or revoked")

    def test_refresh_from_cookie(self) -> None:
        self.register()
        self.login_tokens()
        resp = self.client.post("/api/auth/refresh")
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(
            self.client.cookies.get(REFRESH_COOKIE), resp.json()["data"]["refreshToken"]
        )

    def test_refresh_missing(self) -> None:
        resp = self.client.post("/api/auth/refresh", json={})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Refresh token required")

    def test_refresh_invalid(self) -> None:
        resp = self.client.post("/api/auth/refresh", json={"refreshToken": "nope"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Invalid or expired refresh token")


class TestLogout(ApiTestCase):
    def test_logout_is_idempotent(self) -> None:
        self.register()
        tokens = self.login_tokens()
        headers = self.bearer(tokens["accessToken"])
        first = self.client.post("/api/auth/logout", headers=headers)
        second = self.client.post("/api/auth/logout", headers=headers)
        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertIsNone(self.client.cookies.get(ACCESS_COOKIE))

        refresh = self.client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
        self.assertEqual(refresh.status_code, 401)

    def test_logout_requires_auth(self) -> None:
        resp = self.client.post("/api/auth/logout")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.headers.get("www-authenticate"), "Bearer")


class TestChangePassword(ApiTestCase):
    def test_token_issued_before_change_is_rejected(self) -> None:
        self.register()
        original = self.login_tokens()["accessToken"]
        self.clock.advance(seconds=0.5)

        resp = self.client.put(
            "/api/auth/change-password",
            json={"currentPassword": TEST_PASSWORD, "newPassword": "N3wPassword"},
            headers=self.bearer(original),
        )
        self.assertEqual(resp.status_code, 200, resp.text)

        me = self.client.get("/api/auth/me", headers=self.bearer(original))
        self.assertEqual(me.status_code, 401)
        self.assertEqual(me.json()["message"], "Password recently changed. Please log in again.")

        fresh = self.login_tokens(password="N3wPassword")["accessToken"]
        self.assertEqual(
            self.client.get("/api/auth/me", headers=self.bearer(fresh)).status_code, 200
        )

    def test_wrong_current_password(self) -> None:
        self.register()
        tokens = self.login_tokens()
        resp = self.client.put(
            "/api/auth/change-password",
            json={"currentPassword": "Wrong0ne!", "newPassword": "N3wPassword"},
            headers=self.bearer(tokens["accessToken"]),
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Current password is incorrect")


class TestRequestGate(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = add_user(self.db)
        self.tokens = make_token_service(self.clock)

    def me(self, token: str | None = None):
        self.client.cookies.clear()
        headers = self.bearer(token) if token else {}
        return self.client.get("/api/auth/me", headers=headers)

    def test_no_token(self) -> None:
        resp = self.me()
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Authentication required. Please log in.")

    def test_cookie_token_accepted(self) -> None:
        self.client.cookies.set(ACCESS_COOKIE, self.tokens.issue_access(self.user.id, "user"))
        resp = self.client.get("/api/auth/me")
        self.assertEqual(resp.status_code, 200)

    def test_expired_token(self) -> None:
        token = self.tokens.issue_access(self.user.id, "user")
        self.clock.advance(days=8)
        resp = self.me(token)
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Token expired. Please log in again.")

    def test_invalid_token(self) -> None:
        resp = self.me("not-a-token")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Invalid token. Please log in again.")

    def test_refresh_token_cannot_authenticate(self) -> None:
        resp = self.me(self.tokens.issue_refresh(self.user.id))
        self.assertEqual(resp.status_code, 401)

    def test_user_no_longer_exists(self) -> None:
        resp = self.me(self.tokens.issue_access(9999, "user"))
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "User no longer exists.")

    def test_deactivated_user(self) -> None:
        credentials.update_fields(self.db, self.user.id, {"is_active": False})
        resp = self.me(self.tokens.issue_access(self.user.id, "user"))
        self.assertEqual(resp.status_code, 401)

    def test_locked_user(self) -> None:
        credentials.update_fields(
            self.db, self.user.id, {"lock_until": self.clock() + timedelta(hours=1)}
        )
        resp = self.me(self.tokens.issue_access(self.user.id, "user"))
        self.assertEqual(resp.status_code, 403)

    def test_token_issued_just_before_password_change(self) -> None:
        token = self.tokens.issue_access(self.user.id, "user")
        credentials.update_fields(
            self.db,
            self.user.id,
            {"password_changed_at": self.clock() + timedelta(milliseconds=1)},
        )
        resp = self.me(token)
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Password recently changed. Please log in again.")

    def test_token_issued_at_moment_of_change_is_accepted(self) -> None:
        credentials.update_fields(self.db, self.user.id, {"password_changed_at": self.clock()})
        resp = self.me(self.tokens.issue_access(self.user.id, "user"))
        self.assertEqual(resp.status_code, 200)

    def test_update_profile(self) -> None:
        token = self.tokens.issue_access(self.user.id, "user")
        resp = self.client.put(
            "/api/auth/me",
            json={"name": "  Alice B  ", "department": "QA", "role": "admin"},
            headers=self.bearer(token),
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        data = resp.json()["data"]
        self.assertEqual(data["name"], "Alice B")
        self.assertEqual(data["department"], "QA")
        self.assertEqual(data["role"], "user")

    def test_update_profile_validation(self) -> None:
        token = self.tokens.issue_access(self.user.id, "user")
        resp = self.client.put("/api/auth/me", json={"name": "A"}, headers=self.bearer(token))
        self.assertEqual(resp.status_code, 400)

    def test_update_profile_null_clears_optional_fields(self) -> None:
        credentials.update_fields(self.db, self.user.id, {"department": "QA", "avatar": "a.png"})
        token = self.tokens.issue_access(self.user.id, "user")
        resp = self.client.put(
            "/api/auth/me",
            json={"department": None, "avatar": None},
            headers=self.bearer(token),
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        data = resp.json()["data"]
        self.assertIsNone(data["department"])
        self.assertIsNone(data["avatar"])
        self.assertEqual(data["name"], "Alice Tester")

    def test_update_profile_null_name_rejected(self) -> None:
        token = self.tokens.issue_access(self.user.id, "user")
        resp = self.client.put("/api/auth/me", json={"name": None}, headers=self.bearer(token))
        self.assertEqual(resp.status_code, 400)
        self.assertIn("name", [e["field"] for e in resp.json()["errors"]])


class TestOptionalAuth(ApiTestCase):
    def test_anonymous(self) -> None:
        resp = self.client.get("/api/auth/session")
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["data"]["authenticated"])

    def test_bad_token_proceeds_anonymously(self) -> None:
        resp = self.client.get("/api/auth/session", headers=self.bearer("garbage"))
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["data"]["authenticated"])

    def test_authenticated(self) -> None:
        self.register()
        tokens = self.login_tokens()
        resp = self.client.get("/api/auth/session", headers=self.bearer(tokens["accessToken"]))
        data = resp.json()["data"]
        self.assertTrue(data["authenticated"])
        self.assertEqual(data["user"]["email"], "a@x.com")


class TestEnvelopeForUnknownRoute(ApiTestCase):
    def test_not_found(self) -> None:
        resp = self.client.get("/api/nothing-here")
        self.assertEqual(resp.status_code, 404)
        body = resp.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["message"], "Route GET /api/nothing-here not found")


if __name__ == "__main__":
    unittest.main()
