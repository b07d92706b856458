import unittest

from agency.auth import AuthManager, permissions_for_role
from agency.errors import AuthError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class AuthManagerTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.auth = AuthManager(
            session_timeout=600, refresh_threshold=60, clock=self.clock
        )
        self.user = {"id": "u1", "email": "admin@lux.com"}

    def test_permissions_for_role(self):
        self.assertEqual(permissions_for_role("admin"), ["read", "write", "sync", "admin"])
        self.assertEqual(permissions_for_role("streamer"), ["read"])
        self.assertEqual(permissions_for_role("nobody"), [])

    def test_create_and_validate(self):
        grant = self.auth.create_token(self.user, ["read", "write"])

        validation = self.auth.validate_token(grant.token, ["write"])

        self.assertTrue(validation.valid)
        self.assertFalse(validation.needs_refresh)
        self.assertEqual(validation.user, self.user)
        self.assertEqual(grant.expires_at, 1600.0)

    def test_needs_refresh_near_expiry(self):
        grant = self.auth.create_token(self.user, ["read"])
        self.clock.now += 580

        self.assertTrue(self.auth.validate_token(grant.token).needs_refresh)

    def test_expired_token(self):
        grant = self.auth.create_token(self.user, ["read"])
        self.clock.now += 601

        first = self.auth.validate_token(grant.token)
        second = self.auth.validate_token(grant.token)

        self.assertEqual(first.action, "REFRESH_TOKEN")
        self.assertEqual(second.action, "LOGIN_REQUIRED")

    def test_missing_and_unknown_tokens(self):
        self.assertEqual(self.auth.validate_token(None).error, "Token not provided")
        self.assertEqual(self.auth.validate_token("nope").action, "LOGIN_REQUIRED")

    def test_permission_denied(self):
        grant = self.auth.create_token(self.user, ["read"])

        validation = self.auth.validate_token(grant.token, ["read", "sync"])

        self.assertFalse(validation.valid)
        self.assertEqual(validation.action, "PERMISSION_DENIED")
        self.assertEqual(validation.error, "Missing permissions: sync")

    def test_require_raises(self):
        grant = self.auth.create_token(self.user, ["read"])

        with self.assertRaises(AuthError) as forbidden:
            self.auth.require(grant.token, ["admin"])
        with self.assertRaises(AuthError) as unauthorized:
            self.auth.require("nope")

        self.assertEqual(forbidden.exception.status_code, 403)
        self.assertEqual(unauthorized.exception.status_code, 401)
        self.assertEqual(unauthorized.exception.action, "LOGIN_REQUIRED")

    def test_refresh(self):
        grant = self.auth.create_token(self.user, ["read"])

        renewed = self.auth.refresh(grant.refresh_token)

        self.assertNotEqual(renewed.token, grant.token)
        self.assertTrue(self.auth.validate_token(renewed.token).valid)
        self.assertFalse(self.auth.validate_token(grant.token).valid)
        with self.assertRaises(AuthError):
            self.auth.refresh(grant.refresh_token)

    def test_refresh_after_session_removed(self):
        grant = self.auth.create_token(self.user, ["read"])
        self.auth.revoke(grant.token)

        with self.assertRaises(AuthError):
            self.auth.refresh(grant.refresh_token)

    def test_cleanup_and_stats(self):
        self.auth.create_token(self.user, ["read"])
        self.clock.now += 601
        self.auth.create_token(self.user, ["read"])

        self.assertEqual(
            self.auth.stats(),
            {"active_tokens": 1, "total_tokens": 2, "refresh_tokens": 2},
        )
        self.assertEqual(self.auth.cleanup_expired(), 1)
        self.assertEqual(self.auth.stats()["total_tokens"], 1)


if __name__ == "__main__":
    unittest.main()
