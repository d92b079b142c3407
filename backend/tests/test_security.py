import unittest
from datetime import timedelta

from jose import jwt

from backend import config
from backend.errors import AdminRequired, InvalidToken, Unauthenticated
from backend.security import (
    Identity,
    create_access_token,
    decode_access_token,
    extract_bearer_token,
    hash_password,
    require_admin,
    verify_password,
)

USER = {"id": 7, "email": "alice@example.com", "role": "user"}


class PasswordTests(unittest.TestCase):
    def test_hash_verifies_only_the_original_password(self) -> None:
        hashed = hash_password("secret1")

        self.assertNotEqual(hashed, "secret1")
        self.assertTrue(verify_password("secret1", hashed))
        self.assertFalse(verify_password("secret2", hashed))


class TokenTests(unittest.TestCase):
    def test_token_carries_identity_claims(self) -> None:
        claims = decode_access_token(create_access_token(USER))

        self.assertEqual(claims["sub"], "7")
        self.assertEqual(claims["email"], "alice@example.com")
        self.assertEqual(claims["role"], "user")

    def test_default_expiry_is_configured_days(self) -> None:
        claims = decode_access_token(create_access_token(USER))
        issued = jwt.get_unverified_claims(create_access_token(USER, timedelta(0)))

        self.assertAlmostEqual(
            claims["exp"] - issued["exp"],
            config.JWT_EXPIRE_DAYS * 24 * 3600,
            delta=5,
        )

    def test_expired_token_is_rejected(self) -> None:
        token = create_access_token(USER, timedelta(seconds=-60))

        with self.assertRaises(InvalidToken) as ctx:
            decode_access_token(token)
        self.assertEqual(ctx.exception.message, "Token expired.")

    def test_token_signed_with_another_secret_is_rejected(self) -> None:
        token = jwt.encode({"sub": "7"}, "some-other-secret", algorithm="HS256")

        with self.assertRaises(InvalidToken):
            decode_access_token(token)

    def test_garbage_token_is_rejected(self) -> None:
        with self.assertRaises(InvalidToken):
            decode_access_token("not-a-token")


class BearerHeaderTests(unittest.TestCase):
    def test_extracts_token(self) -> None:
        self.assertEqual(extract_bearer_token("Bearer abc.def"), "abc.def")

    def test_missing_or_malformed_header(self) -> None:
        for header in (None, "", "Token abc", "bearer abc", "Bearer ", "Bearer    "):
            with self.subTest(header=header):
                with self.assertRaises(Unauthenticated):
                    extract_bearer_token(header)


class RequireAdminTests(unittest.TestCase):
    def test_only_admins_pass(self) -> None:
        require_admin(Identity(id=1, email="root@example.com", role="admin"))

        with self.assertRaises(AdminRequired):
            require_admin(Identity(id=2, email="bob@example.com", role="user"))


if __name__ == "__main__":
    unittest.main()
