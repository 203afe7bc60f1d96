"""End-to-end tests for the credential service HTTP API."""

from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from healthbridge.config import Settings
from healthbridge.database import Database
from healthbridge.errors import StoreTimeoutError
from healthbridge.models import Role
from healthbridge.security import PasswordHasher
from healthbridge.service import create_app


class CredentialServiceAPITests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tempdir.name) / "healthbridge.sqlite3"
        self.settings = Settings(
            database_path=db_path,
            bcrypt_rounds=4,
            session_secret="tests-secret-key",
        )
        self.database = Database(db_path)
        self.database.initialize()
        self.app = create_app(database=self.database, settings=self.settings)
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.client.close()
        self.database.close()
        self._tempdir.cleanup()

    def _seed_admin(self) -> None:
        hasher = PasswordHasher(rounds=4)
        self.database.create_user(
            "Admin User",
            "admin@healthbridge.gov",
            hasher.hash("admin123"),
            Role.ADMINISTRATOR,
        )

    def _signup(self, **overrides):
        body = {"name": "Jane Citizen", "email": "jane@example.com", "password": "secret1"}
        body.update(overrides)
        return self.client.post("/api/signup", json=body)

    def test_healthcheck(self) -> None:
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_signup_then_duplicate(self) -> None:
        created = self._signup(dob="1990-04-12", phone="")
        self.assertEqual(created.status_code, 201, created.text)
        user = created.json()["user"]
        self.assertEqual(user["role"], "citizen")
        self.assertEqual(user["email"], "jane@example.com")
        self.assertEqual(set(user), {"id", "name", "email", "role", "created_at"})

        profile = self.database.get_citizen_profile(user["id"])
        self.assertIsNotNone(profile)
        self.assertEqual(profile.dob, "1990-04-12")
        self.assertIsNone(profile.phone)

        duplicate = self._signup(name="Jane Again")
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(duplicate.json(), {"error": "Email already registered"})

    def test_signup_missing_fields(self) -> None:
        for body in (
            {"email": "jane@example.com", "password": "secret1"},
            {"name": "Jane", "email": "", "password": "secret1"},
            {"name": "Jane", "email": "jane@example.com"},
            {"name": "Jane", "email": "jane@example.com", "password": 42},
        ):
            with self.subTest(body=body):
                response = self.client.post("/api/signup", json=body)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json(), {"error": "name, email and password required"})

        self.assertEqual(self.database.list_users(), [])

    def test_malformed_body_is_bad_request(self) -> None:
        response = self.client.post(
            "/api/login",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "email and password required"})

    def test_admin_login(self) -> None:
        self._seed_admin()

        response = self.client.post(
            "/api/login",
            json={"email": "admin@healthbridge.gov", "password": "admin123"},
        )
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["user"]["role"], "administrator")
        self.assertIsNone(payload["profile"])
        self.assertNotIn("password_hash", payload["user"])
        self.assertTrue(payload["token"])

        denied = self.client.post(
            "/api/login",
            json={"email": "admin@healthbridge.gov", "password": "wrongpass"},
        )
        self.assertEqual(denied.status_code, 401)
        self.assertEqual(denied.json(), {"error": "Invalid credentials"})

    def test_unknown_email_matches_wrong_password(self) -> None:
        self._signup()

        wrong = self.client.post("/api/login", json={"email": "jane@example.com", "password": "nope"})
        unknown = self.client.post("/api/login", json={"email": "ghost@example.com", "password": "secret1"})

        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(wrong.json(), unknown.json())

    def test_login_missing_fields(self) -> None:
        response = self.client.post("/api/login", json={"email": "jane@example.com"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "email and password required"})

    def test_citizen_login_includes_profile(self) -> None:
        self._signup(gender="female", address="12 Harbour Road")

        response = self.client.post("/api/login", json={"email": "jane@example.com", "password": "secret1"})
        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["profile"]["gender"], "female")
        self.assertEqual(payload["profile"]["address"], "12 Harbour Road")
        self.assertEqual(payload["profile"]["user_id"], payload["user"]["id"])

    def test_citizen_without_profile_gets_null(self) -> None:
        hasher = PasswordHasher(rounds=4)
        self.database.create_user("Test Citizen", "citizen@example.com", hasher.hash("citizen123"), Role.CITIZEN)

        response = self.client.post("/api/login", json={"email": "citizen@example.com", "password": "citizen123"})
        self.assertEqual(response.status_code, 200, response.text)
        self.assertIsNone(response.json()["profile"])

    def test_session_token_round_trip(self) -> None:
        self._signup()
        login = self.client.post("/api/login", json={"email": "jane@example.com", "password": "secret1"})
        token = login.json()["token"]

        session = self.client.get("/api/session", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(session.status_code, 200, session.text)
        self.assertEqual(session.json()["user"], login.json()["user"])
        self.assertEqual(session.json()["profile"], login.json()["profile"])

    def test_session_requires_valid_token(self) -> None:
        missing = self.client.get("/api/session")
        self.assertEqual(missing.status_code, 401)
        self.assertEqual(missing.json(), {"error": "Invalid or expired session"})

        forged = self.client.get("/api/session", headers={"Authorization": "Bearer forged-token"})
        self.assertEqual(forged.status_code, 401)

    def test_store_failure_is_generic_server_error(self) -> None:
        def broken(email):
            raise RuntimeError("SELECT failed: table users is corrupt")

        self.database.get_credentials = broken  # type: ignore[method-assign]

        response = self.client.post("/api/login", json={"email": "jane@example.com", "password": "secret1"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "server error"})
        self.assertNotIn("corrupt", response.text)

    def test_store_timeout_is_service_unavailable(self) -> None:
        def slow(email):
            raise StoreTimeoutError("Timed out waiting for a database connection")

        self.database.email_exists = slow  # type: ignore[method-assign]

        response = self._signup()
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json(), {"error": "service unavailable"})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
