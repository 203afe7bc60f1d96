"""Tests for the bcrypt password verifiers."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from healthbridge.security import PasswordHasher


class PasswordHashingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.hasher = PasswordHasher(rounds=4)

    def test_same_password_yields_distinct_verifiers(self) -> None:
        """Each verifier is salted, yet both verify against the same plaintext."""

        first = self.hasher.hash("secret1")
        second = self.hasher.hash("secret1")

        self.assertNotEqual(first, second)
        self.assertTrue(self.hasher.verify("secret1", first))
        self.assertTrue(self.hasher.verify("secret1", second))
        self.assertFalse(self.hasher.verify("secret2", first))

    def test_cost_factor_is_encoded_in_verifier(self) -> None:
        hashed = self.hasher.hash("admin123")
        self.assertTrue(hashed.startswith("$2b$04$"))
        self.assertNotIn("admin123", hashed)

    def test_default_cost_factor_is_twelve(self) -> None:
        self.assertEqual(PasswordHasher().rounds, 12)

    def test_malformed_verifier_does_not_raise(self) -> None:
        self.assertFalse(self.hasher.verify("admin123", "not-a-bcrypt-hash"))
        self.assertFalse(self.hasher.verify("admin123", ""))

    def test_empty_password_is_rejected(self) -> None:
        with self.assertRaises(ValueError):
            self.hasher.hash("")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
