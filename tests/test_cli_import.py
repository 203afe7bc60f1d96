"""Regression tests for running the operator CLI without the HTTP server."""

from __future__ import annotations

import importlib
import sys
import types
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class CLIImportTests(unittest.TestCase):
    def tearDown(self) -> None:
        self._clear_project_modules()

    @staticmethod
    def _clear_project_modules() -> None:
        for name in [
            m for m in list(sys.modules.keys()) if m in ("main", "healthbridge") or m.startswith("healthbridge.")
        ]:
            sys.modules.pop(name, None)

    def test_credentials_and_cli_import_without_uvicorn(self) -> None:
        """Seeding and listing accounts must not require the ASGI server."""

        self._clear_project_modules()

        uvicorn_module: types.ModuleType | None = sys.modules.pop("uvicorn", None)
        sys.modules["uvicorn"] = None  # type: ignore[assignment]
        try:
            credentials_module = importlib.import_module("healthbridge.credentials")
            self.assertTrue(hasattr(credentials_module, "CredentialService"))

            cli = importlib.import_module("main")
            self.assertEqual(cli._parse_args(["seed-demo"]).command, "seed-demo")
            self.assertNotIn("healthbridge.service", sys.modules)
        finally:
            sys.modules.pop("uvicorn", None)
            if uvicorn_module is not None:
                sys.modules["uvicorn"] = uvicorn_module


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
