# tests/conftest.py
"""
Global test bootstrap
- Test-friendly env (no file logging, no HTTPS redirect) set BEFORE app imports
- Pulls in app/db fixtures
"""

from __future__ import annotations

import os

# ──────────────────────────────────────────────────────────────────────────────
# 🌱 Test env (set before importing the app so settings pick it up)
# ──────────────────────────────────────────────────────────────────────────────
os.environ.setdefault("LOG_TO_FILE", "0")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("ENABLE_HTTPS_REDIRECT", "false")
os.environ.setdefault("STORE_BACKEND", "memory")

# ──────────────────────────────────────────────────────────────────────────────
# 📦 Fixtures (app, fakes, db)
# ──────────────────────────────────────────────────────────────────────────────
from tests.fixtures.app import *  # noqa: F401,F403,E402
from tests.fixtures.db import *   # noqa: F401,F403,E402
