# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {"id": "paths", "name": "sys.path setup", "anchor": "PATHS", "kind": "infra"},
#     {"id": "fixtures", "name": "Shared fixtures", "anchor": "FIX", "kind": "fixtures"}
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Puts ``src`` on ``sys.path`` so the suite runs from a plain checkout and
re-exports the HTTP mocking fixtures used across the HookedHTTP tests.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tests.fixtures.http_mocking import backend, make_client  # noqa: E402,F401


@pytest.fixture
def http_caplog(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    """``caplog`` capturing INFO and above from the ``HookedHTTP`` loggers."""

    caplog.set_level(logging.INFO, logger="HookedHTTP")
    return caplog
