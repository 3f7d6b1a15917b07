"""Pytest configuration for issue-mirror tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install (`pip install -e .`).
"""

from __future__ import annotations

import os
import sys
import time
from pathlib import Path

import pytest

_TEST_START_TIMES: dict[str, float] = {}
_TEST_DURATIONS: list[tuple[str, float]] = []

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from issuemirror.logging import configure_logging  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_logger():
    # Rebind the stdout handler to whatever stream pytest installed for this test
    configure_logging(level="DEBUG")
    yield


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    # python-dotenv writes straight into os.environ, so snapshot and restore it whole
    saved = dict(os.environ)
    for var in (
        "GITHUB_TOKEN",
        "GH_TOKEN",
        "GITHUB_ACCESS_TOKEN",
        "GH_ACCESS_TOKEN",
        "GITHUB_PAT",
    ):
        monkeypatch.delenv(var, raising=False)
    for var in [k for k in os.environ if k.startswith("ISSUE_MIRROR_")]:
        monkeypatch.delenv(var)
    monkeypatch.chdir(tmp_path)
    yield
    os.environ.clear()
    os.environ.update(saved)


# --- Timing utilities to help identify slow/stalling tests ---


def pytest_runtest_setup(item):  # type: ignore
    _TEST_START_TIMES[item.nodeid] = time.perf_counter()


def pytest_runtest_teardown(item):  # type: ignore
    start = _TEST_START_TIMES.pop(item.nodeid, None)
    if start is not None:
        _TEST_DURATIONS.append((item.nodeid, time.perf_counter() - start))


def pytest_sessionfinish(session, exitstatus):  # type: ignore
    if not _TEST_DURATIONS:
        return
    slow = sorted(_TEST_DURATIONS, key=lambda x: x[1], reverse=True)[:10]
    print("\n=== Slowest Tests (top 10) ===")
    for nodeid, secs in slow:
        print(f"{secs:0.3f}s  {nodeid}")
