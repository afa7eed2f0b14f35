"""Pytest configuration for test isolation.

The classifier persists its model under ``./.sms_ledger`` by default, and the
ledger client caches one engine per database URL. Left alone, a model trained
by one test would be loaded by the next and engines for deleted temp files
would linger.

The autouse fixture below points ``SMS_LEDGER_DATA_DIR`` at the test's own
temporary directory, clears ``DATABASE_URL`` so nothing reaches a developer's
real ledger, and disposes cached engines afterwards.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from ledger_db.client import dispose_engines


@pytest.fixture(autouse=True)
def _isolate_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    data_dir = tmp_path / "sms_ledger_data"
    data_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("SMS_LEDGER_DATA_DIR", os.fspath(data_dir))
    monkeypatch.delenv("DATABASE_URL", raising=False)
    yield
    dispose_engines()
