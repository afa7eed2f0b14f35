from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import sms_ledger.cli as cli_mod

from tests.helpers.db import all_transactions

EXAMPLE = (
    "Rs 1,500.00 debited from A/c XX1234 on 07-Dec-24 by UPI/merchant@paytm for "
    "grocery shopping. Avl Bal Rs 25,450.00"
)

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet_entrypoint(monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep the developer's .env and global log handlers out of the test run.
    monkeypatch.setattr(cli_mod, "load_dotenv", lambda **_: False)
    monkeypatch.setattr(cli_mod, "configure_logging", lambda *a, **k: None)


@pytest.fixture()
def db_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    url = f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    result = runner.invoke(cli_mod.app, ["init-db"])
    assert result.exit_code == 0, result.output
    return url


def test_ingest_then_correct(db_url: str) -> None:
    result = runner.invoke(
        cli_mod.app,
        ["ingest", EXAMPLE, "--sender", "VM-HDFCBK", "--received-at", "2024-12-07T09:41"],
    )
    assert result.exit_code == 0, result.output
    assert result.stdout.startswith("outcome=created id=1 ")

    again = runner.invoke(cli_mod.app, ["ingest", EXAMPLE, "--received-at", "2024-12-07T09:41"])
    assert again.stdout.startswith("outcome=duplicate")

    corrected = runner.invoke(cli_mod.app, ["correct", "1", "Groceries"])
    assert corrected.exit_code == 0, corrected.output
    assert "category='Groceries'" in corrected.stdout

    stats = runner.invoke(cli_mod.app, ["model-stats"])
    assert "version=2" in stats.stdout


def test_correct_unknown_id_fails(db_url: str) -> None:
    result = runner.invoke(cli_mod.app, ["correct", "42", "Groceries"])
    assert result.exit_code == 1


def test_ingest_rejects_bad_timestamp(db_url: str) -> None:
    result = runner.invoke(cli_mod.app, ["ingest", EXAMPLE, "--received-at", "yesterday"])
    assert result.exit_code == 1


def test_replay_reads_json_lines(db_url: str, tmp_path: Path) -> None:
    path = tmp_path / "buffer.jsonl"
    lines = [
        {"sender": "VM-HDFCBK", "text": EXAMPLE, "receivedAtEpochMs": 1733544660000},
        {"sender": "VM-OFFERS", "text": "Get 50% off today!", "receivedAtEpochMs": 1733544000000},
    ]
    path.write_text("\n".join(json.dumps(line) for line in lines) + "\n", encoding="utf-8")

    result = runner.invoke(cli_mod.app, ["replay", str(path)])

    assert result.exit_code == 0, result.output
    assert "processed=2 created=1 merged=0 skipped=1 requeued=0" in result.stdout
    assert len(all_transactions(db_url)) == 1


def test_replay_rejects_malformed_line(db_url: str, tmp_path: Path) -> None:
    path = tmp_path / "buffer.jsonl"
    path.write_text('{"sender": "X", "text": "Rs 10 debited"}\n', encoding="utf-8")

    result = runner.invoke(cli_mod.app, ["replay", str(path)])
    assert result.exit_code == 1


def test_review_with_empty_queue(db_url: str) -> None:
    result = runner.invoke(cli_mod.app, ["review"])
    assert result.exit_code == 0
    assert "Nothing to review." in result.stdout


def test_model_reset(db_url: str) -> None:
    result = runner.invoke(cli_mod.app, ["model-reset", "--yes"])
    assert result.exit_code == 0
    assert "version=1" in result.stdout
