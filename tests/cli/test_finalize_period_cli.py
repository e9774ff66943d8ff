"""Tests for the scripts/finalize_period.py command line tool."""

import json
import sys

import pytest

from close_kernel.db.engine import reset_engine
from scripts import finalize_period as cli
from tests.conftest import MONTH, TENANT, reconciled_month


@pytest.fixture
def events_file(tmp_path):
    path = tmp_path / "events.json"
    path.write_text(json.dumps({"events": [e.to_document() for e in reconciled_month()]}), encoding="utf-8")
    return path


@pytest.fixture
def run_cli(monkeypatch, tmp_path):
    db_url = f"sqlite:///{tmp_path / 'close.db'}"

    def _run(*args):
        monkeypatch.setattr(sys, "argv", ["finalize_period.py", "--db-url", db_url, *args])
        return cli.main()

    yield _run
    reset_engine()


class TestFinalizePeriodCli:

    def test_completes_and_writes_exports(self, run_cli, events_file, tmp_path, capsys):
        out_dir = tmp_path / "out"
        code = run_cli("--tenant", TENANT, "--month", MONTH, "--events", str(events_file),
                       "--export-dir", str(out_dir))

        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["status"] == "COMPLETED"
        assert result["success"] is True
        assert len(result["periodLockHash"]) == 64
        assert (out_dir / f"ledger_{MONTH}_{TENANT}.csv").read_bytes().startswith(b"recordType,")
        assert (out_dir / f"summary_{MONTH}_{TENANT}.pdf").read_bytes().startswith(b"%PDF-1.4")

    def test_rerun_is_noop(self, run_cli, events_file, capsys):
        args = ("--tenant", TENANT, "--month", MONTH, "--events", str(events_file))
        assert run_cli(*args) == 0
        first = json.loads(capsys.readouterr().out)

        assert run_cli(*args) == 0
        captured = capsys.readouterr()
        second = json.loads(captured.out)
        assert second["status"] == "ALREADY_COMPLETED"
        assert second["jobId"] == first["jobId"]
        assert "Skipped 5 events" in captured.err

    def test_as_of_days_override(self, run_cli, events_file, capsys):
        assert run_cli("--tenant", TENANT, "--month", MONTH, "--events", str(events_file),
                       "--as-of-days", "3,7") == 0
        first = json.loads(capsys.readouterr().out)
        assert run_cli("--tenant", TENANT, "--month", MONTH, "--events", str(events_file)) == 0
        second = json.loads(capsys.readouterr().out)
        assert second["periodLockHash"] == first["periodLockHash"]

    def test_empty_month_exit_code(self, run_cli, tmp_path, capsys):
        path = tmp_path / "empty.json"
        path.write_text("[]", encoding="utf-8")
        assert run_cli("--tenant", TENANT, "--month", MONTH, "--events", str(path)) == 2
        result = json.loads(capsys.readouterr().out)
        assert result["code"] == "PERIOD_FINALIZE_FAILED"

    def test_unknown_currency(self, run_cli, events_file, capsys):
        code = run_cli("--tenant", TENANT, "--month", MONTH, "--events", str(events_file), "--currency", "XXX")
        assert code == 1
        assert "ERROR" in capsys.readouterr().err

    def test_missing_events_file(self, run_cli, tmp_path, capsys):
        assert run_cli("--tenant", TENANT, "--month", MONTH, "--events", str(tmp_path / "nope.json")) == 1
        assert "File not found" in capsys.readouterr().err
