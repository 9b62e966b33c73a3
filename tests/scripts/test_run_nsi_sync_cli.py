"""
Smoke tests for scripts/run_nsi_sync.py against a file-backed SQLite
database.  Commands that would reach the upstream feed are not exercised.
"""

import importlib.util
import json
from pathlib import Path

import pytest

from portal_kernel.db.engine import reset_engine

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "run_nsi_sync.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("run_nsi_sync", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def db_url(tmp_path):
    yield f"sqlite:///{tmp_path / 'portal.db'}"
    reset_engine()


def _run(cli, capsys, *argv) -> tuple[int, dict]:
    code = cli.main(list(argv))
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else {}


class TestCli:
    def test_create_tables_then_status(self, cli, db_url, capsys):
        code, payload = _run(cli, capsys, "--db-url", db_url, "create-tables")
        assert code == 0
        assert payload["success"] is True

        code, payload = _run(cli, capsys, "--db-url", db_url, "status", "--limit", "5")
        assert code == 0
        assert payload == {"cursor": None, "history": []}

    def test_maintenance_commands(self, cli, db_url, capsys):
        _run(cli, capsys, "--db-url", db_url, "create-tables")

        code, payload = _run(cli, capsys, "--db-url", db_url, "clear-nsi")
        assert code == 0
        assert payload["operation"] == "clear_nsi_data"

        code, payload = _run(cli, capsys, "--db-url", db_url, "status")
        assert payload["cursor"]["version"] == 0

        code, payload = _run(cli, capsys, "--db-url", db_url, "seed-warehouses")
        assert code == 0
        assert payload["created"]["warehouses"] == 0

    def test_bad_config_file(self, cli, tmp_path, capsys):
        config = tmp_path / "bad.yaml"
        config.write_text("feed:\n  base_uri: http://x\n", encoding="utf-8")

        code = cli.main(["--config", str(config), "status"])

        assert code == 1
        assert "feed.base_uri" in capsys.readouterr().err

    def test_command_is_required(self, cli):
        with pytest.raises(SystemExit):
            cli.main([])
