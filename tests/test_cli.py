"""Tests for the command-line entry point."""
import os
import shutil
from pathlib import Path

import yaml

from typegen.cli import main

FIXTURES = Path(__file__).parent / "fixtures"


def write_config(root: Path, tables):
    shutil.copy(FIXTURES / "shop_metadata.xml", root / "metadata.xml")
    config = {
        "config": [{
            "type": "fmodata",
            "path": "schema",
            "metadataPath": "metadata.xml",
            "tables": [{"tableName": t} for t in tables],
        }]
    }
    (root / "typegen.config.yaml").write_text(yaml.safe_dump(config))


def test_init_creates_starter_config(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)

    assert main(["init"]) == 0
    created = tmp_path / "typegen.config.yaml"
    assert created.exists()
    data = yaml.safe_load(created.read_text())
    assert data["config"][0]["layouts"][0]["schemaName"] == "Customers"

    created.write_text("config: []\n")
    assert main(["init"]) == 0
    assert created.read_text() == "config: []\n"
    assert "already exists" in capsys.readouterr().out


def test_missing_config_exits_nonzero(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)

    assert main(["--skip-env-check"]) == 1
    assert "typegen init" in capsys.readouterr().err


def test_invalid_config_lists_issues(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "typegen.config.yaml").write_text("config:\n  - type: fmodata\n    tables:\n      - fields: []\n")

    assert main(["generate", "--skip-env-check"]) == 1
    err = capsys.readouterr().err
    assert "Invalid configuration document" in err
    assert "tableName" in err


def test_generate_success(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    write_config(tmp_path, ["Orders", "Lines"])

    assert main(["generate", "--skip-env-check"]) == 0
    assert (tmp_path / "schema" / "generated" / "Orders.ts").exists()
    assert (tmp_path / "schema" / "Lines.ts").exists()
    assert "generated 2 of 2 targets" in capsys.readouterr().out


def test_generate_partial_failure_exits_nonzero(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    write_config(tmp_path, ["Orders", "Refunds"])

    assert main(["--skip-env-check"]) == 1
    out = capsys.readouterr().out
    assert "generated 1 of 2 targets" in out
    assert "Refunds: ConfigurationError" in out
    assert (tmp_path / "schema" / "generated" / "Orders.ts").exists()


def test_explicit_config_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    write_config(tmp_path, ["Orders"])
    custom = tmp_path / "custom.yaml"
    (tmp_path / "typegen.config.yaml").rename(custom)

    assert main(["generate", "--skip-env-check", "--config", str(custom)]) == 0


def test_env_file_is_loaded(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("TYPEGEN_TEST_MARKER", raising=False)
    (tmp_path / ".env").write_text("TYPEGEN_TEST_MARKER=loaded\n")
    write_config(tmp_path, ["Orders"])

    assert main([]) == 0
    assert os.environ.get("TYPEGEN_TEST_MARKER") == "loaded"
    monkeypatch.delenv("TYPEGEN_TEST_MARKER", raising=False)
