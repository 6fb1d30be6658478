import json
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
import cli


def test_seed_and_today(tmp_path, capsys):
    db = str(tmp_path / "cli.db")
    yaml_path = str(tmp_path / "settings.yaml")
    cli.main(["--db", db, "--yaml", yaml_path, "seed"])
    assert "Seed data inserted" in capsys.readouterr().out
    cli.main(["--db", db, "--yaml", yaml_path, "seed"])
    assert "already contains" in capsys.readouterr().out

    cli.main(["--db", db, "--yaml", yaml_path, "today"])
    view = json.loads(capsys.readouterr().out)
    assert view["template"]["cycle_order"] == 1
    assert len(view["items"]) == 4

    cli.main(["--db", db, "--yaml", yaml_path, "streaks", "--user", "alice"])
    streaks = json.loads(capsys.readouterr().out)
    assert streaks["workout"]["streak"] == 0


def test_backup_and_restore(tmp_path):
    db = tmp_path / "cli.db"
    backup = tmp_path / "backup.db"
    db.write_bytes(b"original")
    cli.main(["--db", str(db), "--yaml", str(tmp_path / "s.yaml"), "backup", "--out", str(backup)])
    assert backup.read_bytes() == b"original"
    db.write_bytes(b"changed")
    cli.main(["--db", str(db), "--yaml", str(tmp_path / "s.yaml"), "restore", "--in", str(backup)])
    assert db.read_bytes() == b"original"


def test_config_command(tmp_path, capsys):
    yaml_path = tmp_path / "settings.yaml"
    args = ["--db", str(tmp_path / "cli.db"), "--yaml", str(yaml_path), "config"]
    cli.main(args + ["--set", "timezone=UTC", "--set", "api_token=abc"])
    shown = json.loads(capsys.readouterr().out)
    assert shown["timezone"] == "UTC"
    assert shown["api_token"] == "set"
    assert "timezone: UTC" in yaml_path.read_text(encoding="utf-8")

    cli.main(args)
    assert json.loads(capsys.readouterr().out)["timezone"] == "UTC"

    cli.main(args + ["--set", "api_token="])
    assert json.loads(capsys.readouterr().out)["api_token"] is None
    assert "api_token" not in yaml_path.read_text(encoding="utf-8")


def test_config_rejects_malformed_assignment(tmp_path):
    with pytest.raises(ValueError):
        cli.configure(str(tmp_path / "settings.yaml"), ["timezone"])
