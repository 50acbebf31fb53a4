"""
Tests for the records-portal command-line tool.
"""

import pytest
from sqlalchemy import create_engine, inspect, text

from portal.cli import main


@pytest.fixture
def db_url(tmp_path, monkeypatch):
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    return url


def test_init_db_creates_tables(db_url):
    assert main(["init-db"]) == 0

    tables = set(inspect(create_engine(db_url)).get_table_names())
    assert {"users", "container_assignments", "folder_assignments", "file_audit"} <= tables


def test_create_admin(db_url, capsys):
    code = main(["create-admin", "--name", "Ada Admin", "--login-name", "ada", "--password", "s3cret"])

    assert code == 0
    assert "ada" in capsys.readouterr().out
    with create_engine(db_url).connect() as conn:
        row = conn.execute(text("SELECT username, role, password_hash FROM users")).one()
    assert row.username == "ada"
    assert row.role == "admin"
    assert row.password_hash != "s3cret"


def test_create_admin_duplicate(db_url, capsys):
    args = ["create-admin", "--name", "Ada Admin", "--login-name", "ada", "--password", "s3cret"]
    assert main(args) == 0
    assert main(args) == 1
    assert "Username already exists" in capsys.readouterr().err


def test_command_is_required():
    with pytest.raises(SystemExit):
        main([])
