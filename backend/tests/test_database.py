"""Tests for database URL handling and SQLite connection setup."""

import sqlite3

from deadline.database import _normalize_database_url, _set_sqlite_pragmas


def test_plain_sqlite_url_uses_async_driver():
    assert _normalize_database_url("sqlite:////data/deadline.db") == "sqlite+aiosqlite:////data/deadline.db"


def test_relative_path_is_made_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    url = _normalize_database_url("sqlite+aiosqlite:///./instance/deadline.db")

    assert url == f"sqlite+aiosqlite:///{(tmp_path / 'instance' / 'deadline.db').resolve()}"
    assert (tmp_path / "instance").is_dir()


def test_memory_and_server_urls_untouched():
    assert _normalize_database_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"
    assert _normalize_database_url("postgresql+asyncpg://db/deadline") == "postgresql+asyncpg://db/deadline"


def test_pragmas_enable_wal_and_foreign_keys(tmp_path):
    connection = sqlite3.connect(tmp_path / "pragmas.db")
    try:
        _set_sqlite_pragmas(connection, None)

        assert connection.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
        assert connection.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        assert connection.execute("PRAGMA busy_timeout").fetchone()[0] == 60000
    finally:
        connection.close()
