"""Tests for recordkit.ini configuration and context construction."""

from __future__ import annotations

import logging

import pytest

from recordkit import Context, MemoryCache, Settings, SQLiteExecutor
from recordkit.config import URL_ENV_VAR

INI = """
[recordkit]
database_url = sqlite::memory:
table_prefix = wp_
unguarded = false
log_level = debug
cache = false
site = blog
"""


@pytest.fixture(autouse=True)
def no_env_url(monkeypatch):
    monkeypatch.delenv(URL_ENV_VAR, raising=False)


@pytest.fixture
def ini_path(tmp_path):
    path = tmp_path / "recordkit.ini"
    path.write_text(INI)
    return path


class TestSettings:
    """Test ini parsing and URL resolution."""

    def test_from_ini(self, ini_path) -> None:
        settings = Settings.from_ini(ini_path)

        assert settings.database_url == "sqlite::memory:"
        assert settings.table_prefix == "wp_"
        assert settings.unguarded is False
        assert settings.log_level == "DEBUG"
        assert settings.cache is False
        assert settings.extra == {"site": "blog"}

    def test_defaults(self, tmp_path) -> None:
        path = tmp_path / "recordkit.ini"
        path.write_text("[recordkit]\n")

        settings = Settings.from_ini(path)

        assert settings.database_url is None
        assert settings.table_prefix == ""
        assert settings.unguarded is True
        assert settings.log_level == "WARNING"
        assert settings.cache is True

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_ini(tmp_path / "nope.ini")

    def test_missing_section(self, tmp_path) -> None:
        path = tmp_path / "recordkit.ini"
        path.write_text("[other]\nkey = value\n")

        with pytest.raises(ValueError):
            Settings.from_ini(path)

    def test_auto_detect_searches_up(self, ini_path) -> None:
        nested = ini_path.parent / "a" / "b"
        nested.mkdir(parents=True)

        settings = Settings.auto_detect(nested)

        assert settings is not None
        assert settings.table_prefix == "wp_"

    def test_auto_detect_not_found(self, tmp_path) -> None:
        assert Settings.auto_detect(tmp_path) is None

    def test_url_priority(self, monkeypatch) -> None:
        settings = Settings(database_url="sqlite:///config.db")
        assert settings.get_url() == "sqlite:///config.db"

        monkeypatch.setenv(URL_ENV_VAR, "sqlite:///env.db")
        assert settings.get_url() == "sqlite:///env.db"
        assert settings.get_url("sqlite:///override.db") == "sqlite:///override.db"

    def test_no_url(self) -> None:
        with pytest.raises(ValueError):
            Settings().get_url()


class TestContextConstruction:
    """Test building contexts from settings and URLs."""

    def test_from_settings(self, ini_path) -> None:
        logger = logging.getLogger("recordkit")
        previous = logger.level
        try:
            ctx = Context.from_settings(Settings.from_ini(ini_path))

            assert isinstance(ctx.executor, SQLiteExecutor)
            assert ctx.cache is None
            assert ctx.schema.prefix == "wp_"
            assert ctx.unguarded is False
            assert ctx.dialect == "sqlite"
            assert logger.level == logging.DEBUG
            ctx.close()
        finally:
            logger.setLevel(previous)

    def test_connect(self, tmp_path) -> None:
        with Context.connect(f"sqlite:///{tmp_path / 'app.db'}") as ctx:
            assert isinstance(ctx.cache, MemoryCache)
            ctx.execute("CREATE TABLE t (id INTEGER PRIMARY KEY)")
            assert ctx.execute("INSERT INTO t DEFAULT VALUES").insert_id == 1

        assert (tmp_path / "app.db").exists()

    def test_unsupported_url(self) -> None:
        with pytest.raises(ValueError):
            Context.connect("postgresql://localhost/db")
