import logging
from pathlib import Path

import main
import render_bootstrap
from controlarva.config import load_config


def test_flag_options_default_to_headless_public_bind(monkeypatch):
    for name in ("PORT", "HOST", "BIND_ADDRESS", "STREAMLIT_SERVER_HEADLESS"):
        monkeypatch.delenv(name, raising=False)

    assert main._streamlit_flag_options_from_env() == {
        "server.address": "0.0.0.0",
        "server.headless": True,
    }


def test_flag_options_follow_environment(monkeypatch):
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.delenv("HOST", raising=False)
    monkeypatch.setenv("BIND_ADDRESS", "127.0.0.1")
    monkeypatch.setenv("STREAMLIT_SERVER_HEADLESS", "off")

    assert main._streamlit_flag_options_from_env() == {
        "server.port": 9000,
        "server.address": "127.0.0.1",
        "server.headless": False,
    }


def test_invalid_port_is_ignored(monkeypatch):
    monkeypatch.setenv("PORT", "not-a-port")

    assert "server.port" not in main._streamlit_flag_options_from_env()


def test_load_config_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_STORAGE_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("CONTROLARVA_DB_PATH", raising=False)
    monkeypatch.setenv("CONTROLARVA_BACKUP_RETENTION", "3")
    monkeypatch.setenv("CONTROLARVA_BACKUP_MIRROR_DIR", str(tmp_path / "mirror"))
    monkeypatch.setenv("CONTROLARVA_LOGIN_DELAY", "0")
    monkeypatch.setenv("CONTROLARVA_LOG_LEVEL", "debug")

    config = load_config()

    assert config.data_dir == tmp_path / "data"
    assert config.data_dir.is_dir()
    assert config.db_path == tmp_path / "data" / "controlarva.db"
    assert config.backup_dir == tmp_path / "data" / "backups"
    assert config.backup_retention == 3
    assert config.backup_mirror_dir == tmp_path / "mirror"
    assert config.login_delay_seconds == 0
    assert config.log_level == "DEBUG"


def test_load_config_falls_back_on_bad_numbers(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_STORAGE_DIR", str(tmp_path))
    monkeypatch.setenv("CONTROLARVA_BACKUP_RETENTION", "many")
    monkeypatch.setenv("CONTROLARVA_LOGIN_DELAY", "slow")
    monkeypatch.delenv("CONTROLARVA_BACKUP_MIRROR_DIR", raising=False)

    config = load_config()

    assert config.backup_retention == 12
    assert config.login_delay_seconds == 0.8
    assert config.backup_mirror_dir is None


def test_configure_logging_uses_config_level(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_STORAGE_DIR", str(tmp_path))
    monkeypatch.setenv("CONTROLARVA_LOG_LEVEL", "WARNING")
    calls = {}
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.update(kwargs))

    main.configure_logging(load_config())

    assert calls["level"] == logging.WARNING


def test_bootstrap_prefers_configured_storage(monkeypatch, tmp_path):
    monkeypatch.setenv("APP_STORAGE_DIR", str(tmp_path))

    assert render_bootstrap.preferred_storage_dir() == Path(tmp_path)


def test_bootstrap_command_runs_main_script():
    command = render_bootstrap.streamlit_command(Path("/srv/app/main.py"), "10000")

    assert command[1:5] == ["-m", "streamlit", "run", "/srv/app/main.py"]
    assert command[command.index("--server.port") + 1] == "10000"
