"""Tests for settings loading, env overrides and ChatState wiring."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from borderchat.chat.state import ChatState, get_chat_state, reset_chat_state, set_chat_state
from borderchat.config import AppConfig, ChatSettings, get_config, load_config, reset_config


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    for name in ("PORT", "CHAT_TIMEZONE", "CHAT_HISTORY_LIMIT", "CHAT_MAX_MESSAGE_LENGTH",
                 "BORDERCHAT_SETTINGS"):
        monkeypatch.delenv(name, raising=False)


def test_defaults_when_file_missing(tmp_path):
    cfg = load_config(settings_path=tmp_path / "missing.yaml")
    assert cfg.server.port == 3000
    assert cfg.chat.history_limit == 100
    assert cfg.chat.max_message_length == 50
    assert cfg.chat.timezone == "Asia/Brunei"
    assert cfg.naming.enabled is True
    assert cfg.moderation.banned_device_ids == []
    assert cfg.secrets.moderation.admin_token is None


def test_settings_and_secrets_loaded(tmp_path):
    settings_file = tmp_path / "borderchat.settings.yaml"
    settings_file.write_text(
        "server:\n"
        "  port: 8080\n"
        "chat:\n"
        "  history_limit: 20\n"
        "  timezone: UTC\n"
        "moderation:\n"
        "  banned_device_ids: [evil]\n",
        encoding="utf-8",
    )
    (tmp_path / "borderchat.secrets.yaml").write_text(
        "moderation:\n"
        "  admin_token: s3cret\n",
        encoding="utf-8",
    )

    cfg = load_config(settings_path=settings_file)
    assert cfg.server.port == 8080
    assert cfg.chat.history_limit == 20
    assert cfg.chat.timezone == "UTC"
    assert cfg.moderation.banned_device_ids == ["evil"]
    assert cfg.secrets.moderation.admin_token == "s3cret"


def test_settings_path_from_env(tmp_path, monkeypatch):
    settings_file = tmp_path / "custom.yaml"
    settings_file.write_text("chat:\n  max_message_length: 80\n", encoding="utf-8")
    monkeypatch.setenv("BORDERCHAT_SETTINGS", str(settings_file))

    cfg = load_config()
    assert cfg.chat.max_message_length == 80


def test_env_overrides_win(tmp_path, monkeypatch):
    settings_file = tmp_path / "borderchat.settings.yaml"
    settings_file.write_text("server:\n  port: 8080\n", encoding="utf-8")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("CHAT_TIMEZONE", "Europe/London")
    monkeypatch.setenv("CHAT_HISTORY_LIMIT", "1000")
    monkeypatch.setenv("CHAT_MAX_MESSAGE_LENGTH", "140")

    cfg = load_config(settings_path=settings_file)
    assert cfg.server.port == 9000
    assert cfg.chat.timezone == "Europe/London"
    assert cfg.chat.history_limit == 1000
    assert cfg.chat.max_message_length == 140


def test_unknown_timezone_rejected():
    with pytest.raises(ValidationError):
        ChatSettings(timezone="Mars/Olympus_Mons")


def test_history_limit_must_be_positive():
    with pytest.raises(ValidationError):
        ChatSettings(history_limit=0)


def test_chat_state_from_config():
    cfg = AppConfig(
        chat={"history_limit": 7, "max_message_length": 12},
        naming={"enabled": False},
        moderation={"banned_device_ids": ["evil"]},
    )
    state = ChatState.from_config(cfg)
    assert state.store.history_limit == 7
    assert state.service.max_message_length == 12
    assert state.identities.namer is None
    assert not state.moderation.is_allowed("evil")


def test_chat_state_naming_client_configured():
    cfg = AppConfig(naming={"url": "https://words.example/word", "word_length": 6})
    state = ChatState.from_config(cfg)
    assert state.identities.namer.url == "https://words.example/word"
    assert state.identities.namer.word_length == 6


def test_set_and_reset_chat_state():
    state = ChatState.from_config(AppConfig(naming={"enabled": False}))
    set_chat_state(state)
    try:
        assert get_chat_state() is state
    finally:
        reset_chat_state()


def test_example_settings_file_is_valid():
    example = Path(__file__).resolve().parents[2] / "borderchat.settings.example.yaml"
    cfg = load_config(settings_path=example)
    assert cfg.chat.history_limit == 100


def test_get_config_cached_until_reset(tmp_path, monkeypatch):
    settings_file = tmp_path / "borderchat.settings.yaml"
    settings_file.write_text("server:\n  port: 4100\n", encoding="utf-8")
    monkeypatch.setenv("BORDERCHAT_SETTINGS", str(settings_file))
    reset_config()
    try:
        first = get_config()
        assert first.server.port == 4100
        assert get_config() is first

        settings_file.write_text("server:\n  port: 4200\n", encoding="utf-8")
        assert get_config().server.port == 4100
        reset_config()
        assert get_config().server.port == 4200
    finally:
        reset_config()
