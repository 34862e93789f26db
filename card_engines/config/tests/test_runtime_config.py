import pytest

from card_engines.config import runtime_config


def test_base_url_prefers_card_variable(monkeypatch):
    monkeypatch.setenv("BASE_URL", "https://fallback.example")
    assert runtime_config.get_base_url() == "https://fallback.example"
    monkeypatch.setenv("CARD_BASE_URL", "https://cards.example/")
    assert runtime_config.get_base_url() == "https://cards.example"


def test_defaults(monkeypatch):
    for name in ("CARD_STATE_BACKEND", "CARD_STATE_TTL_SECONDS", "CARD_INSTANCE_ID_LENGTH", "CARD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    assert runtime_config.get_state_backend() == "memory"
    assert runtime_config.get_state_ttl_seconds() == 2_592_000
    assert runtime_config.get_instance_id_length() == 6
    assert runtime_config.get_log_level() == "INFO"


def test_ttl_zero_disables_expiry(monkeypatch):
    monkeypatch.setenv("CARD_STATE_TTL_SECONDS", "0")
    assert runtime_config.get_state_ttl_seconds() is None


def test_instance_id_length_bounds(monkeypatch):
    monkeypatch.setenv("CARD_INSTANCE_ID_LENGTH", "65")
    with pytest.raises(ValueError):
        runtime_config.get_instance_id_length()
    monkeypatch.setenv("CARD_INSTANCE_ID_LENGTH", "six")
    with pytest.raises(ValueError):
        runtime_config.get_instance_id_length()


def test_backend_names_are_case_insensitive(monkeypatch):
    monkeypatch.setenv("CARD_STATE_BACKEND", "Redis")
    monkeypatch.setenv("CARD_USAGE_BACKEND", "REDIS")
    assert runtime_config.get_state_backend() == "redis"
    assert runtime_config.get_usage_backend() == "redis"
