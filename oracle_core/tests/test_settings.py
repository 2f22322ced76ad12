from oracle_core.config import settings as settings_module
from oracle_core.config.settings import OracleSettings


def test_settings_from_yaml(monkeypatch, tmp_path):
    cfg = tmp_path / "config.yaml"
    cfg.write_text("api_base_url: https://oracle.example/\nmarket_cache_ttl: 120\n", encoding="utf-8")
    monkeypatch.setenv("ORACLE_CONFIG_FILE", str(cfg))
    monkeypatch.delenv("API_BASE_URL", raising=False)

    s = OracleSettings()
    assert s.api_base_url == "https://oracle.example"
    assert s.market_cache_ttl == 120


def test_env_overrides_yaml(monkeypatch):
    monkeypatch.setattr(settings_module, "_load_config_from_yaml", lambda: {"http_timeout": 10})
    monkeypatch.setenv("HTTP_TIMEOUT", "45")
    assert OracleSettings().http_timeout == 45


def test_blank_token_is_none():
    s = OracleSettings(access_token="   ")
    assert s.access_token is None
    assert s.max_context_messages == 20
    assert s.tier_cache_ttl == 300
