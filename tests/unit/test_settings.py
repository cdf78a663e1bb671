"""Tests unitaires pour config/settings.py"""
import pytest

from config.settings import LoggingConfig, SecurityConfig, Settings, TopLedgerConfig


class TestTopLedgerConfig:
    def test_query_keys_from_json_string(self):
        config = TopLedgerConfig(api_key="default", query_keys='{"13192": "dedicated"}')
        assert config.query_keys == {"13192": "dedicated"}

    def test_empty_query_keys_string(self):
        assert TopLedgerConfig(query_keys="  ").query_keys == {}

    def test_key_for_prefers_dedicated_key(self):
        config = TopLedgerConfig(api_key="default", query_keys={"13192": "dedicated"})
        assert config.key_for(13192) == "dedicated"
        assert config.key_for("12976") == "default"

    def test_key_for_without_any_key(self):
        assert TopLedgerConfig(api_key=None).key_for(1) is None

    def test_allowed_hosts_from_csv(self):
        config = TopLedgerConfig(allowed_proxy_hosts="a.example.com, b.example.com,")
        assert config.allowed_proxy_hosts == ["a.example.com", "b.example.com"]


class TestLoggingConfig:
    def test_level_is_uppercased(self):
        assert LoggingConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_level_rejected(self):
        with pytest.raises(ValueError):
            LoggingConfig(log_level="verbose")

    def test_invalid_format_rejected(self):
        with pytest.raises(ValueError):
            LoggingConfig(log_format="xml")


class TestSettings:
    def test_invalid_environment(self):
        with pytest.raises(ValueError):
            Settings(environment="qa")

    def test_debug_forbidden_in_production(self):
        with pytest.raises(ValueError):
            Settings(environment="production", debug=True)

    def test_site_base_url_trailing_slash_stripped(self):
        assert Settings(site_base_url="https://example.com/").site_base_url == "https://example.com"

    def test_dev_cors_adds_localhost(self):
        settings = Settings(environment="development", security=SecurityConfig(cors_origins=["https://app.example.com"]))
        origins = settings.get_cors_origins()
        assert origins[0] == "https://app.example.com"
        assert "http://localhost:3000" in origins

    def test_production_cors_is_strict(self):
        settings = Settings(environment="production", security=SecurityConfig(cors_origins=["https://app.example.com"]))
        assert settings.get_cors_origins() == ["https://app.example.com"]

    def test_debug_disabled_in_production(self):
        assert Settings(environment="staging", debug=True).is_debug_enabled() is True
        assert Settings(environment="production").is_debug_enabled() is False


class TestEnvironmentVariables:
    """Valeurs lues depuis l'environnement, au format de .env.example"""

    def test_empty_query_keys_env_is_ignored(self, monkeypatch):
        monkeypatch.setenv("TOPLEDGER_QUERY_KEYS", "")
        assert TopLedgerConfig().query_keys == {}

    def test_query_keys_env_json(self, monkeypatch):
        monkeypatch.setenv("TOPLEDGER_QUERY_KEYS", '{"13192": "k"}')
        assert TopLedgerConfig().query_keys == {"13192": "k"}

    def test_single_proxy_host_env(self, monkeypatch):
        monkeypatch.setenv("TOPLEDGER_ALLOWED_PROXY_HOSTS", "analytics.topledger.xyz")
        assert TopLedgerConfig().allowed_proxy_hosts == ["analytics.topledger.xyz"]

    def test_proxy_hosts_env_csv(self, monkeypatch):
        monkeypatch.setenv("TOPLEDGER_ALLOWED_PROXY_HOSTS", "a.example.com,b.example.com")
        assert TopLedgerConfig().allowed_proxy_hosts == ["a.example.com", "b.example.com"]

    def test_cors_origins_env_csv(self, monkeypatch):
        monkeypatch.setenv("SECURITY_CORS_ORIGINS", "http://localhost:3000")
        assert SecurityConfig().cors_origins == ["http://localhost:3000"]

    def test_documented_env_loads(self, monkeypatch):
        env = {
            "ENVIRONMENT": "development",
            "DEBUG": "false",
            "TOPLEDGER_API_KEY": "",
            "TOPLEDGER_QUERY_KEYS": "",
            "TOPLEDGER_ALLOWED_PROXY_HOSTS": "analytics.topledger.xyz",
            "SECURITY_CORS_ORIGINS": "http://localhost:3000",
            "LOG_LEVEL": "INFO",
            "LOG_FORMAT": "text",
        }
        for name, value in env.items():
            monkeypatch.setenv(name, value)

        settings = Settings()
        assert settings.topledger.query_keys == {}
        assert settings.topledger.api_key is None
        assert settings.topledger.allowed_proxy_hosts == ["analytics.topledger.xyz"]
        assert settings.security.cors_origins == ["http://localhost:3000"]
