"""Tests for settings validation."""

import pytest

from krafts.core.config import Settings

SECURE_KEY = "k" * 40


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSecuritySettings:
    """Production refuses insecure configuration; development only warns."""

    def test_production_rejects_default_secret(self):
        with pytest.raises(ValueError, match="SECRET_KEY must be set"):
            _settings(app_env="production")

    def test_production_rejects_short_secret(self):
        with pytest.raises(ValueError, match="at least 32 characters"):
            _settings(app_env="production", secret_key="short")

    def test_production_rejects_wildcard_cors(self):
        with pytest.raises(ValueError, match="CORS_ORIGINS"):
            _settings(app_env="production", secret_key=SECURE_KEY, cors_origins="*")

    def test_development_allows_defaults(self):
        config = _settings(app_env="development")

        assert config.is_development
        assert config.jwt_access_token_expire_days == 30
        assert config.jwt_signup_token_expire_minutes == 10

    def test_production_with_secure_values(self):
        config = _settings(app_env="production", secret_key=SECURE_KEY, sms_secret="s")

        assert not config.is_development


class TestParsing:
    """Tests for derived and coerced values."""

    def test_cors_origins_comma_separated(self):
        config = _settings(cors_origins="https://a.example.com, https://b.example.com,")

        assert config.cors_origins == ["https://a.example.com", "https://b.example.com"]

    def test_cors_origins_json_list(self):
        config = _settings(cors_origins='["https://a.example.com"]')

        assert config.cors_origins == ["https://a.example.com"]

    def test_async_database_url(self):
        config = _settings(database_url="postgresql://u:p@db:5432/krafts")

        assert config.database_url_async == "postgresql+asyncpg://u:p@db:5432/krafts"
