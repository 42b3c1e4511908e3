"""
Tests for settings loaded from the environment.
"""
import pytest

from admin_panel.config import Config


@pytest.fixture
def clean_env(monkeypatch):
    for key in ("CORS_ORIGINS", "CLIENT_URL", "CLIENT_URLS", "DB_AUTO_CREATE"):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


class TestCorsOrigins:

    def test_comma_separated_env(self, clean_env):
        clean_env.setenv("CORS_ORIGINS", "http://a.com, http://b.com,")
        assert Config().CORS_ORIGINS == ["http://a.com", "http://b.com"]

    def test_single_origin_env(self, clean_env):
        clean_env.setenv("CORS_ORIGINS", "http://localhost:4200")
        assert Config().CORS_ORIGINS == ["http://localhost:4200"]

    def test_json_list_env(self, clean_env):
        clean_env.setenv("CORS_ORIGINS", '["http://a.com", "http://b.com"]')
        assert Config().CORS_ORIGINS == ["http://a.com", "http://b.com"]

    def test_client_urls_are_merged_without_duplicates(self, clean_env):
        clean_env.setenv("CORS_ORIGINS", "http://a.com")
        clean_env.setenv("CLIENT_URL", " http://b.com ")
        clean_env.setenv("CLIENT_URLS", "http://a.com,http://c.com")
        assert Config().allowed_origins == ["http://a.com", "http://b.com", "http://c.com"]


class TestDatabaseSettings:

    def test_auto_create_is_off_by_default(self, clean_env):
        assert Config.model_fields["DB_AUTO_CREATE"].default is False
        assert Config().DB_AUTO_CREATE is False

    def test_auto_create_from_env(self, clean_env):
        clean_env.setenv("DB_AUTO_CREATE", "true")
        assert Config().DB_AUTO_CREATE is True
