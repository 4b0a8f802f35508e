"""
Tests for Configuration, Logging and Utilities.
===============================================
"""

import pytest


class TestSettings:
    """Tests for settings loading and overrides."""

    def test_defaults(self):
        """Test the built-in defaults."""
        from better_mycourses.shared.config import Settings

        settings = Settings()

        assert settings.moodle.session_cookie == "MoodleSession"
        assert settings.cache.ttl.courses == 3600
        assert settings.cache.cascade_on_logout is False
        assert settings.api.prefix == "/api"

    def test_base_url_override(self, monkeypatch):
        """Test MOODLE_BASE_URL replaces the configured base URL."""
        from better_mycourses.shared.config import Settings

        monkeypatch.setenv("MOODLE_BASE_URL", "https://other.test")

        moodle = Settings().get_effective_moodle()

        assert moodle.base_url == "https://other.test"
        assert moodle.url("/my/") == "https://other.test/my/"

    def test_blank_override_is_ignored(self, monkeypatch):
        """Test that empty environment values do not override."""
        from better_mycourses.shared.config import Settings

        monkeypatch.setenv("JWT_SECRET", "   ")

        settings = Settings()

        assert settings.get_effective_jwt_secret() == settings.auth.jwt_secret

    def test_nested_env_override(self, monkeypatch):
        """Test double-underscore nested variables."""
        from better_mycourses.shared.config import Settings

        monkeypatch.setenv("CACHE__CASCADE_ON_LOGOUT", "true")

        assert Settings().cache.cascade_on_logout is True

    def test_login_url(self):
        """Test the SAML initiation URL carries the return target."""
        from better_mycourses.shared.config import MoodleConfig

        url = MoodleConfig(base_url="https://moodle.test/").login_url

        assert url.startswith("https://moodle.test/auth/saml2/login.php?")
        assert "wants=https%3A%2F%2Fmoodle.test%2F" in url
        assert "passive=off" in url

    def test_yaml_loading(self, tmp_path):
        """Test that a YAML file feeds the nested models."""
        from better_mycourses.shared.config import _create_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text("cache:\n  ttl:\n    profile: 42\napi:\n  port: 8080\n")

        settings = _create_settings(config_file)

        assert settings.cache.ttl.profile == 42
        assert settings.api.port == 8080

    def test_environment_beats_yaml(self, tmp_path, monkeypatch):
        """Test a nested environment variable wins over the YAML file."""
        from better_mycourses.shared.config import _create_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text("cache:\n  cascade_on_logout: false\n  ttl:\n    profile: 42\n")
        monkeypatch.setenv("CACHE__CASCADE_ON_LOGOUT", "true")

        settings = _create_settings(config_file)

        assert settings.cache.cascade_on_logout is True
        assert settings.cache.ttl.profile == 42

    def test_yaml_must_be_mapping(self, tmp_path):
        """Test a YAML list is rejected."""
        from better_mycourses.shared.config import _create_settings

        config_file = tmp_path / "settings.yaml"
        config_file.write_text("- one\n- two\n")

        with pytest.raises(ValueError, match="must contain a mapping"):
            _create_settings(config_file)

    def test_get_settings_is_cached(self):
        """Test the singleton accessor."""
        from better_mycourses.shared.config import get_settings, reload_settings

        first = get_settings()

        assert get_settings() is first
        assert reload_settings() is not first


class TestLoggingHelpers:
    """Tests for logging helpers."""

    def test_mask_secret(self):
        """Test secrets keep only a short prefix."""
        from better_mycourses.shared.logging import mask_secret

        masked = mask_secret("abcdef0123456789")

        assert masked.startswith("abcd")
        assert "0123456789" not in masked

    def test_get_logger_is_namespaced(self):
        """Test loggers live under the package namespace."""
        from better_mycourses.shared.logging import get_logger

        assert get_logger("better_mycourses.cache").name.startswith("better_mycourses")


class TestUtils:
    """Tests for hashing and JSON helpers."""

    def test_short_hash(self):
        """Test the truncated digest."""
        from better_mycourses.shared.utils import compute_hash, short_hash

        assert short_hash("hello world") == compute_hash("hello world")[:12]
        assert len(short_hash("x", 8)) == 8

    def test_canonical_json_is_stable(self):
        """Test key order does not change the output."""
        from better_mycourses.shared.utils import canonical_json

        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'
