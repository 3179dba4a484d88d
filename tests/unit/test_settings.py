"""
Unit tests for the configuration settings module.

Tests cover:
- Loading from environment variables and defaults
- API key, header, allow-list and publisher validation
- Environment-specific startup checks
"""

import os
from unittest.mock import patch

import pytest

from config.settings import (
    DEFAULT_PUBLIC_PATHS,
    ConfigurationError,
    Environment,
    Settings,
    _detect_environment,
    _get_env_files,
    clear_settings_cache,
    create_settings_for_environment,
    get_settings,
    validate_startup,
)


@pytest.fixture
def valid_env_vars() -> dict:
    return {
        "API_KEY": "gateway-shared-secret-2024",
        "ENVIRONMENT": "development",
    }


@pytest.fixture(autouse=True)
def reset_settings_cache():
    clear_settings_cache()
    yield
    clear_settings_cache()


class TestSettings:
    def test_valid_configuration_loads_successfully(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            settings = Settings()

        assert settings.api_key == "gateway-shared-secret-2024"
        assert settings.environment == Environment.DEVELOPMENT

    def test_default_values_are_applied(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            settings = Settings()

        assert settings.api_key_header_name == "X-API-KEY"
        assert settings.public_paths == DEFAULT_PUBLIC_PATHS
        assert settings.publisher_type == "redis"
        assert settings.redis_url is None
        assert settings.effective_redis_url == "redis://localhost:6379/0"
        assert settings.queue_name == "sensor-data-queue"
        assert settings.publish_retry_attempts == 3
        assert settings.publish_retry_interval_seconds == 5.0
        assert settings.publish_timeout_seconds == 30.0
        assert settings.max_batch_size == 1000
        assert settings.log_level == "INFO"
        assert settings.otel_endpoint is None
        assert settings.otel_service_name == "sensor-data-ingestion"
        assert settings.cors_origins == ["http://localhost:3000"]

    def test_missing_api_key_raises_error(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(Exception) as exc_info:
                Settings()

        assert "api_key" in str(exc_info.value).lower()

    @pytest.mark.parametrize("blank", ["", "   "])
    def test_blank_api_key_raises_error(self, blank):
        with patch.dict(os.environ, {"API_KEY": blank}, clear=True):
            with pytest.raises(Exception):
                Settings()

    @pytest.mark.parametrize("padded", ["  padded-key", "padded-key ", "padded-key\n"])
    def test_api_key_with_surrounding_whitespace_is_rejected(self, padded):
        with pytest.raises(Exception) as exc_info:
            Settings(api_key=padded)

        assert "whitespace" in str(exc_info.value)

    def test_default_publish_timeout_covers_the_retry_schedule(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            settings = Settings()

        retry_wait = (settings.publish_retry_attempts - 1) * settings.publish_retry_interval_seconds
        assert settings.publish_timeout_seconds > retry_wait

    def test_custom_header_name(self, valid_env_vars):
        env = {**valid_env_vars, "API_KEY_HEADER_NAME": "X-Gateway-Key"}
        with patch.dict(os.environ, env, clear=True):
            assert Settings().api_key_header_name == "X-Gateway-Key"

    @pytest.mark.parametrize("header", ["", "X API KEY", "X-Key:"])
    def test_invalid_header_name_raises_error(self, valid_env_vars, header):
        env = {**valid_env_vars, "API_KEY_HEADER_NAME": header}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(Exception):
                Settings()

    def test_public_paths_are_normalised(self, valid_env_vars):
        env = {**valid_env_vars, "PUBLIC_PATHS": '["/Health/", "/Docs", " "]'}
        with patch.dict(os.environ, env, clear=True):
            assert Settings().public_paths == ["/health", "/docs"]

    def test_relative_public_path_raises_error(self, valid_env_vars):
        env = {**valid_env_vars, "PUBLIC_PATHS": '["health"]'}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(Exception):
                Settings()

    def test_invalid_publisher_type_raises_error(self, valid_env_vars):
        env = {**valid_env_vars, "PUBLISHER_TYPE": "kafka"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(Exception):
                Settings()

    def test_redis_url_scheme_is_checked(self, valid_env_vars):
        env = {**valid_env_vars, "REDIS_URL": "http://broker:6379"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(Exception):
                Settings()

    def test_redis_url_required_outside_development(self):
        env = {"API_KEY": "a" * 32, "ENVIRONMENT": "staging"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.raises(Exception) as exc_info:
                Settings()

        assert "redis_url" in str(exc_info.value)

    def test_memory_publisher_needs_no_redis_url(self):
        env = {"API_KEY": "a" * 32, "ENVIRONMENT": "staging", "PUBLISHER_TYPE": "memory"}
        with patch.dict(os.environ, env, clear=True):
            assert Settings().publisher_type == "memory"

    @pytest.mark.parametrize("name, value", [
        ("MAX_BATCH_SIZE", "0"),
        ("PUBLISH_RETRY_ATTEMPTS", "0"),
        ("PUBLISH_TIMEOUT_SECONDS", "0"),
        ("QUEUE_MAX_LENGTH", "0"),
    ])
    def test_numeric_bounds(self, valid_env_vars, name, value):
        with patch.dict(os.environ, {**valid_env_vars, name: value}, clear=True):
            with pytest.raises(Exception):
                Settings()

    def test_invalid_log_level_raises_error(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "LOG_LEVEL": "VERBOSE"}, clear=True):
            with pytest.raises(Exception):
                Settings()

    def test_log_level_is_upper_cased(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "LOG_LEVEL": "debug"}, clear=True):
            assert Settings().log_level == "DEBUG"

    def test_otel_endpoint_from_environment(self, valid_env_vars):
        env = {**valid_env_vars, "OTEL_ENDPOINT": "http://collector:4317"}
        with patch.dict(os.environ, env, clear=True):
            assert Settings().otel_endpoint == "http://collector:4317"

    @pytest.mark.parametrize("origins", ['["*"]', '["https://*.example.com"]', '["example.com"]'])
    def test_cors_origins_are_validated(self, valid_env_vars, origins):
        with patch.dict(os.environ, {**valid_env_vars, "CORS_ORIGINS": origins}, clear=True):
            with pytest.raises(Exception):
                Settings()


class TestConfigurationError:
    def test_error_message_lists_missing_and_invalid_fields(self):
        error = ConfigurationError(
            "Configuration failed",
            missing_fields=["api_key"],
            invalid_fields={"log_level": "Invalid level"},
        )

        message = str(error)
        assert "Configuration failed" in message
        assert "Missing required fields: api_key" in message
        assert "log_level: Invalid level" in message


class TestGetSettings:
    def test_returns_cached_instance(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            first = get_settings()
            second = get_settings()

        assert first is second

    def test_clear_settings_cache_allows_reload(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            first = get_settings()
            clear_settings_cache()
            second = get_settings()

        assert first is not second

    def test_raises_configuration_error_on_missing_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError) as exc_info:
                get_settings()

        assert "api_key" in exc_info.value.missing_fields


class TestValidateStartup:
    def test_development_accepts_short_key(self, valid_env_vars):
        with patch.dict(os.environ, {**valid_env_vars, "API_KEY": "dev"}, clear=True):
            validate_startup(Settings())

    def test_production_requires_long_api_key(self):
        settings = Settings(
            api_key="short",
            environment=Environment.PRODUCTION,
            redis_url="redis://broker:6379/0",
            cors_origins=["https://dashboard.example.com"],
        )

        with pytest.raises(ConfigurationError) as exc_info:
            validate_startup(settings)

        assert "api_key" in exc_info.value.invalid_fields

    def test_production_rejects_memory_publisher(self):
        settings = Settings(
            api_key="a" * 32,
            environment=Environment.PRODUCTION,
            publisher_type="memory",
            cors_origins=["https://dashboard.example.com"],
        )

        with pytest.raises(ConfigurationError) as exc_info:
            validate_startup(settings)

        assert "publisher_type" in exc_info.value.invalid_fields

    def test_production_rejects_localhost_only_cors(self):
        settings = Settings(
            api_key="a" * 32,
            environment=Environment.PRODUCTION,
            redis_url="redis://broker:6379/0",
        )

        with pytest.raises(ConfigurationError) as exc_info:
            validate_startup(settings)

        assert "cors_origins" in exc_info.value.invalid_fields

    def test_valid_production_configuration(self):
        settings = Settings(
            api_key="a" * 32,
            environment=Environment.PRODUCTION,
            redis_url="redis://broker:6379/0",
            cors_origins=["https://dashboard.example.com"],
        )

        validate_startup(settings)


class TestEnvironmentDetection:
    @pytest.mark.parametrize("value, expected", [
        ("production", Environment.PRODUCTION),
        (" Staging ", Environment.STAGING),
        ("qa", Environment.DEVELOPMENT),
    ])
    def test_detect_environment(self, value, expected):
        with patch.dict(os.environ, {"ENVIRONMENT": value}, clear=True):
            assert _detect_environment() == expected

    def test_detect_environment_defaults_to_development(self):
        with patch.dict(os.environ, {}, clear=True):
            assert _detect_environment() == Environment.DEVELOPMENT

    def test_env_files_layer_environment_over_base(self):
        assert _get_env_files(Environment.PRODUCTION) == (".env", ".env.production")

    def test_create_settings_for_environment(self, valid_env_vars):
        with patch.dict(os.environ, valid_env_vars, clear=True):
            settings = create_settings_for_environment(Environment.DEVELOPMENT)

        assert settings.api_key == "gateway-shared-secret-2024"
