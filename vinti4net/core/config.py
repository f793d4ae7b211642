"""
Configuration validation and management for the Vinti4Net gateway client.

This module loads gateway credentials and ambient settings from the environment
(optionally seeded from a `.env` file), validates them and exposes them as
dataclasses. The POS auth code is kept out of every `repr` and log line.
"""

import os
from typing import Dict, Optional
from dataclasses import dataclass, field
from urllib.parse import urlparse
from dotenv import load_dotenv
from vinti4net.core.exceptions import ConfigurationError
import logging

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://mc.vinti4net.cv/BizMPIOnUsSisp/CardPayment"


@dataclass
class GatewayConfig:
    """SISP terminal credentials and endpoint"""
    pos_id: str
    pos_auth_code: str = field(repr=False)
    endpoint: str = DEFAULT_BASE_URL
    language: str = "pt"
    response_url: Optional[str] = None


@dataclass
class RateLimitConfig:
    """Rate limiting configuration settings"""
    checkout_rate_limit: str = "30/minute"


@dataclass
class LoggingConfig:
    """Logging configuration settings"""
    level: str = "INFO"
    log_requests: bool = True


@dataclass
class AppConfig:
    """Main application configuration"""
    gateway: GatewayConfig
    rate_limit: RateLimitConfig
    logging: LoggingConfig
    environment: str = "development"
    debug: bool = False


class ConfigValidator:
    """Validates and loads gateway configuration"""

    REQUIRED_ENV_VARS = ("VINTI4_POS_ID", "VINTI4_POS_AUTH_CODE")

    OPTIONAL_ENV_VARS = {
        "VINTI4_ENDPOINT": DEFAULT_BASE_URL,
        "VINTI4_LANGUAGE": "pt",
        "VINTI4_RESPONSE_URL": None,
        "ENVIRONMENT": "development",
        "DEBUG": "false",
        "LOG_LEVEL": "INFO",
        "LOG_REQUESTS": "true",
        "CHECKOUT_RATE_LIMIT": "30/minute",
    }

    LANGUAGES = ("pt", "en", "fr")

    @classmethod
    def validate_environment(cls) -> Dict[str, Optional[str]]:
        """
        Validate all required and optional environment variables

        Returns:
            Dict containing all validated environment variables

        Raises:
            ConfigurationError: If a required variable is missing
        """
        errors = []
        config = {}

        for var_name in cls.REQUIRED_ENV_VARS:
            value = os.getenv(var_name)
            if not value:
                errors.append(f"Required environment variable {var_name} is not set")
            config[var_name] = value

        for var_name, default_value in cls.OPTIONAL_ENV_VARS.items():
            config[var_name] = os.getenv(var_name, default_value)

        if errors:
            raise ConfigurationError(
                "Configuration validation failed: " + "; ".join(errors),
                config_key="environment_validation",
            )

        return config

    @classmethod
    def validate_pos_id(cls, pos_id: str) -> str:
        """POS ids are 1 to 9 digits"""
        if not (pos_id.isdigit() and 1 <= len(pos_id) <= 9):
            raise ConfigurationError(
                "Invalid POS id format",
                config_key="VINTI4_POS_ID",
                expected_value="1 to 9 digits",
            )
        return pos_id

    @classmethod
    def validate_url(cls, url: Optional[str], config_key: str) -> Optional[str]:
        """Validate an absolute http(s) URL"""
        if url is None:
            return None
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                "Invalid URL format",
                config_key=config_key,
                expected_value="https://host/path",
            )
        return url

    @classmethod
    def validate_language(cls, language: str) -> str:
        language = language.lower()
        if language not in cls.LANGUAGES:
            raise ConfigurationError(
                "Invalid gateway language",
                config_key="VINTI4_LANGUAGE",
                expected_value="pt, en or fr",
            )
        return language

    @classmethod
    def validate_rate_limit(cls, rate_limit: str) -> str:
        """Validate rate limit format (e.g., '10/minute')"""
        try:
            parts = rate_limit.split("/")
            if len(parts) != 2:
                raise ValueError()
            int(parts[0])
            if parts[1] not in ["second", "minute", "hour", "day"]:
                raise ValueError()
        except ValueError:
            raise ConfigurationError(
                "Invalid rate limit format",
                config_key="rate_limit",
                expected_value="10/minute"
            )
        return rate_limit

    @classmethod
    def validate_boolean(cls, value: str, default: bool = False) -> bool:
        """Validate boolean string values"""
        if value is None:
            return default
        return value.lower() in ("true", "1", "yes", "on")

    @classmethod
    def load_config(cls) -> AppConfig:
        """
        Load and validate complete application configuration

        Returns:
            AppConfig: Validated application configuration

        Raises:
            ConfigurationError: If configuration validation fails
        """
        logger.info("Loading gateway configuration...")

        load_dotenv()
        env_vars = cls.validate_environment()

        gateway_config = GatewayConfig(
            pos_id=cls.validate_pos_id(env_vars["VINTI4_POS_ID"]),
            pos_auth_code=env_vars["VINTI4_POS_AUTH_CODE"],
            endpoint=cls.validate_url(env_vars["VINTI4_ENDPOINT"], "VINTI4_ENDPOINT"),
            language=cls.validate_language(env_vars["VINTI4_LANGUAGE"]),
            response_url=cls.validate_url(env_vars["VINTI4_RESPONSE_URL"], "VINTI4_RESPONSE_URL"),
        )

        rate_limit_config = RateLimitConfig(
            checkout_rate_limit=cls.validate_rate_limit(env_vars["CHECKOUT_RATE_LIMIT"]),
        )

        logging_config = LoggingConfig(
            level=env_vars["LOG_LEVEL"].upper(),
            log_requests=cls.validate_boolean(env_vars["LOG_REQUESTS"], True),
        )

        app_config = AppConfig(
            gateway=gateway_config,
            rate_limit=rate_limit_config,
            logging=logging_config,
            environment=env_vars["ENVIRONMENT"],
            debug=cls.validate_boolean(env_vars["DEBUG"], False),
        )

        logger.info("Configuration loaded successfully")
        logger.info(f"Environment: {app_config.environment}")
        logger.info(f"Gateway endpoint: {gateway_config.endpoint} (POS {gateway_config.pos_id})")

        return app_config


# Global configuration instance
_app_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the application configuration

    Raises:
        ConfigurationError: If configuration is not loaded
    """
    global _app_config

    if _app_config is None:
        raise ConfigurationError(
            "Configuration not loaded. Call load_config() first.",
            config_key="config_not_loaded"
        )

    return _app_config


def load_config() -> AppConfig:
    """Load and validate application configuration"""
    global _app_config

    _app_config = ConfigValidator.load_config()
    return _app_config


def set_config(config: Optional[AppConfig]) -> None:
    """Install an already-built configuration (used by `create_app` and tests)."""
    global _app_config

    _app_config = config
