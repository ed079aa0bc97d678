"""
Configuration Management for ShieldModel

Naming conventions the proxy generator looks for, the container layout of
generated types, transaction retry limits and logging, with presets per
environment.
"""

from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from enum import Enum
import logging
import os


class Environment(Enum):
    """Runtime environments"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class ShieldConfig:
    """Complete proxy generator configuration"""
    environment: Environment = Environment.DEVELOPMENT

    # Members the analyzer matches by signature
    commute_method: str = "commute"
    change_hook: str = "_on_changed"

    # Layout of generated types
    container_attribute: str = "_shielded"
    type_name_template: str = "Shielded{name}"

    # None retries conflicting transactions until they commit
    max_retries: Optional[int] = None

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def for_environment(cls, environment: Environment) -> 'ShieldConfig':
        """Create configuration for specific environment"""
        config = cls(environment=environment)

        if environment == Environment.DEVELOPMENT:
            config.logging.level = "DEBUG"

        elif environment == Environment.TESTING:
            config.logging.level = "WARNING"
            config.max_retries = 1000

        elif environment == Environment.PRODUCTION:
            config.logging.level = "INFO"

        return config

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ShieldConfig':
        """Create configuration from dictionary"""
        environment = Environment(config_dict.get("environment", Environment.DEVELOPMENT.value))
        config = cls.for_environment(environment)

        for key in ("commute_method", "change_hook", "container_attribute",
                    "type_name_template", "max_retries"):
            if key in config_dict:
                setattr(config, key, config_dict[key])

        if "logging" in config_dict:
            for key, value in config_dict["logging"].items():
                if hasattr(config.logging, key):
                    setattr(config.logging, key, value)

        if "{name}" not in config.type_name_template:
            raise ValueError(f"type_name_template must contain '{{name}}': {config.type_name_template!r}")

        return config

    @classmethod
    def from_env(cls) -> 'ShieldConfig':
        """Create configuration from SHIELDMODEL_* environment variables"""
        config_dict: Dict[str, Any] = {
            "environment": os.getenv("SHIELDMODEL_ENV", Environment.DEVELOPMENT.value)
        }

        log_level = os.getenv("SHIELDMODEL_LOG_LEVEL")
        if log_level:
            config_dict["logging"] = {"level": log_level.upper()}

        max_retries = os.getenv("SHIELDMODEL_MAX_RETRIES")
        if max_retries:
            config_dict["max_retries"] = int(max_retries)

        return cls.from_dict(config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return {
            "environment": self.environment.value,
            "commute_method": self.commute_method,
            "change_hook": self.change_hook,
            "container_attribute": self.container_attribute,
            "type_name_template": self.type_name_template,
            "max_retries": self.max_retries,
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
            },
        }


def configure_logging(config: ShieldConfig) -> logging.Logger:
    """
    Apply the logging section of a configuration to the package logger.

    Args:
        config: Configuration whose logging section should be applied

    Returns:
        The configured ``shieldmodel`` logger
    """
    logger = logging.getLogger("shieldmodel")
    logger.setLevel(config.logging.level)

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(config.logging.format))
        logger.addHandler(handler)

    return logger
