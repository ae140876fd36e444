#!/usr/bin/env python3
"""Modular configuration system for the access review engine

Configuration hierarchy:
- infra_config: Infrastructure services (PostgreSQL, NATS)
- access_review_config: Campaign engine business-rule settings
- logging_config: Logging configuration
"""
import os
from dataclasses import dataclass, field
from dotenv import load_dotenv
from .logging_config import LoggingConfig, configure_logging
from .infra_config import InfraConfig
from .access_review_config import AccessReviewConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)


@dataclass
class AppConfig:
    """Top-level settings"""
    environment: str = "development"
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    access_review: AccessReviewConfig = field(default_factory=AccessReviewConfig)

    @classmethod
    def from_env(cls) -> 'AppConfig':
        return cls(
            environment=os.getenv("ENV") or os.getenv("ENVIRONMENT", "development"),
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
            access_review=AccessReviewConfig.from_env(),
        )


# Create global settings instance
settings = AppConfig.from_env()

def get_settings() -> AppConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> AppConfig:
    """Reload settings from environment"""
    global settings
    settings = AppConfig.from_env()
    return settings

__all__ = [
    # Main config
    'AppConfig',
    'get_settings',
    'reload_settings',
    'settings',
    # Sub-configs
    'LoggingConfig',
    'InfraConfig',
    'AccessReviewConfig',
    'configure_logging',
]
