#!/usr/bin/env python3
"""Configuration for the loyalty membership service

Configuration hierarchy:
- membership_config: Program rules, cache policy, remote API, checkout
- logging_config: Logging configuration
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig
from .membership_config import (
    MembershipConfig,
    DEFAULT_ELIGIBLE_SERVICES,
    DEFAULT_SERVICE_NAMES,
)

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

# Create global settings instance
settings = MembershipConfig.from_env()

def get_settings() -> MembershipConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> MembershipConfig:
    """Reload settings from environment"""
    global settings
    settings = MembershipConfig.from_env()
    return settings

__all__ = [
    'MembershipConfig',
    'LoggingConfig',
    'DEFAULT_ELIGIBLE_SERVICES',
    'DEFAULT_SERVICE_NAMES',
    'get_settings',
    'reload_settings',
    'settings',
]
