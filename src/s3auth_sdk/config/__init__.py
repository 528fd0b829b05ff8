"""
Configuration management for S3 Auth Python SDK

This module provides loading of endpoint, region, credentials and logging
settings from JSON, files, dictionaries and environment variables.
"""

from .client_config import (
    ClientConfig,
    ClientConfigManager,
    CredentialsConfig,
    LoggingConfig,
    apply_logging_config,
    load_client_config_from_dict,
    load_client_config_from_json,
    load_client_config_from_file,
    load_client_config_from_env,
)

__all__ = [
    'ClientConfig',
    'ClientConfigManager',
    'CredentialsConfig',
    'LoggingConfig',
    'apply_logging_config',
    'load_client_config_from_dict',
    'load_client_config_from_json',
    'load_client_config_from_file',
    'load_client_config_from_env',
]
