"""
Client configuration management for the S3 Auth Python SDK

Loads endpoint, region, credentials, presign defaults and logging settings
from JSON, files, plain dictionaries or environment variables.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import urlsplit

from ..exceptions import ConfigurationError, FormatError, S3AuthSDKError
from ..signing.types import SigningErrorCodes, DEFAULT_PRESIGN_EXPIRY
from ..signing.utils import escape_path
from ..signing.signing_config import SigningCredentials

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "s3auth_sdk"

ENV_ENDPOINT = "S3AUTH_ENDPOINT"
ENV_REGION = "S3AUTH_REGION"
ENV_ACCESS_KEY = "S3AUTH_ACCESS_KEY"
ENV_SECRET_KEY = "S3AUTH_SECRET_KEY"
ENV_PRESIGN_EXPIRY = "S3AUTH_PRESIGN_EXPIRY"
ENV_LOG_LEVEL = "S3AUTH_LOG_LEVEL"


@dataclass(frozen=True)
class CredentialsConfig:
    """Access key and secret key"""
    access_key: str
    secret_key: str = field(repr=False)

    def __post_init__(self):
        if not self.access_key or not isinstance(self.access_key, str):
            raise ConfigurationError("Access key is required", SigningErrorCodes.MISSING_ACCESS_KEY)
        if not self.secret_key or not isinstance(self.secret_key, str):
            raise ConfigurationError("Secret key is required", SigningErrorCodes.MISSING_SECRET_KEY)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration"""
    level: str = "WARNING"

    def __post_init__(self):
        if not isinstance(logging.getLevelName(str(self.level).upper()), int):
            raise ConfigurationError(
                f"Unknown log level: {self.level}",
                SigningErrorCodes.INVALID_LOG_LEVEL,
                {"level": str(self.level)}
            )


@dataclass(frozen=True)
class ClientConfig:
    """
    Client configuration

    Attributes:
        region: Region of the credential scope
        credentials: Access key and secret key
        endpoint: Optional service endpoint, e.g. ``https://s3.amazonaws.com``
        presign_expiry: Default presigned URL validity in seconds
        logging: Logging configuration
    """
    region: str
    credentials: CredentialsConfig
    endpoint: Optional[str] = None
    presign_expiry: int = DEFAULT_PRESIGN_EXPIRY
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self):
        if not self.region or not isinstance(self.region, str):
            raise ConfigurationError("Region is required", SigningErrorCodes.MISSING_REGION)

        if not isinstance(self.credentials, CredentialsConfig):
            raise ConfigurationError("Credentials are required", SigningErrorCodes.MISSING_CREDENTIALS)

        if self.endpoint is not None:
            parsed = urlsplit(self.endpoint)
            if parsed.scheme not in ('http', 'https') or not parsed.netloc:
                raise ConfigurationError(
                    f"Invalid endpoint: {self.endpoint}",
                    SigningErrorCodes.INVALID_ENDPOINT,
                    {"endpoint": self.endpoint}
                )

        if (isinstance(self.presign_expiry, bool) or not isinstance(self.presign_expiry, int)
                or self.presign_expiry <= 0):
            raise ConfigurationError(
                "Presign expiry must be a positive integer",
                SigningErrorCodes.INVALID_PRESIGN_EXPIRY,
                {"presign_expiry": str(self.presign_expiry)}
            )

    @property
    def secure(self) -> bool:
        """True unless the endpoint is plain HTTP."""
        return self.endpoint is None or urlsplit(self.endpoint).scheme == 'https'

    def signing_credentials(self) -> SigningCredentials:
        """Credentials and region for the signer."""
        return SigningCredentials(
            access_key=self.credentials.access_key,
            secret_key=self.credentials.secret_key,
            region=self.region
        )

    def object_url(self, bucket: str, object_name: Optional[str] = None) -> str:
        """
        Path-style URL of a bucket or object on the configured endpoint.

        Raises:
            ConfigurationError: If no endpoint is configured
        """
        if self.endpoint is None:
            raise ConfigurationError("Endpoint is not configured", SigningErrorCodes.MISSING_ENDPOINT)

        path = f"/{bucket}"
        if object_name:
            path = f"{path}/{object_name}"
        return f"{self.endpoint.rstrip('/')}{escape_path(path)}"


class ClientConfigManager:
    """Client configuration loader"""

    def __init__(self, config: ClientConfig):
        self.config = config

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ClientConfigManager':
        """Load configuration from a dictionary"""
        try:
            return cls(cls._parse_config_dict(data))
        except S3AuthSDKError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise FormatError(f"Invalid configuration format: {e}", SigningErrorCodes.INVALID_FORMAT)

    @classmethod
    def from_json(cls, json_string: str) -> 'ClientConfigManager':
        """Load configuration from JSON string"""
        try:
            data = json.loads(json_string)
        except json.JSONDecodeError as e:
            raise FormatError(f"Failed to parse configuration JSON: {e}", SigningErrorCodes.PARSE_ERROR)

        if not isinstance(data, dict):
            raise FormatError("Configuration JSON must be an object", SigningErrorCodes.INVALID_FORMAT)
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> 'ClientConfigManager':
        """Load configuration from file"""
        try:
            path = Path(file_path)
            with open(path, 'r', encoding='utf-8') as f:
                json_string = f.read()
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}", SigningErrorCodes.FILE_ERROR)

        logger.info(f"Loaded client configuration from {path}")
        return cls.from_json(json_string)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'ClientConfigManager':
        """Load configuration from ``S3AUTH_*`` environment variables"""
        env = os.environ if environ is None else environ

        data: Dict[str, Any] = {
            "region": env.get(ENV_REGION),
            "credentials": {
                "access_key": env.get(ENV_ACCESS_KEY),
                "secret_key": env.get(ENV_SECRET_KEY),
            },
        }

        if env.get(ENV_ENDPOINT):
            data["endpoint"] = env[ENV_ENDPOINT]

        if env.get(ENV_PRESIGN_EXPIRY):
            try:
                data["presign_expiry"] = int(env[ENV_PRESIGN_EXPIRY])
            except ValueError:
                raise FormatError(
                    f"{ENV_PRESIGN_EXPIRY} must be an integer",
                    SigningErrorCodes.INVALID_FORMAT,
                    {"value": env[ENV_PRESIGN_EXPIRY]}
                )

        if env.get(ENV_LOG_LEVEL):
            data["logging"] = {"level": env[ENV_LOG_LEVEL]}

        return cls.from_dict(data)

    def get_config(self) -> ClientConfig:
        """Get the client configuration"""
        return self.config

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration"""
        return self.config.logging

    def to_signing_credentials(self) -> SigningCredentials:
        """Convert to signer credentials"""
        return self.config.signing_credentials()

    @staticmethod
    def _parse_config_dict(data: Mapping[str, Any]) -> ClientConfig:
        """Parse configuration dictionary into structured objects"""
        credentials_data = data.get('credentials') or {}
        credentials = CredentialsConfig(
            access_key=credentials_data.get('access_key'),
            secret_key=credentials_data.get('secret_key')
        )

        logging_config = LoggingConfig(**data.get('logging', {}))

        return ClientConfig(
            region=data.get('region'),
            credentials=credentials,
            endpoint=data.get('endpoint'),
            presign_expiry=data.get('presign_expiry', DEFAULT_PRESIGN_EXPIRY),
            logging=logging_config
        )


def apply_logging_config(config: Union[LoggingConfig, ClientConfig]) -> None:
    """Set the SDK logger level from configuration"""
    logging_config = config.logging if isinstance(config, ClientConfig) else config
    level = logging_config.level.upper()
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)
    logger.info(f"Set {PACKAGE_LOGGER} log level to {level}")


def load_client_config_from_dict(data: Mapping[str, Any]) -> ClientConfig:
    """Load client configuration from a dictionary"""
    return ClientConfigManager.from_dict(data).get_config()


def load_client_config_from_json(json_string: str) -> ClientConfig:
    """Load client configuration from JSON string"""
    return ClientConfigManager.from_json(json_string).get_config()


def load_client_config_from_file(file_path: Union[str, Path]) -> ClientConfig:
    """Load client configuration from file"""
    return ClientConfigManager.from_file(file_path).get_config()


def load_client_config_from_env(environ: Optional[Mapping[str, str]] = None) -> ClientConfig:
    """Load client configuration from environment variables"""
    return ClientConfigManager.from_env(environ).get_config()
