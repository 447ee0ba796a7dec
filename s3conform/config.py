"""Configuration loading for the S3 conformance harness.

Supports three configuration sources, highest priority first:
1. Explicit overrides (command-line flags)
2. Environment variables (for CI/CD)
3. config.json file (for local development)

Environment Variables:
    S3_URL=https://play.min.io
    S3_ACCESS=your-access-key
    S3_SECRET=your-secret-key
    S3_REGION=us-east-1             (optional)
    S3_ADDRESSING_STYLE=path        (optional: path | virtual)
"""

import json
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from s3conform.models import ServerConfig

ENV_VARIABLES = {
    "endpoint_url": "S3_URL",
    "aws_access_key_id": "S3_ACCESS",
    "aws_secret_access_key": "S3_SECRET",
    "region_name": "S3_REGION",
    "addressing_style": "S3_ADDRESSING_STYLE",
}

# Fields without a default
REQUIRED_FIELDS = [
    "endpoint_url",
    "aws_access_key_id",
    "aws_secret_access_key",
]

ADDRESSING_STYLES = ("path", "virtual")

DEFAULT_REGION = "us-east-1"


class ConfigError(Exception):
    """Raised when configuration loading fails."""

    pass


def load_from_json(config_path: str) -> dict[str, str]:
    """Load server settings from a JSON file.

    Args:
        config_path: Path to the config.json file.

    Returns:
        Dictionary of the recognised settings present in the file.

    Raises:
        ConfigError: If the file doesn't exist or contains invalid JSON.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")

    return {key: str(data[key]) for key in ENV_VARIABLES if data.get(key)}


def load_from_env() -> dict[str, str]:
    """Load server settings from S3_* environment variables."""
    values = {}
    for field_name, env_name in ENV_VARIABLES.items():
        value = os.environ.get(env_name)
        if value:
            values[field_name] = value
    return values


def validate(values: dict[str, str]) -> ServerConfig:
    """Check merged settings and build the ServerConfig.

    Raises:
        ConfigError: If a required value is missing or malformed.
    """
    for field_name in REQUIRED_FIELDS:
        if not values.get(field_name):
            raise ConfigError(
                f"Missing required setting '{field_name}' "
                f"(set {ENV_VARIABLES[field_name]} or add it to the config file)"
            )

    endpoint = values["endpoint_url"]
    parts = urlsplit(endpoint)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ConfigError(f"Invalid endpoint URL: {endpoint}")

    style = values.get("addressing_style", "path")
    if style not in ADDRESSING_STYLES:
        raise ConfigError(
            f"Invalid addressing style '{style}'. Expected one of: {', '.join(ADDRESSING_STYLES)}"
        )

    return ServerConfig(
        endpoint_url=endpoint,
        aws_access_key_id=values["aws_access_key_id"],
        aws_secret_access_key=values["aws_secret_access_key"],
        region_name=values.get("region_name") or DEFAULT_REGION,
        addressing_style=style,
    )


def load_server_config(
    config_path: str = "config.json",
    overrides: Optional[dict[str, Optional[str]]] = None,
) -> ServerConfig:
    """Load the server configuration with override > environment > file priority.

    A missing config file is only an error if nothing else supplies the
    required settings.

    Args:
        config_path: Path to config.json.
        overrides: Values from the command line; None entries are ignored.

    Returns:
        The validated ServerConfig.

    Raises:
        ConfigError: If the merged settings are incomplete or invalid.
    """
    values: dict[str, str] = {}

    if Path(config_path).exists():
        values.update(load_from_json(config_path))

    values.update(load_from_env())

    if overrides:
        values.update({k: v for k, v in overrides.items() if v})

    return validate(values)
