"""Environment-driven settings for the Linear MCP server."""
import os
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

LINEAR_API_URL = "https://api.linear.app/graphql"


class ConfigurationError(RuntimeError):
    """Raised when required settings are missing or malformed."""
    pass


class Settings(BaseModel):
    """Process-wide settings, read once at startup."""

    api_key: str = Field(..., min_length=1)
    api_url: str = LINEAR_API_URL
    timeout: float = Field(30.0, gt=0)
    log_level: str = "INFO"


def get_settings(environ: Optional[dict] = None) -> Settings:
    """Build settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``)

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: If LINEAR_API_KEY is unset or a value is invalid
    """
    env = os.environ if environ is None else environ

    api_key = env.get("LINEAR_API_KEY")
    if not api_key:
        raise ConfigurationError("LINEAR_API_KEY environment variable is not set")

    timeout_raw = env.get("LINEAR_TIMEOUT", "30")
    try:
        timeout = float(timeout_raw)
    except ValueError as e:
        raise ConfigurationError(f"LINEAR_TIMEOUT must be a number of seconds, got '{timeout_raw}'") from e

    try:
        return Settings(
            api_key=api_key,
            api_url=env.get("LINEAR_API_URL", LINEAR_API_URL),
            timeout=timeout,
            log_level=env.get("LINEAR_MCP_LOG_LEVEL", "INFO").upper(),
        )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
