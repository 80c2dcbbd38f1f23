"""Provider configuration with validation.

Configuration is validated at construction time so that a misconfigured
provider fails before any API call is attempted.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import urlparse

PROVIDER_VERSION = "0.1.0"


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_BASE_URL = "https://api.tailscale.com"
DEFAULT_TAILNET = "-"  # The tailnet that owns the API credentials
DEFAULT_USER_AGENT = f"tailscale-provider/{PROVIDER_VERSION}"

DEFAULT_REQUEST_TIMEOUT_SECONDS = 60
MIN_REQUEST_TIMEOUT_SECONDS = 1
MAX_REQUEST_TIMEOUT_SECONDS = 600

DEFAULT_RETRY_TOTAL = 3
MAX_RETRY_TOTAL = 10

# Read-after-write polling cadence
POLL_INTERVAL_SECONDS = 1.0


@dataclass(frozen=True)
class ProviderConfig:
    """Provider configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    api_key: str
    tailnet: str = DEFAULT_TAILNET
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT

    request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS
    retry_total: int = DEFAULT_RETRY_TOTAL

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.api_key:
            errors.append("TAILSCALE_API_KEY is required - provider credentials are empty")

        if not self.tailnet:
            errors.append("TAILSCALE_TAILNET is empty")

        parsed = urlparse(self.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(f"TAILSCALE_BASE_URL could not be parsed: {self.base_url!r}")

        if not (
            MIN_REQUEST_TIMEOUT_SECONDS
            <= self.request_timeout_seconds
            <= MAX_REQUEST_TIMEOUT_SECONDS
        ):
            errors.append(
                f"TAILSCALE_REQUEST_TIMEOUT must be between {MIN_REQUEST_TIMEOUT_SECONDS} "
                f"and {MAX_REQUEST_TIMEOUT_SECONDS} seconds"
            )

        if not 0 <= self.retry_total <= MAX_RETRY_TOTAL:
            errors.append(f"TAILSCALE_RETRY_TOTAL must be between 0 and {MAX_RETRY_TOTAL}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> ProviderConfig:
        """Load configuration from environment variables.

        Environment Variables:
            TAILSCALE_API_KEY: API key used as a bearer token (required)
            TAILSCALE_TAILNET: Tailnet to act on (default: "-")
            TAILSCALE_BASE_URL: API base URL (default: https://api.tailscale.com)
            TAILSCALE_USER_AGENT: User-Agent header (default: tailscale-provider/<version>)
            TAILSCALE_REQUEST_TIMEOUT: Per-request timeout in seconds (default: 60)
            TAILSCALE_RETRY_TOTAL: Transport-level retries (default: 3)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        return cls(
            api_key=os.environ.get("TAILSCALE_API_KEY", ""),
            tailnet=os.environ.get("TAILSCALE_TAILNET", DEFAULT_TAILNET),
            base_url=os.environ.get("TAILSCALE_BASE_URL", DEFAULT_BASE_URL),
            user_agent=os.environ.get("TAILSCALE_USER_AGENT") or DEFAULT_USER_AGENT,
            request_timeout_seconds=get_int(
                "TAILSCALE_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT_SECONDS
            ),
            retry_total=get_int("TAILSCALE_RETRY_TOTAL", DEFAULT_RETRY_TOTAL),
        )
