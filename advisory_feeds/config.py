"""Configuration management for Advisory Feeds."""

import os
from dataclasses import dataclass

from .fetch import DEFAULT_USER_AGENT
from .render import RENDERERS

DEFAULT_BASE_URL = "https://example.com"


@dataclass
class FetchConfig:
    """Configuration for upstream HTTP requests."""

    timeout: float | None = 30
    user_agent: str = DEFAULT_USER_AGENT


@dataclass
class MetricsConfig:
    """Configuration for CloudWatch metrics."""

    enabled: bool = False
    namespace: str = "Advisory-Feeds"
    region: str = "us-east-1"


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Main configuration manager."""

    def __init__(self):
        """Initialize configuration from environment variables.

        Raises:
            ValueError: If a variable holds an unsupported value
        """
        self.feed_source = os.getenv("FEED_SOURCE", "").strip() or None
        self.base_url = os.getenv("FEED_BASE_URL", "").strip() or None
        self.default_format = os.getenv("DEFAULT_FEED_FORMAT", "atom").strip().lower()
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.aws_region = os.getenv(
            "CURRENT_AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")
        )

        if self.default_format not in RENDERERS:
            raise ValueError(
                f"DEFAULT_FEED_FORMAT must be one of {sorted(RENDERERS)}, "
                f"got {self.default_format!r}"
            )

        timeout = os.getenv("FETCH_TIMEOUT", "30").strip()
        try:
            self.fetch_timeout = float(timeout) if timeout else None
        except ValueError as e:
            raise ValueError(f"Invalid FETCH_TIMEOUT: {timeout!r}") from e
        # zero or negative disables the timeout
        if self.fetch_timeout is not None and self.fetch_timeout <= 0:
            self.fetch_timeout = None

        self.user_agent = os.getenv("FETCH_USER_AGENT", DEFAULT_USER_AGENT)
        self.metrics_enabled = _env_flag("CLOUDWATCH_METRICS_ENABLED")
        self.metrics_namespace = os.getenv("METRICS_NAMESPACE", "Advisory-Feeds")

    def get_fetch_config(self) -> FetchConfig:
        """Get upstream fetch configuration."""
        return FetchConfig(timeout=self.fetch_timeout, user_agent=self.user_agent)

    def get_metrics_config(self) -> MetricsConfig:
        """Get CloudWatch metrics configuration."""
        return MetricsConfig(
            enabled=self.metrics_enabled,
            namespace=self.metrics_namespace,
            region=self.aws_region,
        )

    def resolve_base_url(self, request_url: str | None = None) -> str:
        """Public URL of this handler: configured, from the request, or a default."""
        return self.base_url or request_url or DEFAULT_BASE_URL
