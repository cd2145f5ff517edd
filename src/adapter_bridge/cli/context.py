"""
CLI context for Adapter Bridge.

This module provides the context object that is passed to all CLI commands,
containing the configuration and a factory for the service client.
"""

from dataclasses import dataclass, field
from pathlib import Path

from adapter_bridge.client.base_client import BaseAPIClient
from adapter_bridge.config import AdapterConfig, load_config_from_yaml
from adapter_bridge.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


@dataclass
class AdapterContext:
    """
    Context object for CLI commands.

    Attributes:
        config_path: Path to configuration file
        log_level: Console log level from the command line, if given
        log_file: Log file path from the command line, if given
        config: Loaded adapter configuration
    """

    config_path: Path | None = None
    log_level: str | None = None
    log_file: Path | None = None

    # Lazy-loaded attributes
    _config: AdapterConfig | None = field(default=None, init=False, repr=False)

    @property
    def config(self) -> AdapterConfig:
        """Get or load adapter configuration."""
        if self._config is None:
            if self.config_path is None:
                raise ValueError(
                    "Configuration file path not provided. "
                    "Use --config option or set ADAPTER_BRIDGE_CONFIG environment variable."
                )

            logger.debug("loading_configuration", config_path=str(self.config_path))
            self._config = load_config_from_yaml(self.config_path)
            self.apply_logging_config(self._config)

        return self._config

    def apply_logging_config(self, config: AdapterConfig) -> None:
        """Reconfigure logging from the config file; command-line flags win."""
        settings = config.logging
        log_file = self.log_file or (Path(settings.file) if settings.file else None)
        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)

        configure_logging(
            level=self.log_level or settings.level,
            log_format=settings.format,
            log_file=str(log_file) if log_file else None,
            file_level=settings.file_level,
        )

    def create_client(self) -> BaseAPIClient:
        """Create a client for the configured service; the caller closes it."""
        service = self.config.service
        logger.debug("creating_client", url=service.url)
        return BaseAPIClient(
            base_url=service.url,
            token=service.token,
            verify_ssl=service.verify_ssl,
            timeout=service.timeout,
            rate_limit=self.config.performance.rate_limit,
            max_connections=self.config.performance.http_max_connections,
            max_keepalive_connections=self.config.performance.http_max_keepalive_connections,
            log_payloads=self.config.logging.log_payloads,
            max_payload_size=self.config.logging.max_payload_size,
        )
