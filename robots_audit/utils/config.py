"""
Configuration management for the robots audit.
"""

import yaml
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

from ..audit.fetcher import DEFAULT_USER_AGENT


@dataclass
class AuditConfig:
    """Configuration for fetching and the worker pool."""
    user_agent: str = DEFAULT_USER_AGENT
    transport_timeout: float = 20
    job_timeout: float = 25
    workers: Optional[int] = None
    max_connections: int = 100


@dataclass
class WorkbookConfig:
    """Configuration for the input and output workbooks."""
    input_file: str = 'List-Link.xlsx'
    output_file: str = 'Link-List_RESULT.xlsx'
    sheet: Optional[str] = None
    link_header: str = 'Link'
    result_header: str = 'Result'


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: str = 'logs/robots_audit.log'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    json: bool = False


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    metrics_enabled: bool = False
    prometheus_port: int = 8000


@dataclass
class Config:
    """Main configuration class."""
    audit: AuditConfig = field(default_factory=AuditConfig)
    workbook: WorkbookConfig = field(default_factory=WorkbookConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


def _build_section(section_cls, data: Optional[Dict[str, Any]]):
    data = data or {}
    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown {section_cls.__name__} keys: {', '.join(sorted(unknown))}")
    return section_cls(**data)


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: str = "config.yaml"):
        self.config_path = Path(config_path)
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        with open(self.config_path, 'r') as file:
            try:
                config_data = yaml.safe_load(file) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration file must contain a mapping: {self.config_path}")

        self._config = Config(
            audit=_build_section(AuditConfig, config_data.get('audit')),
            workbook=_build_section(WorkbookConfig, config_data.get('workbook')),
            logging=_build_section(LoggingConfig, config_data.get('logging')),
            monitoring=_build_section(MonitoringConfig, config_data.get('monitoring'))
        )

        validate_config(self._config)
        return self._config

    @property
    def config(self) -> Config:
        """Get the loaded configuration."""
        if not self._config:
            raise ValueError("Configuration not loaded. Call load_config() first.")
        return self._config


def validate_config(config: Config):
    """Validate configuration values."""
    audit = config.audit

    if audit.transport_timeout <= 0 or audit.job_timeout <= 0:
        raise ValueError("transport_timeout and job_timeout must be positive")

    # The per-job deadline bounds the whole call, redirects included
    if audit.job_timeout < audit.transport_timeout:
        raise ValueError("job_timeout must be at least transport_timeout")

    if audit.workers is not None and audit.workers < 1:
        raise ValueError("workers must be at least 1 (or null for automatic sizing)")

    if audit.max_connections < 1:
        raise ValueError("max_connections must be at least 1")

    if not config.workbook.link_header.strip() or not config.workbook.result_header.strip():
        raise ValueError("link_header and result_header must not be empty")

    logging.getLogger(__name__).debug("Configuration validation passed")


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file, or the defaults when no path is given."""
    if config_path is None:
        config = Config()
        validate_config(config)
        return config
    return ConfigManager(config_path).load_config()
