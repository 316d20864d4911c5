"""
Server manager configuration.

Handles loading, saving, and validating the settings that drive the
manager: which services exist, where the job ledger lives, how many jobs
it keeps, and whether privileged commands go through sudo.
"""

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional, Dict, List, Any

from dotenv import load_dotenv

from config import get_config

load_dotenv()

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "SERVER_MANAGER_CONFIG"


class ConfigError(Exception):
    """Raised when the configuration file cannot be used."""
    pass


@dataclass
class ServiceConfig:
    """A managed systemd service."""
    key: str  # short name used on the command line, e.g. 'sunshine'
    unit: str  # systemd unit, e.g. 'sunshine.service'
    label: str  # menu label, e.g. 'Sunshine'
    post_start: List[str] = field(default_factory=list)  # run after starting


def _default_services() -> Dict[str, ServiceConfig]:
    return {
        'sunshine': ServiceConfig(key='sunshine', unit='sunshine.service', label='Sunshine'),
        'tailscale': ServiceConfig(
            key='tailscale',
            unit='tailscaled.service',
            label='Tailscale',
            post_start=['tailscale', 'up']
        ),
    }


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None  # Set dynamically in __post_init__

    def __post_init__(self):
        if self.file is None:
            self.file = str(get_config().log_file)


class ManagerConfig:
    """
    Server manager configuration.

    Configuration path priority:
    1. Explicit config_path argument
    2. SERVER_MANAGER_CONFIG environment variable
    3. Default: <data_dir>/manager.json
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses env var or default.

        Raises:
            ConfigError: If the file exists but cannot be parsed
        """
        if config_path:
            self.config_path = Path(config_path).expanduser()
        elif os.environ.get(ENV_CONFIG_PATH):
            self.config_path = Path(os.environ[ENV_CONFIG_PATH]).expanduser()
        else:
            self.config_path = get_config().manager_file

        self.job_file: str = str(get_config().jobs_file)
        self.max_jobs: int = 2
        self.use_sudo: bool = True
        self.exclusive_schedule: bool = False
        self.command_timeout: int = 60
        self.services: Dict[str, ServiceConfig] = _default_services()
        self.logging: LoggingConfig = LoggingConfig()

        if self.config_path.exists():
            self.load()
        else:
            logger.debug(f"No config found at {self.config_path}, using defaults")

    def load(self):
        """Load configuration from JSON file."""
        try:
            with open(self.config_path, 'r') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load config from {self.config_path}: {e}")
            raise ConfigError(f"Failed to load config from {self.config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {self.config_path} must contain a JSON object")

        try:
            self.job_file = data.get('job_file', self.job_file)
            self.max_jobs = int(data.get('max_jobs', self.max_jobs))
            self.use_sudo = bool(data.get('use_sudo', self.use_sudo))
            self.exclusive_schedule = bool(data.get('exclusive_schedule', self.exclusive_schedule))
            self.command_timeout = int(data.get('command_timeout', self.command_timeout))

            if 'services' in data:
                self.services = {
                    key: ServiceConfig(
                        key=key,
                        unit=svc['unit'],
                        label=svc.get('label', key.capitalize()),
                        post_start=list(svc.get('post_start', []))
                    )
                    for key, svc in data['services'].items()
                }

            if 'logging' in data:
                self.logging = LoggingConfig(**data['logging'])
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigError(f"Invalid config in {self.config_path}: {e}") from e

        logger.info(f"Loaded configuration from {self.config_path}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'job_file': self.job_file,
            'max_jobs': self.max_jobs,
            'use_sudo': self.use_sudo,
            'exclusive_schedule': self.exclusive_schedule,
            'command_timeout': self.command_timeout,
            'services': {
                key: {
                    'unit': svc.unit,
                    'label': svc.label,
                    'post_start': svc.post_start
                }
                for key, svc in self.services.items()
            },
            'logging': asdict(self.logging)
        }

    def save(self):
        """Save configuration to JSON file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.config_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

        logger.info(f"Saved configuration to {self.config_path}")

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.max_jobs < 1:
            errors.append("'max_jobs' must be at least 1")
        if self.command_timeout <= 0:
            errors.append("'command_timeout' must be positive")
        if not self.services:
            errors.append("at least one service must be configured")

        for key, svc in self.services.items():
            if not svc.unit or not svc.unit.strip():
                errors.append(f"Service {key}: 'unit' cannot be empty")
            if not isinstance(svc.post_start, list):
                errors.append(f"Service {key}: 'post_start' must be a list of arguments")

        if self.logging.level.upper() not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            errors.append(f"Unknown logging level: {self.logging.level}")

        return errors

    def __repr__(self):
        return f"ManagerConfig(services={len(self.services)}, path={self.config_path})"
