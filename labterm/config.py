"""Centralized configuration for LabTerm.

All settings are loaded from environment variables with sensible defaults.
Use a .env file or export variables before running.

Example:
    export LABTERM_SSH_PORT=2222
    export LABTERM_REQUIRE_METERPRETER_SESSION=true
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _get_env(key: str, default: str) -> str:
    """Get environment variable with fallback."""
    return os.environ.get(key, default)


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer with fallback."""
    try:
        return int(os.environ.get(key, str(default)))
    except ValueError:
        return default


def _get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean with fallback."""
    val = os.environ.get(key, "").lower()
    if val in ("true", "1", "yes", "on"):
        return True
    if val in ("false", "0", "no", "off"):
        return False
    return default


# Base paths
PROJECT_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = PROJECT_ROOT / "data"


@dataclass
class SSHConfig:
    """SSH training terminal configuration."""

    host: str = field(default_factory=lambda: _get_env("LABTERM_SSH_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _get_env_int("LABTERM_SSH_PORT", 2222))
    host_key_path: Path = field(
        default_factory=lambda: Path(
            _get_env("LABTERM_HOST_KEY", str(DATA_DIR / "host.key"))
        )
    )
    banner: str = field(
        default_factory=lambda: _get_env(
            "LABTERM_SSH_BANNER", "SSH-2.0-OpenSSH_9.2p1 Debian-2"
        )
    )
    # Empty means any password is accepted
    password: str = field(default_factory=lambda: _get_env("LABTERM_SSH_PASSWORD", ""))
    idle_timeout: int = field(
        default_factory=lambda: _get_env_int("LABTERM_SSH_IDLE_TIMEOUT", 900)
    )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: _get_env("LABTERM_LOG_LEVEL", "INFO"))
    format: str = field(
        default_factory=lambda: _get_env(
            "LABTERM_LOG_FORMAT",
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
    )
    file: Optional[Path] = field(
        default_factory=lambda: (
            Path(_get_env("LABTERM_LOG_FILE", ""))
            if _get_env("LABTERM_LOG_FILE", "")
            else None
        )
    )


@dataclass
class LabConfig:
    """Simulated workstation configuration."""

    hostname: str = field(default_factory=lambda: _get_env("LABTERM_HOSTNAME", "kali"))
    username: str = field(default_factory=lambda: _get_env("LABTERM_USERNAME", "student"))
    home: str = field(default_factory=lambda: _get_env("LABTERM_HOME", "/home/student"))
    require_meterpreter_session: bool = field(
        default_factory=lambda: _get_env_bool(
            "LABTERM_REQUIRE_METERPRETER_SESSION", False
        )
    )
    max_sessions: int = field(
        default_factory=lambda: _get_env_int("LABTERM_MAX_SESSIONS", 500)
    )


@dataclass
class MetricsConfig:
    """Prometheus endpoint configuration."""

    enabled: bool = field(
        default_factory=lambda: _get_env_bool("LABTERM_METRICS_ENABLED", False)
    )
    host: str = field(
        default_factory=lambda: _get_env("LABTERM_METRICS_HOST", "0.0.0.0")
    )
    port: int = field(default_factory=lambda: _get_env_int("LABTERM_METRICS_PORT", 9090))


@dataclass
class Config:
    """Main configuration container."""

    ssh: SSHConfig = field(default_factory=SSHConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    lab: LabConfig = field(default_factory=LabConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)

    # Paths
    project_root: Path = PROJECT_ROOT
    data_dir: Path = DATA_DIR


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    Creates a new instance if one doesn't exist.
    Configuration is loaded from environment variables.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Force reload of configuration from environment.

    Useful for testing or dynamic reconfiguration.
    """
    global _config
    _config = Config()
    return _config


# Convenience exports
def get_ssh_config() -> SSHConfig:
    """Get SSH configuration."""
    return get_config().ssh


def get_logging_config() -> LoggingConfig:
    """Get logging configuration."""
    return get_config().logging


def get_lab_config() -> LabConfig:
    """Get simulated workstation configuration."""
    return get_config().lab


def get_metrics_config() -> MetricsConfig:
    """Get metrics endpoint configuration."""
    return get_config().metrics
