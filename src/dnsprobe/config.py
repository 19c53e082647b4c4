"""
Configuration management for dnsprobe.

Loads resolver and timeout settings from environment variables or a .env file.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


# Check common locations for .env
ENV_LOCATIONS = [
    Path.home() / ".dnsprobe" / ".env",
    Path.home() / ".config" / "dnsprobe" / ".env",
    Path.cwd() / ".env",
]


def load_env_file() -> Path | None:
    """Load the first .env file found, returning its path."""
    for env_path in ENV_LOCATIONS:
        if env_path.exists():
            load_dotenv(env_path)
            return env_path
    return None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name, "")
    try:
        return float(value) if value else default
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    try:
        return int(value) if value else default
    except ValueError:
        return default


@dataclass
class ProbeConfig:
    """Resolver configuration with timeouts and endpoints."""

    # Per-operation timeout in seconds (UDP receive and HTTP request)
    timeout: float = 3.0

    # DoH-JSON endpoint used by single-resolver lookups
    doh_url: str = ""

    # Optional JSON file replacing the built-in resolver catalog
    resolvers_file: str = ""

    # Resolvers evaluated concurrently during a propagation check
    max_workers: int = 1

    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "ProbeConfig":
        """Load configuration from environment variables."""
        load_env_file()
        return cls(
            timeout=_env_float("DNSPROBE_TIMEOUT", 3.0),
            doh_url=os.getenv("DNSPROBE_DOH_URL", ""),
            resolvers_file=os.getenv("DNSPROBE_RESOLVERS_FILE", ""),
            max_workers=max(1, _env_int("DNSPROBE_MAX_WORKERS", 1)),
            log_level=os.getenv("DNSPROBE_LOG_LEVEL", "WARNING").upper(),
        )


# Global config instance
_config: ProbeConfig | None = None


def get_config() -> ProbeConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = ProbeConfig.from_env()
    return _config


def set_config(config: ProbeConfig | None) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
