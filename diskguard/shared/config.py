"""Configuration loading utilities."""

import os
from pathlib import Path
from typing import Optional, Union

import yaml
from dotenv import load_dotenv

_TRUE_VALUES = {"1", "true", "yes", "on"}


def get_environment() -> str:
    """Get the current environment name.

    Returns:
        Environment name from DISKGUARD_ENV, defaults to 'default'.
    """
    return os.getenv("DISKGUARD_ENV", "default")


def get_config_path(
    config_name: Optional[str] = None,
    config_dir: Optional[Union[str, Path]] = None,
) -> Path:
    """Get path to a configuration file.

    Args:
        config_name: Name of config file (without path). If None, uses
            config-{environment}.yaml based on DISKGUARD_ENV.
        config_dir: Directory containing config files. If None, uses
            the 'config' directory in the current working directory.

    Returns:
        Path to the configuration file.
    """
    if config_dir is None:
        config_dir = Path.cwd() / "config"

    config_dir = Path(config_dir)

    if config_name is None:
        env = get_environment()
        config_name = f"config-{env}.yaml"

    return config_dir / config_name


def load_yaml_config(
    config_path: Optional[Union[str, Path]] = None,
    load_env: bool = True,
) -> dict:
    """Load YAML configuration file.

    Args:
        config_path: Path to config file. If None, uses get_config_path().
        load_env: Whether to load .env file first.

    Returns:
        Configuration dictionary.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        yaml.YAMLError: If config file is invalid YAML.
    """
    if load_env:
        load_dotenv()

    if config_path is None:
        config_path = get_config_path()
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def env_flag(value: str) -> bool:
    """Interpret an environment variable string as a boolean."""
    return value.strip().lower() in _TRUE_VALUES

