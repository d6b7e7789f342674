"""
Configuration utility functions
"""

from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR = Path(__file__).resolve().parents[2] / "config" / "providers"


def resolve_config_path(filepath: str | Path) -> Path:
    """
    Resolve a config file path

    Absolute paths and paths that exist relative to the working directory are
    used as is; bare file names are looked up in config/providers/.

    Example:
        >>> resolve_config_path("databases.yaml").name
        'databases.yaml'
    """
    path = Path(filepath)
    if path.is_absolute() or path.exists():
        return path
    return CONFIG_DIR / path.name


def load_yaml(filepath: str | Path) -> dict[str, Any]:
    """
    Load YAML file and return as dictionary

    Args:
        filepath: Path to YAML file (relative, absolute or a bare file name)

    Returns:
        Dictionary with YAML data (empty dict for an empty file)

    Raises:
        FileNotFoundError: If file doesn't exist
        yaml.YAMLError: If YAML is invalid

    Example:
        >>> config = load_yaml("config/providers/streaming.yaml")
        >>> print(config['kafka']['bootstrap_servers'])
        kafka:9092
    """
    path = resolve_config_path(filepath)

    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {filepath}")

    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_yaml_safe(filepath: str | Path) -> dict[str, Any]:
    """
    Load YAML file with fallback to empty dict if file doesn't exist

    Example:
        >>> config = load_yaml_safe("config/optional.yaml")
        >>> # Returns {} if file doesn't exist
    """
    try:
        return load_yaml(filepath)
    except (FileNotFoundError, yaml.YAMLError):
        return {}
