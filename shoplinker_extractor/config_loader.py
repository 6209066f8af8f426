"""Configuration loader for the Shoplinker product extractor."""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default locations.

    Returns:
        Dictionary with configuration values.
    """
    # Credentials usually live in .env
    load_dotenv()

    if config_path is None:
        locations = [
            "config.yaml",
            "config.yml",
            "../config.yaml",
            "../config.yml",
        ]
        for loc in locations:
            if Path(loc).exists():
                config_path = loc
                break

    if config_path is None or not Path(config_path).exists():
        raise FileNotFoundError("Configuration file not found. Please provide config.yaml")

    with open(config_path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    return _substitute_env_vars(config)


def _substitute_env_vars(obj: Any) -> Any:
    """Recursively substitute environment variables in config.

    Supports syntax: ${VAR_NAME} or ${VAR_NAME:default_value}
    """
    if isinstance(obj, dict):
        return {k: _substitute_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_substitute_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return _substitute_env_string(obj)
    else:
        return obj


def _substitute_env_string(value: str) -> str:
    """Substitute environment variables in a string."""
    pattern = r'\$\{([^}]+)\}'

    def replace(match):
        var_expr = match.group(1)
        if ':' in var_expr:
            var_name, default = var_expr.split(':', 1)
            return os.getenv(var_name, default)
        else:
            return os.getenv(var_expr, match.group(0))

    return re.sub(pattern, replace, value)


def get_site_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get console addresses and timeouts."""
    return config.get("site", {}) or {}


def get_credentials(config: Dict[str, Any]) -> Dict[str, str]:
    """Get login credentials (opaque strings, usually from .env)."""
    creds = config.get("credentials", {}) or {}
    return {
        "user_id": str(creds.get("user_id") or os.getenv("SHOP_LINKER_ID", "")),
        "password": str(creds.get("password") or os.getenv("SHOP_LINKER_PW", "")),
    }


def get_scraping_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get scraping configuration."""
    return config.get("scraping", {}) or {}


def get_storage_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Get storage configuration."""
    return config.get("storage", {}) or {}


def get_delay_ms(config: Dict[str, Any], key: str, default: int) -> int:
    """Get a settle delay in milliseconds from scraping.delays."""
    delays = get_scraping_config(config).get("delays", {})
    if not isinstance(delays, dict):
        return default
    try:
        return max(0, int(delays.get(key, default)))
    except (TypeError, ValueError):
        return default


def get_frame_patterns(config: Dict[str, Any], name: str) -> Dict[str, List[str]]:
    """Get include/exclude URL substrings for a named sub-document."""
    frames = get_scraping_config(config).get("frames", {})
    pattern = frames.get(name, {}) if isinstance(frames, dict) else {}
    if not isinstance(pattern, dict):
        pattern = {}
    return {
        "include": [str(p) for p in pattern.get("include", []) or []],
        "exclude": [str(p) for p in pattern.get("exclude", []) or []],
    }


def ensure_directories(config: Dict[str, Any]):
    """Ensure all required directories exist."""
    storage = get_storage_config(config)

    output_csv = storage.get("output_csv", "output.csv")
    Path(output_csv).parent.mkdir(parents=True, exist_ok=True)

    images_dir = storage.get("images_dir", "images")
    Path(images_dir).mkdir(parents=True, exist_ok=True)

    log_path = config.get("logging", {}).get("file", "data/logs/extractor.log")
    Path(log_path).parent.mkdir(parents=True, exist_ok=True)
