"""
Configuration management for the exporter.
"""

import os
import sys
import copy
import json
from pathlib import Path
import logging

# Default configuration
DEFAULT_CONFIG = {
    "export": {
        "compression": 0,
        "dataset_name": "exported_data",
        "chunk_divisor": 8,
        "overwrite": False,
        "write_axistags": True
    },
    "logging": {
        "debug": False,
        "log_to_file": True
    },
    "recent_files": {
        "input": [],
        "output": []
    }
}

MAX_RECENT_FILES = 10


def get_config_path(custom_path=None):
    """Get the path to the configuration file."""
    if custom_path:
        return Path(custom_path)

    if sys.platform == 'win32':
        config_dir = Path(os.path.expandvars('%APPDATA%')) / "ilastik_h5export"
    else:
        config_dir = Path(os.path.expanduser('~')) / ".ilastik_h5export"

    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir / "config.json"


def load_config(custom_path=None):
    """Load configuration from file or return default if file doesn't exist."""
    logger = logging.getLogger('ilastik_h5export')
    config_path = get_config_path(custom_path)

    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                loaded_config = json.load(f)

            _recursive_update(config, loaded_config)
            logger.info(f"Configuration loaded from {config_path}")
        except (OSError, ValueError) as e:
            logger.error(f"Error loading configuration: {e}")
            logger.info("Using default configuration")
            config = copy.deepcopy(DEFAULT_CONFIG)
    else:
        logger.debug(f"Configuration file not found at {config_path}, using defaults")

    return config


def save_config(config, custom_path=None):
    """Save configuration to file."""
    logger = logging.getLogger('ilastik_h5export')
    config_path = get_config_path(custom_path)

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=4)
        logger.info(f"Configuration saved to {config_path}")
        return True
    except OSError as e:
        logger.error(f"Error saving configuration: {e}")
        return False


def _recursive_update(d, u):
    """Recursively update a nested dictionary."""
    for k, v in u.items():
        if isinstance(v, dict) and k in d and isinstance(d[k], dict):
            _recursive_update(d[k], v)
        else:
            d[k] = v


def add_recent_file(config, kind, path):
    """Put a path at the front of a recent files list."""
    recent = config["recent_files"].setdefault(kind, [])
    path = str(path)
    if path in recent:
        recent.remove(path)
    recent.insert(0, path)
    del recent[MAX_RECENT_FILES:]
    return recent


def reset_to_defaults(custom_path=None):
    """Reset configuration to defaults."""
    logger = logging.getLogger('ilastik_h5export')
    config_path = get_config_path(custom_path)

    try:
        with open(config_path, 'w') as f:
            json.dump(DEFAULT_CONFIG, f, indent=4)
        logger.info("Configuration reset to defaults")
    except OSError as e:
        logger.error(f"Error resetting configuration: {e}")
    return copy.deepcopy(DEFAULT_CONFIG)
