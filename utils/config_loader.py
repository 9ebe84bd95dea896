#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Config Loader

- Loads the monitor's YAML configuration file
- A missing file is not an error: callers fall back to defaults + environment
"""

from pathlib import Path
from typing import Dict, Any, Optional
import yaml

from utils.logger import get_logger


def load_config(path: str, logger: Optional[Any] = None, required: bool = True) -> Dict[str, Any]:
    """
    Load a YAML config file with structured logging.

    Args:
        path: Path to config file
        logger: Optional logger; if None, uses default config logger
        required: When False, a missing file yields an empty dict

    Returns:
        Parsed configuration dict
    """
    log = logger or get_logger("config_loader", "INFO", "config_loader.log")

    config_path = Path(path)
    if not config_path.exists():
        if not required:
            log.info("Config file %s not found; using defaults", config_path)
            return {}
        log.error("Config file not found: %s", config_path)
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with config_path.open("r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        if not isinstance(config, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        log.info("Loaded config file: %s", config_path)
        log.debug("Config contents: %s", config)

        return config
    except yaml.YAMLError as e:
        log.error("Failed to parse YAML config %s: %s", config_path, e, exc_info=True)
        raise
