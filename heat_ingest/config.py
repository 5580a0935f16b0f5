"""Configuration loading for the ingest service and the web API."""

import copy
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yml"

DEFAULT_CONFIG = {
    "incoming": {
        "incoming_dir": "/app/data_incoming",
        "archived_dir": "/app/data_archived",
        "quarantine_dir": "/app/data_quarantine",
        "process_existing": True,
    },
    "storage": {
        "backend": "local",
        "base_path": "/app/data",
        "signed_url_expiry_seconds": 3600,
    },
    "database": {
        "url": None,
        "connect_timeout": 10,
    },
    "logging": {
        "level": "INFO",
    },
    "visualization": {
        "scale": "fine",
        "preview_rows": 5,
    },
}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> dict:
    """
    Load configuration from a YAML file on top of the defaults.

    Parameters
    ----------
    config_path : str, optional
        Path to the configuration file. Defaults to $HEAT_INGEST_CONFIG,
        then "config.yml". A missing file yields the defaults.

    Returns
    -------
    dict
        Configuration dictionary. DATABASE_URL and LOG_LEVEL from the
        environment take precedence over the file.
    """
    path = Path(config_path or os.getenv("HEAT_INGEST_CONFIG", DEFAULT_CONFIG_PATH))

    file_config = {}
    if path.exists():
        logger.info(f"Loading configuration from: {path}")
        with open(path, "r") as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
    else:
        logger.info(f"No configuration file at {path}, using defaults")

    config = _merge(DEFAULT_CONFIG, file_config)

    if os.getenv("DATABASE_URL"):
        config["database"]["url"] = os.getenv("DATABASE_URL")
    if os.getenv("LOG_LEVEL"):
        config["logging"]["level"] = os.getenv("LOG_LEVEL")
    return config


def configure_logging(config: dict) -> None:
    level_name = str(config.get("logging", {}).get("level", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
