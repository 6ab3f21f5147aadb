"""Utility modules for UpdateBot Push."""

from .logger import setup_logger, get_logger
from .config import load_config, Config

__all__ = ["load_config", "Config", "setup_logger", "get_logger"]
