"""
HR Onboarding Bot package initialization.
"""
from hrbot.config import settings
from hrbot.logger import configure_logging, get_logger

__all__ = ["settings", "configure_logging", "get_logger"]
