"""
Core module - Contains configuration, logging, and the auth components.
"""

from timeauth.core.config import AuthConfig
from timeauth.core.logging import get_secure_logger, SecureLogFilter

__all__ = ["AuthConfig", "get_secure_logger", "SecureLogFilter"]
