"""
Infrastructure Module - Core infrastructure components.

Provides:
- database: Engine and session management
- logging: Logging configuration and utilities
"""

from openmodel.infrastructure.database import Base, get_db, get_session_maker
from openmodel.infrastructure.logging import get_logger, setup_logging

__all__ = [
    "Base",
    "get_db",
    "get_session_maker",
    "get_logger",
    "setup_logging",
]
