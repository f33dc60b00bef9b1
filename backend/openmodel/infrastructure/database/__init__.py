"""
Infrastructure Database Module.

Provides engine creation and session management.
"""

from .database import (
    Base,
    create_engine_from_settings,
    create_session_maker,
    dispose_engine,
    get_db,
    get_session_maker,
    init_models,
)

__all__ = [
    "Base",
    "create_engine_from_settings",
    "create_session_maker",
    "dispose_engine",
    "get_db",
    "get_session_maker",
    "init_models",
]
