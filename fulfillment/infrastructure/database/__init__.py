# Database infrastructure
from .config import (
    DatabaseSettings,
    build_session_factory,
    close_database,
    create_engine,
    get_engine,
    get_session_factory,
    init_database,
)

__all__ = [
    "DatabaseSettings",
    "build_session_factory",
    "close_database",
    "create_engine",
    "get_engine",
    "get_session_factory",
    "init_database",
]
