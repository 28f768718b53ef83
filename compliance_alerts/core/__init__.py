"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    async_session_factory,
    build_engine,
    close_db,
    engine,
    get_session,
    init_db,
)
from .dependencies import (
    CurrentUser,
    CurrentUserDep,
    SessionDep,
    StaffDep,
    get_current_user,
    require_staff,
)
from .security import (
    create_access_token,
    decode_token,
    hash_content,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "async_session_factory",
    "build_engine",
    "get_session",
    "init_db",
    "close_db",
    # Dependencies
    "CurrentUser",
    "get_current_user",
    "require_staff",
    "CurrentUserDep",
    "StaffDep",
    "SessionDep",
    # Security
    "create_access_token",
    "decode_token",
    "hash_content",
]
