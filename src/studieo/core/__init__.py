"""
Core module - Configuration, database, security, and external collaborators.
"""

from studieo.core.config import get_settings, settings
from studieo.core.database import Base, close_db, get_db, init_db
from studieo.core.redis import close_redis, get_redis, init_redis
from studieo.core.security import create_access_token, decode_token

__all__ = [
    # Config
    "settings",
    "get_settings",
    # Database
    "Base",
    "get_db",
    "init_db",
    "close_db",
    # Redis
    "get_redis",
    "init_redis",
    "close_redis",
    # Security
    "create_access_token",
    "decode_token",
]
