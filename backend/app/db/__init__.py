from .base import Base
from .session import (
    dispose_engine,
    get_db,
    get_engine,
    get_sessionmaker,
    init_db,
)

__all__ = [
    "Base",
    "dispose_engine",
    "get_db",
    "get_engine",
    "get_sessionmaker",
    "init_db",
]
