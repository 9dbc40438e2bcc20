from .user import User, UserRole
from .board import BoardMember
from .supporter import Supporter


__all__ = ["User", "UserRole", "BoardMember", "Supporter"]
