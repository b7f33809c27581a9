"""
Users module - Marketplace user profiles (students and company members).
"""

from studieo.modules.users.models import User, UserRole
from studieo.modules.users.repository import UserRepository

__all__ = ["User", "UserRole", "UserRepository"]
