"""
Users domain: models and the traced repository.
"""

from .models import User, CreateUserRequest
from .repository import UserRepository

__all__ = [
    "User",
    "CreateUserRequest",
    "UserRepository",
]
