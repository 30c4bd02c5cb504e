"""
User API controllers.
"""

from ethics_backend.users.api.auth import AuthController

__all__ = ["AuthController"]
