"""
SQLAlchemy models for the CandiDash auth database.

All models inherit from db.engine.Base for Alembic migrations.
"""

from db.models.user import User
from db.models.auth import PendingUser, VerificationCode

__all__ = [
    # User
    "User",
    # Registration
    "PendingUser",
    "VerificationCode",
]
