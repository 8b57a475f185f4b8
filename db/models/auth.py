"""
Auth models for the registration flow.

PendingUser: registration awaiting email confirmation
VerificationCode: one outstanding 6-digit code per email
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    Text,
)

from db.engine import Base


class PendingUser(Base):
    """
    Registration staged until the emailed code is confirmed.

    The password column already holds a bcrypt hash.
    """
    __tablename__ = "pending_users"

    email = Column(String(255), primary_key=True)
    password = Column(Text, nullable=False)
    username = Column(String(255), nullable=True)
    verified = Column(Boolean, default=False)
    created_at = Column(Integer, nullable=False, index=True)  # Unix timestamp
    updated_at = Column(Integer, nullable=False)  # Unix timestamp

    def __repr__(self):
        return f"<PendingUser(email={self.email})>"


class VerificationCode(Base):
    """
    Email verification code.
    """
    __tablename__ = "verification_codes"

    email = Column(String(255), primary_key=True)
    code = Column(String(6), nullable=False)
    expires_at = Column(Integer, nullable=False, index=True)  # Unix timestamp
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(Integer, nullable=False)  # Unix timestamp
    updated_at = Column(Integer, nullable=False)  # Unix timestamp

    def __repr__(self):
        return f"<VerificationCode(email={self.email}, attempts={self.attempts})>"
