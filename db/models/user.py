"""
User account model.

User: authentication and identity, including refresh-token and TOTP state.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Column,
    String,
    Boolean,
    DateTime,
    Integer,
    Text,
    ARRAY,
)

from db.engine import Base


class User(Base):
    """
    User account for authentication.

    Refresh token and reset token fields are stored as digests/opaque values;
    the TOTP secret is AES-GCM ciphertext.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(255), nullable=True)
    password = Column(Text, nullable=False)
    role = Column(String(20), nullable=False, default="USER")

    refresh_token_hash = Column(String(64), nullable=True)
    refresh_token_expires = Column(Integer, nullable=True)  # Unix timestamp

    reset_password_token = Column(String(64), nullable=True, unique=True)
    reset_password_expires = Column(Integer, nullable=True)  # Unix timestamp

    totp_secret = Column(Text, nullable=True)
    totp_enabled = Column(Boolean, nullable=False, default=False)
    totp_recovery_codes = Column(ARRAY(Text), nullable=False, default=list)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"
