"""
SQLAlchemy engine and session factory for the auth tables.

Stores open a short-lived session per operation:

    with SessionLocal() as db:
        user = db.get(User, user_id)
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import Config


engine = create_engine(
    Config.DATABASE_URL,
    pool_pre_ping=True,
    pool_size=Config.DB_POOL_SIZE,
    max_overflow=Config.DB_MAX_OVERFLOW,
    echo=Config.DB_ECHO,
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

# Declarative base shared by db.models
Base = declarative_base()
