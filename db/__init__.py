"""
Database module for the CandiDash auth server.

Provides SQLAlchemy models and the engine for PostgreSQL persistence.
"""

from db.engine import engine, SessionLocal, Base

__all__ = ["engine", "SessionLocal", "Base"]
