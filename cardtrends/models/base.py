"""
SQLAlchemy 2.0 async DeclarativeBase for the market trends store.

All models inherit from this Base.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all market trends database models."""
    pass
