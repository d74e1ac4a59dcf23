"""
Models package — export all SQLAlchemy models.
"""

from cardtrends.models.base import Base
from cardtrends.models.trend_snapshot import TrendSnapshot, TrendSnapshotItem

__all__ = ["Base", "TrendSnapshot", "TrendSnapshotItem"]
