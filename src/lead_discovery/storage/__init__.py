"""
Storage package: SQLAlchemy-backed configuration provider and lead sink.
"""

from .store import SqlLeadStore

__all__ = ["SqlLeadStore"]
