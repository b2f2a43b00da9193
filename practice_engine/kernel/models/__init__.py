"""
Kernel Data Models

SQLAlchemy models persisted by the practice engine.
"""

from practice_engine.kernel.models.base import Base, TimestampMixin, generate_uuid
from practice_engine.kernel.models.mastery import MasteryRecord

__all__ = [
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "MasteryRecord",
]
