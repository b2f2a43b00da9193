"""
Kernel layer: persisted state shared by the engines.

Mastery records are the only durable state; practice sessions live in memory
and are discarded on exit.
"""

from practice_engine.kernel.models import Base, MasteryRecord

__all__ = [
    "Base",
    "MasteryRecord",
]
