"""
Mastery Engine - durable record of practice outcomes.

One record per (user, module, section): attempt count, best score (never
decreases) and the most recent result.
"""

from practice_engine.engines.mastery.ledger import (
    BestScore,
    MasteryLedger,
    MasteryRecordView,
    PracticeSummary,
)

__all__ = [
    "BestScore",
    "MasteryLedger",
    "MasteryRecordView",
    "PracticeSummary",
]
