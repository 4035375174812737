"""
Settlement enumerations.
"""

import enum


class SettlementStatus(str, enum.Enum):
    """Settlement status enumeration."""
    CONFIRMED = "CONFIRMED"  # Created by a settlement run, payout owed
    PAID = "PAID"  # Payout recorded by an operator (terminal)
