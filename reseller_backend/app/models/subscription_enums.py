"""
Subscription enumerations.
"""

import enum


class ServiceType(str, enum.Enum):
    """Subscribed service."""
    STOCK = "STOCK"
    COIN = "COIN"
    COIN_FUTURES = "COIN_FUTURES"


class SubscriptionStatus(str, enum.Enum):
    """Subscription status enumeration."""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"  # End date passed or manually closed
