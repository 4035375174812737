"""
Account roles enumeration.

Defines the role types of the reseller hierarchy.
"""

import enum


class AccountRole(str, enum.Enum):
    """
    Account role enumeration.

    Roles (tree order):
        MASTER: Root operator, sees and settles everything
        DISTRIBUTOR: Earns a daily-rate commission on its subordinates' usage
        AGENCY: Groups users under a distributor
        USER: Subscriber whose usage days are billed (default role)
    """
    MASTER = "MASTER"
    DISTRIBUTOR = "DISTRIBUTOR"
    AGENCY = "AGENCY"
    USER = "USER"
