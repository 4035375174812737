"""
Hierarchy Resolver.

Resolves which accounts bill toward a distributor. Works on an immutable
snapshot of the account tree read once per settlement run, so every
distributor in a run sees the same hierarchy.

Membership is evaluated against the current parent links. An account that
moved between agencies mid-period is attributed entirely to its current
parent.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reseller_backend.app.core.exceptions import AccountNotFoundError
from reseller_backend.app.models.account import Account
from reseller_backend.app.models.enums import AccountRole


@dataclass(frozen=True)
class AccountNode:
    id: int
    login_id: str
    name: str
    role: AccountRole
    parent_id: Optional[int] = None
    daily_rate: int = 0


@dataclass(frozen=True)
class AgencyMembers:
    agency: AccountNode
    users: Tuple[AccountNode, ...] = ()


@dataclass(frozen=True)
class Subordinates:
    """Closed set of accounts whose usage counts toward one distributor."""
    distributor: AccountNode
    direct_users: Tuple[AccountNode, ...] = ()
    agencies: Tuple[AgencyMembers, ...] = ()

    def account_ids(self) -> List[int]:
        """Every user id in the set (agencies themselves carry no usage)."""
        ids = [user.id for user in self.direct_users]
        for members in self.agencies:
            ids.extend(user.id for user in members.users)
        return ids


@dataclass(frozen=True)
class HierarchySnapshot:
    """Immutable view of the account tree.

    Usage:
        snapshot = await HierarchySnapshot.load(db)
        for distributor in snapshot.distributors():
            subs = snapshot.subordinates_of(distributor.id)
    """
    nodes: Dict[int, AccountNode] = field(default_factory=dict)
    children: Dict[int, Tuple[int, ...]] = field(default_factory=dict)

    @classmethod
    def from_nodes(cls, nodes: Iterable[AccountNode]) -> "HierarchySnapshot":
        by_id: Dict[int, AccountNode] = {}
        children: Dict[int, List[int]] = defaultdict(list)
        for node in sorted(nodes, key=lambda n: n.id):
            by_id[node.id] = node
            if node.parent_id is not None:
                children[node.parent_id].append(node.id)
        return cls(
            nodes=by_id,
            children={parent: tuple(ids) for parent, ids in children.items()},
        )

    @classmethod
    async def load(cls, db: AsyncSession) -> "HierarchySnapshot":
        """Read every account once (single query)."""
        result = await db.execute(
            select(
                Account.id,
                Account.login_id,
                Account.name,
                Account.role,
                Account.parent_id,
                Account.daily_rate,
            )
        )
        return cls.from_nodes(
            AccountNode(
                id=row.id,
                login_id=row.login_id,
                name=row.name,
                role=AccountRole(row.role),
                parent_id=row.parent_id,
                daily_rate=row.daily_rate or 0,
            )
            for row in result
        )

    def get(self, account_id: int) -> Optional[AccountNode]:
        return self.nodes.get(account_id)

    def distributors(self) -> List[AccountNode]:
        """DISTRIBUTOR accounts ordered by id."""
        return [node for node in self.nodes.values() if node.role == AccountRole.DISTRIBUTOR]

    def _children_with_role(self, parent_id: int, role: AccountRole) -> Tuple[AccountNode, ...]:
        return tuple(
            self.nodes[child_id]
            for child_id in self.children.get(parent_id, ())
            if self.nodes[child_id].role == role
        )

    def subordinates_of(self, distributor_id: int) -> Subordinates:
        """
        Resolve a distributor's direct users and agencies (with their users).

        Raises:
            AccountNotFoundError: if the id is not a DISTRIBUTOR account.
        """
        distributor = self.nodes.get(distributor_id)
        if distributor is None or distributor.role != AccountRole.DISTRIBUTOR:
            raise AccountNotFoundError(distributor_id, role="Distributor")

        agencies = tuple(
            AgencyMembers(agency=agency, users=self._children_with_role(agency.id, AccountRole.USER))
            for agency in self._children_with_role(distributor_id, AccountRole.AGENCY)
        )
        return Subordinates(
            distributor=distributor,
            direct_users=self._children_with_role(distributor_id, AccountRole.USER),
            agencies=agencies,
        )
