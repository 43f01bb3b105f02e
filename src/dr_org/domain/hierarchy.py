"""Pure tree queries over an OrgSnapshot.

Every walk keeps a visited set and a hard depth cap so a corrupted parent
chain (cycle or runaway depth) terminates instead of looping.
"""

import logging

from src.dr_common.enums import UserType
from src.dr_common.errors import ValidationError
from src.dr_org.domain.models import ChargeAccount, OrgSnapshot

logger = logging.getLogger(__name__)

MAX_WALK_DEPTH = 30


def find_parent_id(snapshot: OrgSnapshot, user_id: str) -> str | None:
    node = snapshot.get(user_id)
    return node.parent_user_id if node else None


def find_descendant_ids(snapshot: OrgSnapshot, user_id: str) -> list[str]:
    """All users below `user_id`, breadth first, excluding `user_id` itself."""
    children: dict[str, list[str]] = {}
    for node in snapshot.nodes.values():
        if node.parent_user_id is not None:
            children.setdefault(node.parent_user_id, []).append(node.user_id)

    result: list[str] = []
    visited = {user_id}
    frontier = [user_id]
    depth = 0
    while frontier and depth < MAX_WALK_DEPTH:
        next_frontier: list[str] = []
        for uid in frontier:
            for child in sorted(children.get(uid, [])):
                if child not in visited:
                    visited.add(child)
                    result.append(child)
                    next_frontier.append(child)
        frontier = next_frontier
        depth += 1
    return result


def find_agent_ancestors(
    snapshot: OrgSnapshot, user_id: str, max_levels: int = 3
) -> list[str]:
    """Agent ancestors of `user_id`, nearest first (index 0 = level 1).

    Non-agent ancestors (e.g. a buyer's main account) are walked through but
    not counted. Inactive agents are skipped without consuming a level.
    """
    agents: list[str] = []
    visited = {user_id}
    current = find_parent_id(snapshot, user_id)
    steps = 0
    while current is not None and len(agents) < max_levels:
        steps += 1
        if current in visited or steps > MAX_WALK_DEPTH:
            logger.warning(
                "Aborting ancestor walk for %s at %s (cycle or depth cap)", user_id, current
            )
            break
        visited.add(current)
        node = snapshot.get(current)
        if node is None:
            break
        if node.is_agent and node.is_active:
            agents.append(current)
        current = node.parent_user_id
    return agents


def resolve_charge_account(snapshot: OrgSnapshot, user_id: str) -> ChargeAccount:
    """Main accounts are billed on themselves; sub accounts on their main parent."""
    node = snapshot.get(user_id)
    if node is None or not node.is_sub_account:
        return ChargeAccount(request_user_id=user_id, charge_user_id=user_id, routed=False)

    parent = snapshot.get(node.parent_user_id) if node.parent_user_id else None
    if parent is None or parent.user_type != UserType.BUYER_MAIN:
        raise ValidationError(f"Sub account {user_id} has no main account to bill")
    return ChargeAccount(
        request_user_id=user_id, charge_user_id=parent.user_id, routed=True
    )
