"""Read-only view of the platform's user tree."""

import json
from dataclasses import asdict, dataclass, field

from src.dr_common.enums import UserType


@dataclass(frozen=True)
class OrgNode:
    user_id: str
    parent_user_id: str | None
    user_type: str      # UserType value
    is_active: bool = True

    @property
    def is_agent(self) -> bool:
        return self.user_type == UserType.AGENT

    @property
    def is_sub_account(self) -> bool:
        return self.user_type == UserType.BUYER_SUB


@dataclass
class OrgSnapshot:
    nodes: dict[str, OrgNode] = field(default_factory=dict)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self.nodes

    def get(self, user_id: str) -> OrgNode | None:
        return self.nodes.get(user_id)

    def to_json(self) -> str:
        return json.dumps([asdict(n) for n in self.nodes.values()])

    @classmethod
    def from_json(cls, raw: str) -> "OrgSnapshot":
        return cls(nodes={d["user_id"]: OrgNode(**d) for d in json.loads(raw)})

    @classmethod
    def from_nodes(cls, nodes: list[OrgNode]) -> "OrgSnapshot":
        return cls(nodes={n.user_id: n for n in nodes})


@dataclass(frozen=True)
class ChargeAccount:
    """Where a user's consumption is billed.

    `routed` is True when a sub account is billed on its main account; only
    routed debits may push the main account below zero.
    """
    request_user_id: str
    charge_user_id: str
    routed: bool
