"""Actor types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ActorRole(str, Enum):
    ADMIN = "admin"
    STEWARD = "steward"
    PRODUCER = "producer"
    CONSUMER = "consumer"


SYSTEM_ACTOR_ID = "system"


@dataclass(frozen=True, slots=True)
class Actor:
    """
    The authenticated user behind a workflow action.

    Authentication itself happens upstream; the service only needs an id
    and display name to attribute comments and decisions.
    """
    id: str
    display_name: str = ""
    role: ActorRole = ActorRole.STEWARD

    @property
    def name(self) -> str:
        return self.display_name or self.id

    @property
    def is_reviewer(self) -> bool:
        return self.role in (ActorRole.ADMIN, ActorRole.STEWARD)

    @property
    def is_system(self) -> bool:
        return self.id == SYSTEM_ACTOR_ID

    @classmethod
    def system(cls) -> Actor:
        """Author of automated comments (escalations, auto-approvals)."""
        return cls(id=SYSTEM_ACTOR_ID, display_name="Approval Workflow", role=ActorRole.ADMIN)

    @classmethod
    def anonymous(cls) -> Actor:
        return cls(id="anonymous", display_name="Anonymous", role=ActorRole.CONSUMER)

    def __str__(self) -> str:
        return self.name
