"""
In-flight optimistic mutations.

An optimistic item is shown immediately under a local identifier and then
either confirmed with the identifier the server assigned, or rolled back:

    PENDING(local_id) -> CONFIRMED(server_id)
                      -> FAILED
"""

import logging
import uuid
from dataclasses import dataclass
from dataclasses import field
from enum import Enum

from ethics_backend.client.exceptions import InvalidTransition

logger = logging.getLogger(__name__)

LOCAL_ID_PREFIX = "local-"


class MutationState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


def new_local_id() -> str:
    """Placeholder identifier that cannot collide with a server id."""
    return f"{LOCAL_ID_PREFIX}{uuid.uuid4().hex}"


def is_local_id(value: str | None) -> bool:
    return bool(value) and value.startswith(LOCAL_ID_PREFIX)


@dataclass
class PendingMutation:
    """One optimistic change waiting for the server."""

    local_id: str = field(default_factory=new_local_id)
    state: MutationState = MutationState.PENDING
    server_id: str | None = None
    error: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.state is MutationState.PENDING

    def confirm(self, server_id: str) -> None:
        self._leave_pending(MutationState.CONFIRMED)
        self.server_id = server_id

    def fail(self, error: str | None = None) -> None:
        self._leave_pending(MutationState.FAILED)
        self.error = error

    def _leave_pending(self, target: MutationState) -> None:
        if not self.is_pending:
            msg = f"Mutation {self.local_id} is already {self.state.value}, cannot move to {target.value}"
            raise InvalidTransition(msg)
        logger.debug("Mutation %s: %s -> %s", self.local_id, self.state.value, target.value)
        self.state = target
