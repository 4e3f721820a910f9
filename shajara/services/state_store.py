"""
Per-user conversational state kept in process memory.

Each user has at most one ConversationState (which flow they are in, which
step of it, and the input gathered so far). Writes are not locked: a
double-submit from the same user is resolved by whichever write lands last.
"""
import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Protocol
from shajara.errors import StateError
from shajara.models.member import RelationType

logger = logging.getLogger(__name__)

class Action(str, enum.Enum):
    ADD_MEMBER = "ADD_MEMBER"
    REMOVE_MEMBER = "REMOVE_MEMBER"
    JOIN_TREE = "JOIN_TREE"
    MERGE_TREE = "MERGE_TREE"

class Step(str, enum.Enum):
    SELECT_RELATION = "SELECT_RELATION"
    ENTER_NAME = "ENTER_NAME"
    ENTER_BIRTH_YEAR = "ENTER_BIRTH_YEAR"
    SELECT_RELATED_MEMBER = "SELECT_RELATED_MEMBER"
    SELECT_MEMBER = "SELECT_MEMBER"
    ENTER_TOKEN = "ENTER_TOKEN"
    SELECT_TARGET_TREE = "SELECT_TARGET_TREE"
    CONFIRM_MERGE = "CONFIRM_MERGE"

@dataclass
class StateData:
    name: Optional[str] = None
    birth_year: Optional[int] = None
    relation_type: Optional[RelationType] = None
    selected_member_id: Optional[int] = None
    target_tree_id: Optional[int] = None
    merge_id: Optional[int] = None

@dataclass
class ConversationState:
    action: Action
    step: Step
    data: StateData = field(default_factory=StateData)

class StateStore(Protocol):
    def get(self, user_id: int) -> Optional[ConversationState]: ...
    def set(self, user_id: int, state: ConversationState) -> None: ...
    def update(self, user_id: int, step: Step, **data) -> ConversationState: ...
    def clear(self, user_id: int) -> None: ...

class InMemoryStateStore:
    def __init__(self):
        self._states: Dict[int, ConversationState] = {}

    def get(self, user_id: int) -> Optional[ConversationState]:
        return self._states.get(user_id)

    def set(self, user_id: int, state: ConversationState) -> None:
        self._states[user_id] = state
        logger.debug(f"State for user {user_id}: {state}")

    def update(self, user_id: int, step: Step, **data) -> ConversationState:
        """Moves the user's current flow to another step, merging in new input."""
        current = self._states.get(user_id)
        if current is None:
            raise StateError("No conversation in progress", {"user_id": user_id})
        state = ConversationState(action=current.action, step=step, data=replace(current.data, **data))
        self.set(user_id, state)
        return state

    def clear(self, user_id: int) -> None:
        self._states.pop(user_id, None)

    def __len__(self):
        return len(self._states)

# Shared by every request handled by this process
state_store = InMemoryStateStore()
