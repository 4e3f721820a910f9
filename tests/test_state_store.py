import pytest
from shajara.errors import ErrorKind, StateError
from shajara.models.member import RelationType
from shajara.services.state_store import Action, ConversationState, InMemoryStateStore, Step

def test_get_without_state(states):
    assert states.get(1) is None
    assert len(states) == 0

def test_set_and_update_keep_earlier_input(states):
    states.set(1, ConversationState(Action.ADD_MEMBER, Step.SELECT_RELATION))
    states.update(1, Step.ENTER_NAME, relation_type=RelationType.CHILD)
    state = states.update(1, Step.ENTER_BIRTH_YEAR, name="Ali")

    assert state.action == Action.ADD_MEMBER
    assert state.step == Step.ENTER_BIRTH_YEAR
    assert state.data.relation_type == RelationType.CHILD
    assert state.data.name == "Ali"
    assert states.get(1) is state

def test_update_does_not_mutate_previous_state(states):
    first = ConversationState(Action.ADD_MEMBER, Step.ENTER_NAME)
    states.set(1, first)
    states.update(1, Step.ENTER_BIRTH_YEAR, name="Ali")
    assert first.data.name is None

def test_update_without_conversation(states):
    with pytest.raises(StateError) as exc:
        states.update(7, Step.ENTER_NAME)
    assert exc.value.kind == ErrorKind.STATE

def test_unknown_field_is_rejected(states):
    states.set(1, ConversationState(Action.ADD_MEMBER, Step.ENTER_NAME))
    with pytest.raises(TypeError):
        states.update(1, Step.ENTER_BIRTH_YEAR, gender="M")

def test_users_are_isolated():
    states = InMemoryStateStore()
    states.set(1, ConversationState(Action.ADD_MEMBER, Step.ENTER_NAME))
    states.set(2, ConversationState(Action.JOIN_TREE, Step.ENTER_TOKEN))

    states.clear(1)
    states.clear(1)

    assert states.get(1) is None
    assert states.get(2).action == Action.JOIN_TREE
    assert len(states) == 1

def test_last_write_wins(states):
    states.set(1, ConversationState(Action.ADD_MEMBER, Step.ENTER_NAME))
    states.set(1, ConversationState(Action.MERGE_TREE, Step.SELECT_TARGET_TREE))
    assert states.get(1).action == Action.MERGE_TREE
