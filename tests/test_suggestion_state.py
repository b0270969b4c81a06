from types import SimpleNamespace

from ideaboard.domain.suggestion_state import (
    Promoted,
    Unpromoted,
    is_mutable,
    promotion_state,
)


def test_unlinked_suggestion_is_unpromoted_and_mutable():
    state = promotion_state(SimpleNamespace(backlog_item_id=None))

    assert state == Unpromoted()
    assert is_mutable(state)


def test_linked_suggestion_is_promoted_and_frozen():
    state = promotion_state(SimpleNamespace(backlog_item_id=12))

    assert state == Promoted(backlog_item_id=12)
    assert not is_mutable(state)
