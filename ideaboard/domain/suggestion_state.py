from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union


class _PromotableRow(Protocol):
    backlog_item_id: int | None


@dataclass(frozen=True)
class Unpromoted:
    pass


@dataclass(frozen=True)
class Promoted:
    backlog_item_id: int


PromotionState = Union[Unpromoted, Promoted]


def promotion_state(suggestion: _PromotableRow) -> PromotionState:
    if suggestion.backlog_item_id is None:
        return Unpromoted()
    return Promoted(backlog_item_id=suggestion.backlog_item_id)


def is_mutable(state: PromotionState) -> bool:
    """Title/description edits and deletion are only legal before promotion."""
    return isinstance(state, Unpromoted)
