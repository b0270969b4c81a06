from __future__ import annotations


def compute_progress_percent(done: int, total: int) -> int:
    """Completion percentage rounded half-up; an empty task list is 0%."""
    if total <= 0:
        return 0
    done = max(0, min(done, total))
    # floor(100 * done / total + 0.5) in integer arithmetic
    return (200 * done + total) // (2 * total)


def vote_tally(upvotes: int, downvotes: int) -> int:
    return upvotes - downvotes
