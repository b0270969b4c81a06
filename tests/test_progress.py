import pytest

from ideaboard.domain.progress import compute_progress_percent, vote_tally


@pytest.mark.parametrize(
    "done, total, expected",
    [
        (0, 0, 0),
        (0, 3, 0),
        (1, 3, 33),
        (2, 3, 67),
        (3, 3, 100),
        (1, 2, 50),
        (1, 8, 13),
        (1, 200, 1),
        (1, 201, 0),
    ],
)
def test_progress_rounds_half_up(done, total, expected):
    assert compute_progress_percent(done, total) == expected


def test_progress_clamps_inconsistent_counts():
    assert compute_progress_percent(5, 3) == 100
    assert compute_progress_percent(-1, 3) == 0


def test_vote_tally_is_difference():
    assert vote_tally(4, 1) == 3
    assert vote_tally(0, 2) == -2
