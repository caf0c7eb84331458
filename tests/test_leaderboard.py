import pytest

from wordchain.services.games.leaderboard import build_leaderboard


def test_winner_first_then_reverse_elimination_order():
    assert build_leaderboard(['A', 'B', 'C', 'D'], ['B', 'D', 'A']) == ['C', 'A', 'D', 'B']


def test_two_player_game():
    assert build_leaderboard(['A', 'B'], ['A']) == ['B', 'A']


def test_requires_a_single_survivor():
    with pytest.raises(ValueError):
        build_leaderboard(['A', 'B', 'C'], ['B'])
