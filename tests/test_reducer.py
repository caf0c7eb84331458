import pytest

from wordchain.services.games.events import (
    AddWordEvent, EndedEvent, JoinEvent, LeaveEvent, ResetEvent, StartEvent,
    TimeoutEvent, event_to_dict,
)
from wordchain.services.games.reducer import apply_event, next_active
from wordchain.services.games.state import Rules, SessionState, Snapshot

NOW = 1_000.0


def _lobby(*players):
    return Snapshot.lobby('GAME', players=list(players))


def _playing(players, turn, letter='Q'):
    return apply_event(_lobby(*players), StartEvent(letter=letter, current_turn=turn), now=NOW)


def _word(snapshot, author, word, ts=NOW):
    return apply_event(snapshot, AddWordEvent(author=author, word=word, timestamp=ts), now=NOW)


def _timeout(snapshot, player=None):
    return apply_event(snapshot, TimeoutEvent(player=player), now=NOW)


def test_three_player_game_ends_with_ranked_leaderboard():
    s = _playing(['A', 'B', 'C'], 'A', 'Q')
    assert s.state is SessionState.PLAYING

    s = _word(s, 'A', 'queen')
    assert (s.letter, s.current_turn) == ('N', 'B')

    s = _timeout(s, 'B')
    assert s.lost_players == ['B']
    assert s.active_players == ['A', 'C']
    assert s.current_turn == 'C'

    s = _word(s, 'C', 'now')
    assert (s.letter, s.current_turn) == ('W', 'A')

    s = _timeout(s, 'A')
    assert s.state is SessionState.ENDED
    assert s.active_players == ['C']
    assert s.leaderboard == ['C', 'A', 'B']
    assert [w.word for w in s.word_log] == ['queen', 'now']


def test_single_player_cannot_start():
    s = _lobby('A')
    assert apply_event(s, StartEvent(letter='K', current_turn='A'), now=NOW) is s


def test_start_rejects_unknown_player_and_bad_letter():
    s = _lobby('A', 'B')
    assert apply_event(s, StartEvent(letter='K', current_turn='Z'), now=NOW) is s
    assert apply_event(s, StartEvent(letter='7', current_turn='A'), now=NOW) is s


def test_start_clears_previous_round():
    s = _playing(['A', 'B'], 'A')
    s = _word(s, 'A', 'apple')
    s = apply_event(s, ResetEvent(), now=NOW)
    s = apply_event(s, StartEvent(letter='b', current_turn='B'), now=NOW)
    assert s.word_log == [] and s.lost_players == []
    assert s.letter == 'B'


@pytest.mark.parametrize('word', ['', '   '])
def test_empty_word_is_ignored(word):
    s = _playing(['A', 'B'], 'A')
    assert _word(s, 'A', word) is s


def test_stale_word_is_ignored():
    s = _playing(['A', 'B'], 'A')
    assert _word(s, 'A', 'apple', ts=NOW - 5.5) is s
    assert _word(s, 'A', 'apple', ts=NOW - 5).current_turn == 'B'


@pytest.mark.parametrize('ts', [float('nan'), float('inf'), float('-inf')])
def test_non_finite_timestamp_is_ignored(ts):
    s = _playing(['A', 'B'], 'A')
    assert _word(s, 'A', 'apple', ts=ts) is s


def test_word_max_age_comes_from_rules():
    s = _playing(['A', 'B'], 'A')
    strict = Rules(word_max_age=1)
    event = AddWordEvent(author='A', word='apple', timestamp=NOW - 2)
    assert apply_event(s, event, strict, now=NOW) is s


def test_redelivered_word_does_not_advance_twice():
    s = _playing(['A', 'B', 'C'], 'A')
    event = AddWordEvent(author='A', word='apple', timestamp=NOW)
    once = apply_event(s, event, now=NOW)
    assert apply_event(once, event, now=NOW) is once
    assert once.current_turn == 'B'


def test_letter_follows_last_character_of_word():
    s = _playing(['A', 'B'], 'A')
    for author, word in [('A', 'tiger'), ('B', 'Robin'), ('A', 'nest')]:
        s = _word(s, author, word)
        assert s.letter == word[-1].upper()


def test_duplicate_timeout_is_idempotent():
    s = _playing(['A', 'B', 'C'], 'B')
    once = _timeout(s, 'B')
    assert _timeout(once, 'B') is once
    assert once.lost_players == ['B']
    assert once.current_turn == 'C'


def test_timeout_for_eliminated_player_changes_nothing():
    s = _timeout(_playing(['A', 'B', 'C'], 'A'), 'A')
    again = _timeout(s, 'A')
    assert again is s
    assert (again.lost_players, again.current_turn, again.state) == (['A'], 'B', SessionState.PLAYING)


def test_timeout_without_player_targets_current_turn():
    s = _timeout(_playing(['A', 'B', 'C'], 'C'))
    assert s.lost_players == ['C']
    assert s.current_turn == 'A'


def test_timeout_outside_playing_is_ignored():
    s = _lobby('A', 'B')
    assert _timeout(s, 'A') is s


def test_turn_ring_skips_eliminated_and_shrinks_by_one():
    players = ['A', 'B', 'C', 'D', 'E']
    s = _playing(players, 'C')
    active = len(s.active_players)
    while s.state is SessionState.PLAYING:
        s = _word(s, s.current_turn, 'echo')
        assert s.current_turn not in s.lost_players
        victim = s.current_turn
        s = _timeout(s, victim)
        assert len(s.active_players) == active - 1
        active -= 1
        if s.state is SessionState.PLAYING:
            assert s.current_turn == next_active(players, s.lost_players, victim)
            assert s.current_turn in s.active_players
    assert active == 1
    assert sorted(s.leaderboard) == sorted(players)
    assert len(s.leaderboard) == len(players)
    assert s.leaderboard[1:] == list(reversed(s.lost_players))


def test_next_active_wraps_around():
    assert next_active(['A', 'B', 'C'], [], 'C') == 'A'
    assert next_active(['A', 'B', 'C'], ['A'], 'C') == 'B'
    assert next_active(['A', 'B', 'C'], ['B'], 'B') == 'C'


def test_join_and_leave_in_lobby():
    s = apply_event(_lobby(), JoinEvent('A'), now=NOW)
    s = apply_event(s, JoinEvent('B'), now=NOW)
    assert apply_event(s, JoinEvent('A'), now=NOW) is s
    s = apply_event(s, LeaveEvent('A'), now=NOW)
    assert s.players == ['B']
    assert s.host == 'B'


def test_membership_is_frozen_while_playing():
    s = _playing(['A', 'B'], 'A')
    assert apply_event(s, JoinEvent('C'), now=NOW) is s
    assert apply_event(s, LeaveEvent('A'), now=NOW) is s


def test_reset_returns_to_lobby_keeping_players():
    s = _word(_playing(['A', 'B'], 'A'), 'A', 'apple')
    s = apply_event(s, ResetEvent(), now=NOW)
    assert s == _lobby('A', 'B')


def test_reset_can_be_disabled():
    s = _playing(['A', 'B'], 'A')
    assert apply_event(s, ResetEvent(), Rules(allow_reset=False), now=NOW) is s


def test_stale_replica_adopts_final_leaderboard():
    s = _playing(['A', 'B', 'C'], 'A')
    ended = apply_event(s, EndedEvent(leaderboard=['C', 'A', 'B']), now=NOW)
    assert ended.state is SessionState.ENDED
    assert ended.lost_players == ['B', 'A']
    assert apply_event(s, EndedEvent(leaderboard=['C', 'A']), now=NOW) is s


def test_events_encode_to_wire_format():
    event = AddWordEvent(author='A', word='apple', timestamp=NOW)
    assert event_to_dict(event) == {
        'type': 'addWord',
        'data': {'author': 'A', 'word': 'apple', 'timestamp': NOW},
    }
    assert event_to_dict(TimeoutEvent(player='B')) == {
        'type': 'timeout',
        'data': {'player': 'B', 'job_id': None},
    }


def test_snapshot_rejects_turn_held_by_eliminated_player():
    with pytest.raises(ValueError):
        Snapshot.from_dict({
            'state': 'playing',
            'players': ['A', 'B'],
            'lost_players': ['A'],
            'current_turn': 'A',
            'letter': 'Q',
        })
