from wordchain.feed import INSERT, UPDATE, feed
from wordchain.services.lobby import lobby_snapshot
from wordchain.services.rounds import eliminate_player, expire_turn, start_round, submit_word
from wordchain.view import ChangeEvent, GameState, GameView, reduce

T0 = 4_000_000.0

LOBBY = {'id': 1, 'timer_duration': 15}
PLAYERS = [
    {'id': 'bob', 'lobby_id': 1, 'name': 'Bob', 'join_order': 2, 'status': 'active'},
    {'id': 'alice', 'lobby_id': 1, 'name': 'Alice', 'join_order': 1, 'is_host': True, 'status': 'active'},
]


def _round(rid=7, number=1, active='alice', start=T0, word='apple'):
    return {
        'id': rid, 'lobby_id': 1, 'round_number': number, 'starting_player_id': active,
        'active_player_id': active, 'starting_word': word, 'current_word': word, 'start_time': start,
    }


def _submission(sid=1, rid=7, word='eagle', at=T0 + 1, player='alice'):
    return {'id': sid, 'round_id': rid, 'player_id': player, 'word': word, 'created_at': at,
            'is_disputed': False, 'dispute_result': None}


def _state():
    return GameState.from_snapshot(LOBBY, PLAYERS)


def _fold(state, *events):
    for event in events:
        state = reduce(state, ChangeEvent(*event))
    return state


def test_snapshot_orders_players_by_join_order():
    state = _state()
    assert [p.id for p in state.players] == ['alice', 'bob']
    assert state.round_id is None
    assert state.remaining(T0) == 15


def test_round_insert_sets_word_turn_and_timer():
    state = _fold(_state(), ('rounds', INSERT, _round()))
    assert (state.round_id, state.word, state.active_player_id) == (7, 'apple', 'alice')
    assert state.remaining(T0 + 3.5) == 12


def test_duplicate_and_older_round_inserts_are_ignored():
    state = _fold(_state(), ('rounds', INSERT, _round(rid=8, number=2, active='bob')))
    again = _fold(state, ('rounds', INSERT, _round(rid=8, number=2, active='alice')),
                  ('rounds', INSERT, _round(rid=7, number=1)))
    assert again == state


def test_submission_insert_shows_word_and_restarts_timer():
    state = _fold(_state(), ('rounds', INSERT, _round()), ('submissions', INSERT, _submission()))
    assert state.word == 'eagle'
    assert state.start_time == T0 + 1
    assert state.latest_submission['id'] == 1


def test_duplicate_submission_is_applied_once():
    once = _fold(_state(), ('rounds', INSERT, _round()), ('submissions', INSERT, _submission()))
    twice = _fold(once, ('submissions', INSERT, _submission()))
    assert twice == once


def test_submission_for_another_round_is_ignored():
    state = _fold(_state(), ('rounds', INSERT, _round()))
    assert _fold(state, ('submissions', INSERT, _submission(rid=99))) == state


def test_round_update_and_submission_converge_in_either_order():
    moved = dict(_round(), active_player_id='bob', start_time=T0 + 1, current_word='eagle')
    base = _fold(_state(), ('rounds', INSERT, _round()))

    word_first = _fold(base, ('submissions', INSERT, _submission()), ('rounds', UPDATE, moved))
    turn_first = _fold(base, ('rounds', UPDATE, moved), ('submissions', INSERT, _submission()))

    for state in (word_first, turn_first):
        assert state.word == 'eagle'
        assert state.active_player_id == 'bob'
        assert state.start_time == T0 + 1


def test_stale_round_update_is_ignored():
    newer = dict(_round(), active_player_id='bob', start_time=T0 + 4, current_word='eagle')
    older = dict(_round(), active_player_id='alice', start_time=T0 + 1, current_word='apple')
    state = _fold(_state(), ('rounds', INSERT, _round()), ('rounds', UPDATE, newer), ('rounds', UPDATE, older))
    assert state.active_player_id == 'bob'
    assert state.word == 'eagle'


def test_update_for_unseen_newer_round_is_adopted():
    state = _fold(_state(), ('rounds', INSERT, _round()), ('rounds', UPDATE, _round(rid=9, number=2, active='bob')))
    assert (state.round_id, state.round_number, state.active_player_id) == (9, 2, 'bob')


def test_dispute_result_merges_into_latest_submission():
    settled = dict(_submission(), is_disputed=True, dispute_result=False)
    state = _fold(_state(), ('rounds', INSERT, _round()), ('submissions', INSERT, _submission()),
                  ('submissions', UPDATE, settled))
    assert state.latest_submission['dispute_result'] is False


def test_elimination_updates_roster_and_crowns_winner():
    state = _fold(_state(), ('players', UPDATE, dict(PLAYERS[0], status='eliminated')))
    assert state.player('bob').is_eliminated
    assert state.winner_id == 'alice'
    assert state.is_over


def test_late_joiner_is_added_once():
    cara = {'id': 'cara', 'lobby_id': 1, 'name': 'Cara', 'join_order': 3}
    state = _fold(_state(), ('players', INSERT, cara), ('players', INSERT, cara))
    assert [p.id for p in state.players] == ['alice', 'bob', 'cara']


def test_records_from_other_lobbies_are_ignored():
    state = _state()
    outsider = {'id': 'zed', 'lobby_id': 2, 'name': 'Zed', 'join_order': 1}
    assert _fold(state, ('players', INSERT, outsider), ('rounds', INSERT, dict(_round(), lobby_id=2))) == state


def test_to_dict_reports_remaining_when_given_a_clock():
    state = _fold(_state(), ('rounds', INSERT, _round()))
    payload = state.to_dict(now=T0 + 20)
    assert payload['remaining'] == 0
    assert payload['current_word'] == 'apple'
    assert 'remaining' not in state.to_dict()


def test_tick_fires_timeout_once_per_turn():
    fired = []
    view = GameView(_fold(_state(), ('rounds', INSERT, _round())), on_timeout=lambda r, p: fired.append((r, p)))

    assert view.tick(T0 + 14) == 1
    view.tick(T0 + 15)
    view.tick(T0 + 15.5)
    assert fired == [(7, 'alice')]

    view.apply(ChangeEvent('rounds', UPDATE, dict(_round(), active_player_id='bob', start_time=T0 + 16)))
    view.tick(T0 + 31)
    assert fired == [(7, 'alice'), (7, 'bob')]


def _attached_view(trio, on_timeout=None):
    snap = lobby_snapshot(trio.code)
    state = GameState.from_snapshot(
        snap['lobby'].to_dict(),
        [p.to_dict() for p in snap['players']],
        snap['round'].to_dict() if snap['round'] else None,
    )
    view = GameView(state, on_timeout=on_timeout)
    view.attach(feed)
    return view


def test_attached_views_follow_the_game(trio):
    alice_view = _attached_view(trio)
    bob_view = _attached_view(trio)

    rnd = start_round(trio.id, 'alice', 'apple', now=T0)
    submit_word(rnd.id, 'alice', 'eagle', now=T0 + 1)

    for view in (alice_view, bob_view):
        assert view.state.round_id == rnd.id
        assert view.state.word == 'eagle'
        assert view.state.active_player_id == 'bob'
        assert view.state.remaining(T0 + 4) == 12
    assert alice_view.state == bob_view.state


def test_view_timeout_drives_the_engine(trio, fixed_random):
    def on_timeout(round_id, player_id):
        expire_turn(round_id, now=T0 + 15, rng=fixed_random)

    view = _attached_view(trio, on_timeout=on_timeout)
    start_round(trio.id, 'alice', 'apple', now=T0)

    view.tick(T0 + 15)

    assert view.state.player('alice').is_eliminated
    assert view.state.round_number == 2
    assert view.state.active_player_id == 'bob'
    assert view.state.word == 'apple'


def test_detached_view_stops_updating(trio):
    view = _attached_view(trio)
    view.detach()
    eliminate_player('cara', trio.id, now=T0)
    assert not view.state.player('cara').is_eliminated
