def _create(client, name='Alice', **extra):
    res = client.post('/api/lobbies', json={'name': name, **extra})
    assert res.status_code == 201
    return res.get_json()


def _join(client, code, name, **extra):
    return client.post('/api/lobbies/join', json={'game_code': code, 'name': name, **extra})


def _table(client):
    created = _create(client, player_id='alice', timer_duration=30)
    code = created['lobby']['game_code']
    _join(client, code, 'Bob', player_id='bob')
    _join(client, code, 'Cara', player_id='cara')
    return created['lobby']


def test_create_lobby(client):
    data = _create(client, timer_duration=20)
    assert data['lobby']['timer_duration'] == 20
    assert data['lobby']['status'] == 'waiting'
    assert len(data['lobby']['game_code']) == 6
    assert data['player']['is_host'] is True
    assert data['player']['join_order'] == 1


def test_create_lobby_uses_default_timer(client):
    assert _create(client)['lobby']['timer_duration'] == 15


def test_create_lobby_validates_input(client):
    assert client.post('/api/lobbies', json={}).status_code == 400
    res = client.post('/api/lobbies', json={'name': 'Alice', 'timer_duration': 'soon'})
    assert res.status_code == 400
    assert 'error' in res.get_json()


def test_join_and_state(client):
    lobby = _create(client, player_id='alice')['lobby']
    res = _join(client, lobby['game_code'].lower(), 'Bob', player_id='bob')
    assert res.status_code == 201
    assert res.get_json()['player']['join_order'] == 2

    res = client.get(f"/api/lobbies/{lobby['game_code']}/state")
    assert res.status_code == 200
    state = res.get_json()
    assert state['game_code'] == lobby['game_code']
    assert state['status'] == 'waiting'
    assert [p['name'] for p in state['players']] == ['Alice', 'Bob']
    assert state['round_id'] is None
    assert state['durations'] == {'turn': 15, 'dispute_window': 5}


def test_rejoin_with_same_identity_keeps_seat(client):
    lobby = _create(client, player_id='alice')['lobby']
    first = _join(client, lobby['game_code'], 'Bob', player_id='bob').get_json()
    again = _join(client, lobby['game_code'], 'Bob', player_id='bob').get_json()
    assert first['player'] == again['player']


def test_join_unknown_code_is_not_found(client):
    assert _join(client, 'NOPE00', 'Bob').status_code == 404
    assert client.get('/api/lobbies/NOPE00/state').status_code == 404


def test_play_rotates_turns(client):
    lobby = _table(client)
    res = client.post(f"/api/lobbies/{lobby['id']}/rounds",
                      json={'starting_player_id': 'alice', 'starting_word': 'apple'})
    assert res.status_code == 201
    rnd = res.get_json()
    assert rnd['round_number'] == 1

    order = []
    for player, word in (('alice', 'eagle'), ('bob', 'elbow'), ('cara', 'whale')):
        res = client.post(f"/api/rounds/{rnd['id']}/submissions", json={'player_id': player, 'word': word})
        assert res.status_code == 201
        order.append(res.get_json()['round']['active_player_id'])
    assert order == ['bob', 'cara', 'alice']

    state = client.get(f"/api/lobbies/{lobby['game_code']}/state").get_json()
    assert state['status'] == 'in_progress'
    assert state['current_word'] == 'whale'
    assert state['latest_submission']['word'] == 'whale'
    assert 0 < state['remaining'] <= 30


def test_out_of_turn_submission_conflicts(client):
    lobby = _table(client)
    rnd = client.post(f"/api/lobbies/{lobby['id']}/rounds",
                      json={'starting_player_id': 'alice', 'starting_word': 'apple'}).get_json()
    res = client.post(f"/api/rounds/{rnd['id']}/submissions", json={'player_id': 'cara', 'word': 'eagle'})
    assert res.status_code == 409
    res = client.post(f"/api/rounds/{rnd['id']}/submissions", json={'player_id': 'alice'})
    assert res.status_code == 400


def test_start_round_guard_on_expected_number(client):
    lobby = _table(client)
    url = f"/api/lobbies/{lobby['id']}/rounds"
    body = {'starting_player_id': 'alice', 'starting_word': 'apple', 'expected_round_number': 0}
    assert client.post(url, json=body).status_code == 201
    assert client.post(url, json=body).status_code == 409
    assert client.post(url, json=dict(body, expected_round_number='one')).status_code == 400
    assert client.post('/api/lobbies/9999/rounds', json=body).status_code == 404


def test_early_timeout_is_a_noop(client):
    lobby = _table(client)
    rnd = client.post(f"/api/lobbies/{lobby['id']}/rounds",
                      json={'starting_player_id': 'alice', 'starting_word': 'apple'}).get_json()
    res = client.post(f"/api/rounds/{rnd['id']}/timeout")
    assert res.status_code == 200
    outcome = res.get_json()
    assert outcome['expired'] is False
    assert outcome['round']['id'] == rnd['id']
    assert outcome['eliminated'] is None


def test_eliminate_until_winner(client):
    lobby = _table(client)
    url = f"/api/lobbies/{lobby['id']}/players/%s/eliminate"
    res = client.post(url % 'cara')
    assert res.status_code == 200
    assert res.get_json()['player']['status'] == 'eliminated'
    assert res.get_json()['winner'] is None

    res = client.post(url % 'bob')
    assert res.get_json()['winner']['id'] == 'alice'
    state = client.get(f"/api/lobbies/{lobby['game_code']}/state").get_json()
    assert state['status'] == 'finished'
    assert state['winner_id'] == 'alice'

    assert client.post(url % 'ghost').status_code == 404


def test_dispute_flow(client):
    lobby = _table(client)
    rnd = client.post(f"/api/lobbies/{lobby['id']}/rounds",
                      json={'starting_player_id': 'alice', 'starting_word': 'apple'}).get_json()
    sub = client.post(f"/api/rounds/{rnd['id']}/submissions",
                      json={'player_id': 'alice', 'word': 'eagle'}).get_json()['submission']

    res = client.post(f"/api/submissions/{sub['id']}/dispute", json={'player_id': 'bob'})
    assert res.status_code == 200
    assert res.get_json()['is_disputed'] is True

    votes_url = f"/api/submissions/{sub['id']}/votes"
    assert client.post(votes_url, json={'player_id': 'bob', 'vote': False}).status_code == 201
    assert client.post(votes_url, json={'player_id': 'cara', 'vote': False}).status_code == 201
    assert client.post(votes_url, json={'player_id': 'cara', 'vote': True}).status_code == 409
    assert client.post(votes_url, json={'player_id': 'alice', 'vote': 'perhaps'}).status_code == 400

    res = client.post(f"/api/submissions/{sub['id']}/finalize")
    assert res.status_code == 200
    outcome = res.get_json()
    assert outcome['dispute_result'] is False
    assert (outcome['accept'], outcome['decline']) == (0, 2)
    assert outcome['eliminated']['id'] == 'alice'

    state = client.get(f"/api/lobbies/{lobby['game_code']}/state").get_json()
    alice = next(p for p in state['players'] if p['id'] == 'alice')
    assert alice['is_eliminated'] is True
    assert state['latest_submission']['dispute_result'] is False


def test_vote_without_dispute_conflicts(client):
    lobby = _table(client)
    rnd = client.post(f"/api/lobbies/{lobby['id']}/rounds",
                      json={'starting_player_id': 'alice', 'starting_word': 'apple'}).get_json()
    sub = client.post(f"/api/rounds/{rnd['id']}/submissions",
                      json={'player_id': 'alice', 'word': 'eagle'}).get_json()['submission']
    res = client.post(f"/api/submissions/{sub['id']}/votes", json={'player_id': 'bob', 'vote': True})
    assert res.status_code == 409
    assert client.post('/api/submissions/9999/finalize').status_code == 404
