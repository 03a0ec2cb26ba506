from app.services.lobbies.codes import CODE_ALPHABET
from app.services.lobbies.errors import RepositoryUnavailable


def _create(client, name='Alice'):
    res = client.post('/api/lobbies/create', json={'host_name': name})
    assert res.status_code == 201
    return res.get_json()


def _join(client, code, name):
    return client.post('/api/lobbies/join', json={'code': code, 'name': name})


def _state(client, code, player_id):
    return client.get(f'/api/lobbies/{code}/state', query_string={'player_id': player_id})


def test_create_lobby(client):
    data = _create(client)
    assert len(data['code']) == 6
    assert all(ch in CODE_ALPHABET for ch in data['code'])
    assert data['player_id']


def test_create_requires_name(client):
    res = client.post('/api/lobbies/create', json={'host_name': '   '})
    assert res.status_code == 400
    body = res.get_json()
    assert body['type'] == 'ValidationError'
    assert body['field'] == 'name'


def test_join_and_state(client):
    host = _create(client)
    code = host['code']
    # join with a lowercase code
    res = _join(client, code.lower(), 'Bob')
    assert res.status_code == 201
    bob = res.get_json()
    assert bob['code'] == code

    res = _state(client, code, bob['player_id'])
    assert res.status_code == 200
    state = res.get_json()
    assert state['code'] == code
    assert state['status'] == 'LOBBY'
    assert [p['name'] for p in state['players']] == ['Alice', 'Bob']
    assert state['me'] == {'id': bob['player_id'], 'name': 'Bob', 'is_host': False}
    assert state['settings']['timer_minutes'] == 8
    assert state['settings']['spy_count'] == 1
    assert isinstance(state['server_time'], int)
    assert 'location' not in state
    assert 'is_spy' not in state
    assert state['locations']


def test_join_name_taken_is_case_insensitive(client):
    host = _create(client)
    res = _join(client, host['code'], '  alice ')
    assert res.status_code == 409
    assert res.get_json()['type'] == 'NameTaken'
    state = _state(client, host['code'], host['player_id']).get_json()
    assert len(state['players']) == 1


def test_join_unknown_and_malformed_codes(client):
    res = _join(client, 'ZZZZZZ', 'Bob')
    assert res.status_code == 404
    assert res.get_json()['type'] == 'NotFound'

    res = _join(client, 'AB1', 'Bob')
    assert res.status_code == 400
    assert res.get_json()['field'] == 'code'


def test_full_round_flow(client):
    host = _create(client)
    code = host['code']
    bob = _join(client, code, 'Bob').get_json()
    carol = _join(client, code, 'Carol').get_json()
    ids = [host['player_id'], bob['player_id'], carol['player_id']]

    res = client.post(f'/api/lobbies/{code}/settings', json={'timer_minutes': 5, 'spy_count': 1})
    assert res.status_code == 200

    assert client.post(f'/api/lobbies/{code}/start').status_code == 200

    views = [_state(client, code, pid).get_json() for pid in ids]
    assert all(v['status'] == 'IN_PROGRESS' for v in views)
    spies = [v for v in views if v['is_spy']]
    agents = [v for v in views if not v['is_spy']]
    assert len(spies) == 1
    assert 'location' not in spies[0]
    assert spies[0]['me']['role'] == 'Spy'
    locations = {v['location'] for v in agents}
    assert len(locations) == 1
    assert locations.pop() in views[0]['locations']
    for v in views:
        assert v['remaining_ms'] <= 5 * 60000
        assert v['time_up'] is False
        for p in v['players']:
            assert set(p) == {'id', 'name', 'is_host'}

    # late joiners are turned away
    res = _join(client, code, 'Dave')
    assert res.status_code == 409
    assert res.get_json()['type'] == 'GameInProgress'

    assert client.post(f'/api/lobbies/{code}/pause').status_code == 200
    paused = _state(client, code, ids[0]).get_json()
    assert paused['is_paused'] is True
    assert paused['timer_start_time'] is None

    assert client.post(f'/api/lobbies/{code}/pause').status_code == 200
    resumed = _state(client, code, ids[0]).get_json()
    assert resumed['is_paused'] is False
    assert resumed['timer_start_time'] is not None

    assert client.post(f'/api/lobbies/{code}/reset').status_code == 200
    back = _state(client, code, ids[1]).get_json()
    assert back['status'] == 'LOBBY'
    assert 'location' not in back
    assert 'role' not in back['me']

    assert client.post(f'/api/lobbies/{code}/start').status_code == 200
    assert client.post(f'/api/lobbies/{code}/end').status_code == 200
    done = _state(client, code, ids[2]).get_json()
    assert done['status'] == 'FINISHED'
    assert 'location' not in done


def test_state_for_unknown_player(client):
    code = _create(client)['code']
    res = _state(client, code, 'nobody')
    assert res.status_code == 404
    assert res.get_json()['type'] == 'ParticipantNotFound'


def test_host_leaves_then_last_player_leaves(client):
    host = _create(client)
    code = host['code']
    bob = _join(client, code, 'Bob').get_json()

    assert client.post(f'/api/lobbies/{code}/leave', json={'player_id': host['player_id']}).status_code == 200
    state = _state(client, code, bob['player_id']).get_json()
    assert state['me']['is_host'] is True
    assert len(state['players']) == 1

    assert client.post(f'/api/lobbies/{code}/leave', json={'player_id': bob['player_id']}).status_code == 200
    assert _state(client, code, bob['player_id']).status_code == 404


def test_kick_and_promote(client):
    host = _create(client)
    code = host['code']
    bob = _join(client, code, 'Bob').get_json()
    carol = _join(client, code, 'Carol').get_json()

    client.post(f'/api/lobbies/{code}/promote', json={'player_id': carol['player_id']})
    state = _state(client, code, carol['player_id']).get_json()
    assert [p['name'] for p in state['players'] if p['is_host']] == ['Carol']

    client.post(f'/api/lobbies/{code}/kick', json={'player_id': bob['player_id']})
    state = _state(client, code, carol['player_id']).get_json()
    assert [p['name'] for p in state['players']] == ['Alice', 'Carol']
    assert _state(client, code, bob['player_id']).status_code == 404


def test_mutations_on_missing_lobby_are_noops(client):
    for action in ('leave', 'kick', 'promote', 'settings', 'start', 'pause', 'end', 'reset'):
        body = {} if action == 'settings' else {'player_id': 'x'}
        res = client.post(f'/api/lobbies/QQQQQQ/{action}', json=body)
        assert res.status_code == 200, action
        assert res.get_json() == {'success': True}


def test_invalid_settings_rejected(client):
    code = _create(client)['code']
    res = client.post(f'/api/lobbies/{code}/settings', json={'timer_minutes': 61})
    assert res.status_code == 400
    assert res.get_json()['field'] == 'timer_minutes'

    res = client.post(f'/api/lobbies/{code}/settings', json={'location_pool': ['nope']})
    assert res.status_code == 400

    res = client.post(f'/api/lobbies/{code}/settings', json={'spyfall2': True})
    assert res.status_code == 400


def test_location_pool_setting(client):
    host = _create(client)
    code = host['code']
    res = client.post(f'/api/lobbies/{code}/settings', json={'location_pool': ['spyfall2']})
    assert res.status_code == 200
    state = _state(client, code, host['player_id']).get_json()
    assert state['settings']['location_pool'] == ['spyfall2']
    assert 'Zoo' in state['locations']
    assert 'Airplane' not in state['locations']


def test_locations_catalog(client):
    res = client.get('/api/lobbies/locations')
    assert res.status_code == 200
    data = res.get_json()
    assert data['default_sets'] == ['spyfall1']
    assert {'spyfall1', 'spyfall2'} <= set(data['sets'])
    assert all(entry['roles'] for entry in data['sets']['spyfall1'])


class _BrokenRepository:
    def now_ms(self):
        return 0

    def get(self, code):
        raise RepositoryUnavailable('connection refused by db-primary:5432')


def test_store_failure_returns_generic_503(flask_app, client):
    flask_app.extensions['lobbies'].repository = _BrokenRepository()
    res = _state(client, 'ABCDEF', 'p1')
    assert res.status_code == 503
    body = res.get_json()
    assert body['type'] == 'RepositoryUnavailable'
    assert 'db-primary' not in body['error']
