from flask import Blueprint, jsonify, request, current_app
from app import socketio, get_lobby_manager
from app.services.lobbies.catalog import LocationCatalog
from app.services.lobbies.errors import LobbyError, RepositoryUnavailable


lobbies = Blueprint('lobbies', __name__)


@lobbies.errorhandler(LobbyError)
def handle_lobby_error(err: LobbyError):
    if isinstance(err, RepositoryUnavailable):
        current_app.logger.error(f"[store-unavailable] path={request.path} error={err} cause={err.__cause__!r}")
    else:
        current_app.logger.info(f"[rejected] path={request.path} type={err.__class__.__name__} error={err}")
    return jsonify(err.to_dict()), err.http_status


def _notify(code: str, lobby) -> None:
    """Tell clients in the lobby room to refetch, or that the lobby is gone."""
    room = f"lobby:{code.upper()}"
    if lobby is None:
        socketio.emit('lobby_closed', {'code': code.upper()}, to=room, namespace='/ws')
    else:
        socketio.emit('state_update', {'code': lobby.code}, to=room, namespace='/ws')


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@lobbies.route('/create', methods=['POST'])
def create_lobby():
    data = _body()
    lobby = get_lobby_manager().create(data.get('host_name'), player_id=data.get('player_id'))
    return jsonify({
        'code': lobby.code,
        'player_id': lobby.players[0].id,
    }), 201


@lobbies.route('/join', methods=['POST'])
def join_lobby():
    data = _body()
    lobby, player = get_lobby_manager().join(data.get('code'), data.get('name'), player_id=data.get('player_id'))
    _notify(lobby.code, lobby)
    return jsonify({'code': lobby.code, 'player_id': player.id}), 201


@lobbies.route('/<string:code>/leave', methods=['POST'])
def leave_lobby(code):
    lobby = get_lobby_manager().leave(code, _body().get('player_id'))
    _notify(code, lobby)
    return jsonify({'success': True})


@lobbies.route('/<string:code>/kick', methods=['POST'])
def kick_player(code):
    lobby = get_lobby_manager().kick(code, _body().get('player_id'))
    _notify(code, lobby)
    return jsonify({'success': True})


@lobbies.route('/<string:code>/promote', methods=['POST'])
def promote_host(code):
    lobby = get_lobby_manager().promote_host(code, _body().get('player_id'))
    if lobby is not None:
        _notify(code, lobby)
    return jsonify({'success': True})


@lobbies.route('/<string:code>/settings', methods=['POST'])
def update_settings(code):
    lobby = get_lobby_manager().update_settings(code, _body())
    if lobby is not None:
        _notify(code, lobby)
    return jsonify({'success': True})


@lobbies.route('/<string:code>/start', methods=['POST'])
def start_game(code):
    lobby = get_lobby_manager().start_game(code)
    if lobby is not None:
        _notify(code, lobby)
    return jsonify({'success': True})


@lobbies.route('/<string:code>/pause', methods=['POST'])
def toggle_pause(code):
    lobby = get_lobby_manager().toggle_pause(code)
    if lobby is not None:
        _notify(code, lobby)
    return jsonify({'success': True})


@lobbies.route('/<string:code>/end', methods=['POST'])
def end_game(code):
    lobby = get_lobby_manager().end_game(code)
    if lobby is not None:
        _notify(code, lobby)
    return jsonify({'success': True})


@lobbies.route('/<string:code>/reset', methods=['POST'])
def reset_game(code):
    lobby = get_lobby_manager().reset_game(code)
    if lobby is not None:
        _notify(code, lobby)
    return jsonify({'success': True})


@lobbies.route('/<string:code>/state', methods=['GET'])
def get_lobby_state(code):
    view = get_lobby_manager().get_state(code, request.args.get('player_id'))
    return jsonify(view)


@lobbies.route('/locations', methods=['GET'])
def list_locations():
    catalog: LocationCatalog = get_lobby_manager().catalog
    return jsonify({
        'sets': catalog.to_dict(),
        'default_sets': list(catalog.default_sets),
    })
