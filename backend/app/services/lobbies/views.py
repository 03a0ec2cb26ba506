"""Per-viewer lobby snapshots.

A view never carries another player's role or spy flag, and a spy's view
never carries the location.
"""

from typing import Any, Dict, Iterable

from . import clock
from .errors import ParticipantNotFound
from .state import Lobby, LobbyStatus


def project(lobby: Lobby, viewer_id: str, server_time: int, locations: Iterable[str] = ()) -> Dict[str, Any]:
    me = lobby.find_player(viewer_id)
    if me is None:
        raise ParticipantNotFound(viewer_id)

    in_progress = lobby.status == LobbyStatus.IN_PROGRESS
    me_view = {'id': me.id, 'name': me.name, 'is_host': me.is_host}
    if in_progress:
        me_view['role'] = me.role
        me_view['is_spy'] = bool(me.is_spy)

    view: Dict[str, Any] = {
        'code': lobby.code,
        'status': lobby.status.value,
        'players': [{'id': p.id, 'name': p.name, 'is_host': p.is_host} for p in lobby.players],
        'me': me_view,
        'settings': lobby.settings.to_dict(),
        'timer_minutes': lobby.settings.timer_minutes,
        'spy_count': lobby.settings.spy_count,
        'timer_start_time': lobby.timer_start_time,
        'timer_accumulated': lobby.timer_accumulated,
        'is_paused': lobby.is_paused,
        'server_time': server_time,
        'locations': sorted(locations),
    }

    if in_progress:
        remaining = clock.remaining_ms(lobby, server_time)
        view['remaining_ms'] = remaining
        view['time_up'] = remaining == 0
        if me.is_spy:
            view['is_spy'] = True
        else:
            view['is_spy'] = False
            view['location'] = lobby.location
    return view
