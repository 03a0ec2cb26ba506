"""Lobby snapshot types.

A lobby is read and written as one whole snapshot. ``to_dict``/``from_dict``
define the stored payload; ``version`` and ``last_activity`` are record
metadata owned by the repository.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


SPY_ROLE = 'Spy'


class LobbyStatus(str, Enum):
    LOBBY = 'LOBBY'
    IN_PROGRESS = 'IN_PROGRESS'
    FINISHED = 'FINISHED'


@dataclass(frozen=True)
class LobbySettings:
    location_pool: FrozenSet[str]
    timer_minutes: int
    spy_count: int

    def merged(self, partial: Dict[str, Any]) -> 'LobbySettings':
        """Shallow-merge already validated fields into a new settings value."""
        return LobbySettings(
            location_pool=frozenset(partial.get('location_pool', self.location_pool)),
            timer_minutes=int(partial.get('timer_minutes', self.timer_minutes)),
            spy_count=int(partial.get('spy_count', self.spy_count)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'location_pool': sorted(self.location_pool),
            'timer_minutes': self.timer_minutes,
            'spy_count': self.spy_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LobbySettings':
        return cls(
            location_pool=frozenset(data['location_pool']),
            timer_minutes=int(data['timer_minutes']),
            spy_count=int(data['spy_count']),
        )


@dataclass
class Player:
    id: str
    name: str
    is_host: bool = False
    role: Optional[str] = None
    is_spy: Optional[bool] = None

    def clear_round(self) -> None:
        self.role = None
        self.is_spy = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'is_host': self.is_host,
            'role': self.role,
            'is_spy': self.is_spy,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        return cls(
            id=data['id'],
            name=data['name'],
            is_host=bool(data.get('is_host')),
            role=data.get('role'),
            is_spy=data.get('is_spy'),
        )


@dataclass
class Lobby:
    code: str
    settings: LobbySettings
    players: List[Player] = field(default_factory=list)
    status: LobbyStatus = LobbyStatus.LOBBY
    location: Optional[str] = None
    timer_start_time: Optional[int] = None
    timer_accumulated: int = 0
    is_paused: bool = False
    last_activity: int = 0
    version: int = 0

    def find_player(self, player_id: str) -> Optional[Player]:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def name_taken(self, name: str) -> bool:
        wanted = name.casefold()
        return any(p.name.casefold() == wanted for p in self.players)

    def remove_player(self, player_id: str) -> bool:
        before = len(self.players)
        self.players = [p for p in self.players if p.id != player_id]
        return len(self.players) != before

    def repair_hosts(self) -> bool:
        """Leave exactly one host on a non-empty roster. Returns True if anything changed."""
        hosts = [p for p in self.players if p.is_host]
        if len(hosts) == 1 or not self.players:
            return False
        if not hosts:
            self.players[0].is_host = True
            return True
        for extra in hosts[1:]:
            extra.is_host = False
        return True

    def clear_round(self) -> None:
        self.location = None
        self.timer_start_time = None
        self.timer_accumulated = 0
        self.is_paused = False
        for p in self.players:
            p.clear_round()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code,
            'status': self.status.value,
            'players': [p.to_dict() for p in self.players],
            'settings': self.settings.to_dict(),
            'location': self.location,
            'timer_start_time': self.timer_start_time,
            'timer_accumulated': self.timer_accumulated,
            'is_paused': self.is_paused,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], version: int = 0, last_activity: int = 0) -> 'Lobby':
        return cls(
            code=data['code'],
            settings=LobbySettings.from_dict(data['settings']),
            players=[Player.from_dict(p) for p in data.get('players', [])],
            status=LobbyStatus(data.get('status', LobbyStatus.LOBBY.value)),
            location=data.get('location'),
            timer_start_time=data.get('timer_start_time'),
            timer_accumulated=int(data.get('timer_accumulated') or 0),
            is_paused=bool(data.get('is_paused')),
            last_activity=last_activity,
            version=version,
        )
