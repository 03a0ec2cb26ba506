"""Lobby lifecycle: create, join, leave, host changes, settings and rounds.

Every mutation is a read-modify-write of the whole snapshot, made safe
against concurrent callers by a conditional write on the snapshot's version:
on a lost race the snapshot is re-read and the change re-applied, up to
``write_attempts`` times with a linear backoff. The host invariant is
repaired on every write.

Mutations on a lobby that no longer exists are silent no-ops (the caller may
have been removed by a concurrent request); ``create``, ``join`` and
``get_state`` raise instead.
"""

import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from . import clock
from .assignment import apply_assignment, assign
from .catalog import LocationCatalog
from .codes import generate_code, normalize_code, normalize_name
from .errors import GameInProgress, GenerationExhausted, NameTaken, NotFound, ValidationError, WriteConflict
from .repository import LobbyRepository
from .state import Lobby, LobbySettings, LobbyStatus, Player
from .views import project


logger = logging.getLogger(__name__)

MAX_TIMER_MINUTES = 60
PLAYER_ID_MAX_LENGTH = 64
SETTINGS_FIELDS = ('location_pool', 'timer_minutes', 'spy_count')

Change = Callable[[Lobby, int], bool]


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class LobbyManager:
    def __init__(self, repository: LobbyRepository, catalog: LocationCatalog, *,
                 ttl_seconds: int = 86400,
                 write_attempts: int = 5,
                 retry_backoff_ms: int = 25,
                 code_attempts: int = 20,
                 default_timer_minutes: int = 8,
                 default_spy_count: int = 1,
                 rng: Optional[random.Random] = None,
                 sleep: Callable[[float], None] = time.sleep):
        if write_attempts < 1 or code_attempts < 1:
            raise ValueError('write_attempts and code_attempts must be at least 1')
        self.repository = repository
        self.catalog = catalog
        self.ttl_seconds = ttl_seconds
        self.write_attempts = write_attempts
        self.retry_backoff_ms = retry_backoff_ms
        self.code_attempts = code_attempts
        self.default_timer_minutes = default_timer_minutes
        self.default_spy_count = default_spy_count
        self.rng = rng or random.Random()
        self._sleep = sleep

    @classmethod
    def from_config(cls, repository: LobbyRepository, catalog: LocationCatalog, config) -> 'LobbyManager':
        return cls(
            repository,
            catalog,
            ttl_seconds=int(config.get('LOBBY_TTL_SECONDS', 86400)),
            write_attempts=int(config.get('WRITE_RETRY_ATTEMPTS', 5)),
            retry_backoff_ms=int(config.get('WRITE_RETRY_BACKOFF_MS', 25)),
            code_attempts=int(config.get('CODE_GENERATION_ATTEMPTS', 20)),
            default_timer_minutes=int(config.get('DEFAULT_TIMER_MINUTES', 8)),
            default_spy_count=int(config.get('DEFAULT_SPY_COUNT', 1)),
        )

    def default_settings(self) -> LobbySettings:
        return LobbySettings(
            location_pool=frozenset(self.catalog.default_sets),
            timer_minutes=self.default_timer_minutes,
            spy_count=self.default_spy_count,
        )

    # ---- validation ----

    def _player_id(self, raw: Optional[str]) -> str:
        if raw is None:
            return uuid4().hex
        if not isinstance(raw, str) or not raw.strip() or len(raw) > PLAYER_ID_MAX_LENGTH:
            raise ValidationError('player_id', 'Player id must be a non-empty string')
        return raw

    def validate_settings(self, partial: Any) -> Dict[str, Any]:
        """Check a partial settings payload and return the normalized fields."""
        if not isinstance(partial, dict):
            raise ValidationError('settings', 'Settings must be an object')
        unknown = sorted(set(partial) - set(SETTINGS_FIELDS))
        if unknown:
            raise ValidationError('settings', f'Unknown settings: {", ".join(unknown)}')
        clean: Dict[str, Any] = {}
        if 'timer_minutes' in partial:
            value = partial['timer_minutes']
            if not _is_int(value) or not 1 <= value <= MAX_TIMER_MINUTES:
                raise ValidationError('timer_minutes', f'Timer must be between 1 and {MAX_TIMER_MINUTES} minutes')
            clean['timer_minutes'] = value
        if 'spy_count' in partial:
            value = partial['spy_count']
            if not _is_int(value) or value < 1:
                raise ValidationError('spy_count', 'Spy count must be at least 1')
            clean['spy_count'] = value
        if 'location_pool' in partial:
            value = partial['location_pool']
            if not isinstance(value, (list, tuple, set, frozenset)) or not all(isinstance(k, str) for k in value):
                raise ValidationError('location_pool', 'Location pool must be a list of set names')
            missing = sorted(k for k in value if k not in self.catalog)
            if missing:
                raise ValidationError('location_pool', f'Unknown location sets: {", ".join(missing)}')
            clean['location_pool'] = frozenset(value)
        return clean

    # ---- write path ----

    def _mutate(self, op: str, code: str, change: Change, missing_ok: bool = True) -> Optional[Lobby]:
        for attempt in range(1, self.write_attempts + 1):
            lobby = self.repository.get(code)
            if lobby is None:
                if not missing_ok:
                    raise NotFound(code)
                logger.info(f"[{op}-noop] code={code} reason=missing")
                return None
            expected = lobby.version
            now = self.repository.now_ms()
            changed = change(lobby, now)
            repaired = lobby.repair_hosts()
            if not changed and not repaired:
                # Nothing to write, but the call still counts as activity
                self.repository.touch(code, self.ttl_seconds)
                lobby.last_activity = now
                return lobby
            if not lobby.players:
                if self.repository.delete(code, expected_version=expected):
                    logger.info(f"[lobby-deleted] code={code} op={op}")
                    return None
            else:
                lobby.last_activity = now
                if self.repository.set(code, lobby, self.ttl_seconds, expected_version=expected):
                    return lobby
            logger.info(f"[write-conflict] op={op} code={code} attempt={attempt} version={expected}")
            if attempt < self.write_attempts:
                self._sleep(self.retry_backoff_ms * attempt / 1000.0)
        logger.warning(f"[write-giveup] op={op} code={code} attempts={self.write_attempts}")
        raise WriteConflict(code, self.write_attempts)

    # ---- operations ----

    def create(self, host_name: str, player_id: Optional[str] = None) -> Lobby:
        name = normalize_name(host_name)
        pid = self._player_id(player_id)
        for attempt in range(1, self.code_attempts + 1):
            code = generate_code(self.rng)
            if self.repository.exists(code):
                logger.info(f"[code-collision] code={code} attempt={attempt}")
                continue
            lobby = Lobby(
                code=code,
                settings=self.default_settings(),
                players=[Player(id=pid, name=name, is_host=True)],
            )
            lobby.last_activity = self.repository.now_ms()
            if self.repository.add(code, lobby, self.ttl_seconds):
                logger.info(f"[create] code={code} host={pid}")
                return lobby
            logger.info(f"[code-collision] code={code} attempt={attempt} stage=insert")
        raise GenerationExhausted(self.code_attempts)

    def join(self, code: str, name: str, player_id: Optional[str] = None) -> Tuple[Lobby, Player]:
        code = normalize_code(code)
        name = normalize_name(name)
        pid = self._player_id(player_id)
        joined: List[Player] = []

        def change(lobby: Lobby, now: int) -> bool:
            joined.clear()
            existing = lobby.find_player(pid)
            if existing is not None:
                # Re-entry by a player already seated (a retried join); never admits anyone new
                joined.append(existing)
                return False
            if lobby.status != LobbyStatus.LOBBY:
                raise GameInProgress(code)
            if lobby.name_taken(name):
                raise NameTaken(name)
            player = Player(id=pid, name=name)
            lobby.players.append(player)
            joined.append(player)
            return True

        lobby = self._mutate('join', code, change, missing_ok=False)
        if lobby is None:
            raise NotFound(code)
        logger.info(f"[join] code={code} player={pid} players={len(lobby.players)}")
        return lobby, joined[0]

    def _remove(self, op: str, code: str, player_id: str) -> Optional[Lobby]:
        code = normalize_code(code)

        def change(lobby: Lobby, now: int) -> bool:
            return lobby.remove_player(player_id)

        lobby = self._mutate(op, code, change)
        logger.info(f"[{op}] code={code} player={player_id} remaining={len(lobby.players) if lobby else 0}")
        return lobby

    def leave(self, code: str, player_id: str) -> Optional[Lobby]:
        return self._remove('leave', code, player_id)

    def kick(self, code: str, player_id: str) -> Optional[Lobby]:
        """Remove a player on the host's behalf. Authorization is the caller's job."""
        return self._remove('kick', code, player_id)

    def promote_host(self, code: str, player_id: str) -> Optional[Lobby]:
        code = normalize_code(code)

        def change(lobby: Lobby, now: int) -> bool:
            target = lobby.find_player(player_id)
            if target is None:
                return False
            for p in lobby.players:
                p.is_host = False
            target.is_host = True
            return True

        return self._mutate('promote', code, change)

    def update_settings(self, code: str, partial: Dict[str, Any]) -> Optional[Lobby]:
        code = normalize_code(code)
        clean = self.validate_settings(partial)

        def change(lobby: Lobby, now: int) -> bool:
            merged = lobby.settings.merged(clean)
            if merged == lobby.settings:
                return False
            lobby.settings = merged
            return True

        return self._mutate('settings', code, change)

    def start_game(self, code: str) -> Optional[Lobby]:
        code = normalize_code(code)

        def change(lobby: Lobby, now: int) -> bool:
            if lobby.status != LobbyStatus.LOBBY or not lobby.players:
                logger.info(f"[start-skip] code={code} status={lobby.status.value}")
                return False
            apply_assignment(lobby, assign(lobby.players, lobby.settings, self.catalog, self.rng))
            lobby.status = LobbyStatus.IN_PROGRESS
            clock.start(lobby, now)
            return True

        lobby = self._mutate('start', code, change)
        if lobby is not None and lobby.status == LobbyStatus.IN_PROGRESS:
            logger.info(f"[start] code={code} players={len(lobby.players)} spy_count={lobby.settings.spy_count}")
        return lobby

    def toggle_pause(self, code: str) -> Optional[Lobby]:
        code = normalize_code(code)

        def change(lobby: Lobby, now: int) -> bool:
            if lobby.status != LobbyStatus.IN_PROGRESS:
                return False
            clock.toggle(lobby, now)
            return True

        lobby = self._mutate('pause', code, change)
        if lobby is not None and lobby.status == LobbyStatus.IN_PROGRESS:
            logger.info(f"[pause] code={code} paused={lobby.is_paused} accumulated={lobby.timer_accumulated}")
        return lobby

    def _finish_round(self, op: str, code: str, next_status: LobbyStatus) -> Optional[Lobby]:
        code = normalize_code(code)

        def change(lobby: Lobby, now: int) -> bool:
            if lobby.status != LobbyStatus.IN_PROGRESS:
                logger.info(f"[{op}-skip] code={code} status={lobby.status.value}")
                return False
            lobby.clear_round()
            lobby.status = next_status
            return True

        return self._mutate(op, code, change)

    def end_game(self, code: str) -> Optional[Lobby]:
        return self._finish_round('end', code, LobbyStatus.FINISHED)

    def reset_game(self, code: str) -> Optional[Lobby]:
        return self._finish_round('reset', code, LobbyStatus.LOBBY)

    # ---- read path ----

    def pool_locations(self, settings: LobbySettings) -> List[str]:
        pool = self.catalog.pool(settings.location_pool) or self.catalog.default_pool()
        return [entry.location for entry in pool]

    def get_state(self, code: str, viewer_id: str) -> Dict[str, Any]:
        code = normalize_code(code)
        if not isinstance(viewer_id, str) or not viewer_id:
            raise ValidationError('player_id', 'Player id is required')
        lobby = self.repository.get(code)
        if lobby is None:
            raise NotFound(code)
        view = project(lobby, viewer_id, self.repository.now_ms(), self.pool_locations(lobby.settings))
        self.repository.touch(code, self.ttl_seconds)
        return view
