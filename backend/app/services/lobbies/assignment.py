"""Pick the round's location and deal roles.

Pure: the caller applies the result to the lobby. Randomness comes from an
injected ``random.Random`` so a seeded generator reproduces a deal exactly.
"""

import random
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .catalog import LocationCatalog
from .state import Lobby, LobbySettings, Player, SPY_ROLE


@dataclass(frozen=True)
class Assignment:
    location: str
    roles: Dict[str, str]  # player id -> role
    spies: frozenset

    def is_spy(self, player_id: str) -> bool:
        return player_id in self.spies


def assign(players: Sequence[Player], settings: LobbySettings, catalog: LocationCatalog,
           rng: Optional[random.Random] = None) -> Assignment:
    rng = rng or random.Random()

    pool = catalog.pool(settings.location_pool) or catalog.default_pool()
    entry = rng.choice(pool)
    roles = entry.roles

    order = list(players)
    rng.shuffle(order)

    # Never more spies than players
    spy_count = min(settings.spy_count, len(order))
    dealt: Dict[str, str] = {}
    spies = set()
    for index, player in enumerate(order):
        if index < spy_count:
            dealt[player.id] = SPY_ROLE
            spies.add(player.id)
        else:
            dealt[player.id] = roles[index % len(roles)]
    return Assignment(location=entry.location, roles=dealt, spies=frozenset(spies))


def apply_assignment(lobby: Lobby, assignment: Assignment) -> None:
    lobby.location = assignment.location
    for p in lobby.players:
        p.role = assignment.roles[p.id]
        p.is_spy = assignment.is_spy(p.id)
