"""Reference table of locations and their roles, grouped into sets (e.g. ``spyfall1``)."""

import json
import os
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple


DEFAULT_LOCATIONS_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), 'data', 'locations.json')


@dataclass(frozen=True)
class LocationEntry:
    location: str
    roles: Tuple[str, ...]

    def to_dict(self) -> dict:
        return {'location': self.location, 'roles': list(self.roles)}


class LocationCatalog:
    """Immutable mapping of set key -> ordered location entries."""

    def __init__(self, sets: Mapping[str, Iterable[dict]], default_sets: Iterable[str] = ('spyfall1',)):
        parsed: Dict[str, Tuple[LocationEntry, ...]] = {}
        for key, entries in sets.items():
            items = []
            for raw in entries:
                roles = tuple(raw.get('roles') or ())
                if not roles:
                    raise ValueError(f"Location '{raw.get('location')}' in set '{key}' has no roles")
                items.append(LocationEntry(location=raw['location'], roles=roles))
            parsed[key] = tuple(items)
        self._sets = MappingProxyType(parsed)
        self.default_sets = tuple(default_sets)
        missing = [k for k in self.default_sets if k not in self._sets]
        if missing:
            raise ValueError(f'Default location sets not in catalog: {missing}')
        if not self.default_pool():
            raise ValueError('Default location pool is empty')

    @classmethod
    def from_file(cls, path: Optional[str] = None, default_sets: Iterable[str] = ('spyfall1',)) -> 'LocationCatalog':
        with open(path or DEFAULT_LOCATIONS_PATH, encoding='utf-8') as fh:
            return cls(json.load(fh), default_sets=default_sets)

    @property
    def set_keys(self) -> Tuple[str, ...]:
        return tuple(self._sets.keys())

    def __contains__(self, key: str) -> bool:
        return key in self._sets

    def pool(self, keys: Iterable[str]) -> List[LocationEntry]:
        """Union of the entries of every known set in ``keys``, in catalog order."""
        wanted = set(keys)
        seen = set()
        entries: List[LocationEntry] = []
        for key, items in self._sets.items():
            if key not in wanted:
                continue
            for entry in items:
                if entry.location in seen:
                    continue
                seen.add(entry.location)
                entries.append(entry)
        return entries

    def default_pool(self) -> List[LocationEntry]:
        return self.pool(self.default_sets)

    def to_dict(self) -> dict:
        return {key: [e.to_dict() for e in items] for key, items in self._sets.items()}
