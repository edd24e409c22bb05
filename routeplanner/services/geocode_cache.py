from __future__ import annotations

from typing import Dict, Optional, Tuple

from ..schemas.route import Coordinate

CacheKey = Tuple[float, float]


class GeocodeCache:
    """Process-lifetime memo of reverse-geocoded addresses.

    Keys are coordinates rounded to ``precision`` decimal degrees, so two
    clicks within roughly a metre of each other share one lookup. Entries are
    never evicted; the area a user visits is small.
    """

    def __init__(self, precision: int = 5) -> None:
        self.precision = precision
        self._entries: Dict[CacheKey, str] = {}

    def key_for(self, coord: Coordinate) -> CacheKey:
        lng, lat = coord
        return (round(float(lng), self.precision), round(float(lat), self.precision))

    def get(self, coord: Coordinate) -> Optional[str]:
        return self._entries.get(self.key_for(coord))

    def put(self, coord: Coordinate, address: str) -> None:
        self._entries[self.key_for(coord)] = address

    def __contains__(self, coord: Coordinate) -> bool:
        return self.key_for(coord) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
