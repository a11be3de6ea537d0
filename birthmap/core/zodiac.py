# birthmap/core/zodiac.py
from __future__ import annotations

from enum import IntEnum
from typing import Any, Optional
import math

from birthmap.core.angles import ensure_finite
from birthmap.utils.cache import LRUCache

__all__ = ["ZodiacSign", "SIGN_NAMES", "sign_of", "SignCache"]

SIGN_NAMES = (
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces",
)


class ZodiacSign(IntEnum):
    ARIES = 0
    TAURUS = 1
    GEMINI = 2
    CANCER = 3
    LEO = 4
    VIRGO = 5
    LIBRA = 6
    SCORPIO = 7
    SAGITTARIUS = 8
    CAPRICORN = 9
    AQUARIUS = 10
    PISCES = 11

    @property
    def label(self) -> str:
        return SIGN_NAMES[self.value]

    @property
    def start_deg(self) -> float:
        return 30.0 * self.value


def sign_of(longitude: Any) -> Optional[ZodiacSign]:
    """
    Sign containing an ecliptic longitude that is already normalised to
    [0, 360). Values outside the table give None rather than wrapping.
    """
    v = ensure_finite(longitude, "longitude")
    if not 0.0 <= v < 360.0:
        return None
    return ZodiacSign(int(math.floor(v / 30.0)) % 12)


class SignCache:
    """
    Explicit memo for sign_of, keyed by the exact float value.
    Two longitudes that differ only by float noise are distinct keys.
    """

    def __init__(self, capacity: int = 4096):
        self._lru = LRUCache(capacity)

    def sign_of(self, longitude: Any) -> Optional[ZodiacSign]:
        v = ensure_finite(longitude, "longitude")
        return self._lru.get_or_compute(v, lambda: sign_of(v))

    def clear(self) -> None:
        self._lru.clear()

    @property
    def stats(self) -> dict:
        return {"size": len(self._lru), "hits": self._lru.hits, "misses": self._lru.misses}
