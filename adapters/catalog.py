"""Cached reader for public (no login) facility catalogs."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from adapters.base import FacilityAdapter
from adapters.errors import FacilityError
from processor.models import CatalogSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    sessions: Tuple[CatalogSession, ...]
    expires_at: float
    confirmed: bool


class PublicCatalogReader:
    """Reads public sessions and camps from several adapters.

    Results are cached per (vendor, facility). A vendor outage never raises
    out of this class: the last known list (or an empty one) is returned
    and the failure is remembered for a shorter time so it is retried soon.
    """

    CONFIRMED_TTL = 15 * 60  # seconds
    FAILURE_TTL = 2 * 60  # seconds

    def __init__(self, adapters: Dict[str, FacilityAdapter],
                 clock: Callable[[], float] = time.monotonic):
        """
        Initialize the reader.

        Args:
            adapters: Adapters keyed by vendor name
            clock: Monotonic clock, replaceable in tests
        """
        self.adapters = adapters
        self.clock = clock
        self._cache: Dict[Tuple[str, str], CacheEntry] = {}

    def get_sessions(self, vendor: str, facility_id: Optional[str] = None,
                     force_refresh: bool = False) -> List[CatalogSession]:
        """
        Return the catalog of one facility, from cache when still fresh.

        Args:
            vendor: Vendor name ("daysmart", "icehockeypro")
            facility_id: Facility slug where the vendor hosts several
            force_refresh: Ignore a fresh cache entry

        Returns:
            List of CatalogSession records

        Raises:
            ValueError: If no adapter is registered for the vendor
        """
        adapter = self.adapters.get(vendor)
        if adapter is None:
            raise ValueError(f"Unknown vendor: {vendor}")

        key = (vendor, facility_id or '')
        now = self.clock()
        entry = self._cache.get(key)
        if entry is not None and not force_refresh and now < entry.expires_at:
            return list(entry.sessions)

        try:
            sessions = adapter.list_public_catalog(facility_id)
        except FacilityError as e:
            stale = entry.sessions if entry is not None else ()
            logger.warning(
                f"Catalog fetch failed for {vendor}/{facility_id or '-'} ({e.code}); "
                f"serving {len(stale)} cached sessions"
            )
            self._cache[key] = CacheEntry(stale, now + self.FAILURE_TTL, confirmed=False)
            return list(stale)

        self._cache[key] = CacheEntry(tuple(sessions), now + self.CONFIRMED_TTL, confirmed=True)
        return list(sessions)

    def get_all(self, sources: Iterable[Tuple[str, Optional[str]]]) -> List[CatalogSession]:
        """Merge several catalogs, ordered by date then start time."""
        merged = []
        for vendor, facility_id in sources:
            merged.extend(self.get_sessions(vendor, facility_id))
        return sorted(merged, key=lambda s: (s.date or '', s.start_time or ''))

    def is_confirmed(self, vendor: str, facility_id: Optional[str] = None) -> bool:
        """True if the cached entry came from a successful fetch."""
        entry = self._cache.get((vendor, facility_id or ''))
        return entry is not None and entry.confirmed

    def invalidate(self, vendor: Optional[str] = None) -> None:
        if vendor is None:
            self._cache.clear()
            return
        for key in [k for k in self._cache if k[0] == vendor]:
            del self._cache[key]
