"""Contract implemented by every facility adapter."""
from abc import ABC, abstractmethod
from enum import Enum
from typing import List, Optional, Sequence

from adapters.errors import UnsupportedOperation
from processor.models import (
    ActivityImportResult,
    AuthResult,
    CatalogSession,
    ChildProfile,
    OrderImportResult,
)


class AdapterState(Enum):
    UNAUTHENTICATED = 'unauthenticated'
    AUTHENTICATING = 'authenticating'
    AUTHENTICATED = 'authenticated'
    SYNCING_ACTIVITIES = 'syncing_activities'
    SYNCING_CATALOG = 'syncing_catalog'


class FacilityAdapter(ABC):
    """
    Vendor-specific integration normalizing into canonical records.

    Adapters perform network I/O only and keep no persistent state beyond
    their lifecycle ``state``. Failures are raised as FacilityError
    subclasses so callers can tell a bad login from an expired session, a
    network outage or a vendor schema change.
    """

    vendor: str = ''

    def __init__(self):
        self.state = AdapterState.UNAUTHENTICATED

    @abstractmethod
    def authenticate(self, email: str, secret: str,
                     facility_id: Optional[str] = None) -> AuthResult:
        """Log in and return the session token plus discovered roster."""

    def import_activities(self, facility_id: str, session_token: str,
                          owner_ids: Sequence[str] = ()) -> ActivityImportResult:
        """Fetch registered activities for the given owners."""
        raise UnsupportedOperation(f'{self.vendor} does not expose registered activities')

    def import_orders(self, session_token: str,
                      profiles: Sequence[ChildProfile] = ()) -> OrderImportResult:
        """Fetch purchase history and attribute orders to known profiles."""
        raise UnsupportedOperation(f'{self.vendor} does not expose order history')

    @abstractmethod
    def list_public_catalog(self, facility_id: Optional[str] = None) -> List[CatalogSession]:
        """Read the vendor's public schedule without authentication."""
