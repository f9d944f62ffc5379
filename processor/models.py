"""Canonical records shared by the facility adapters and the application."""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, List, Optional


@dataclass(frozen=True)
class FacilityCredential:
    """Login material for one linked facility account.

    The session token is vendor-issued and device-local; it is never part of
    the synchronized settings document.
    """
    facility_id: str
    principal_email: str
    secret: str
    session_token: Optional[str] = None

    def with_session(self, session_token: str) -> 'FacilityCredential':
        """Return a copy carrying a fresh session token (relogin)."""
        return replace(self, session_token=session_token)

    def cleared(self) -> 'FacilityCredential':
        """Return an empty credential for the same facility (disconnect)."""
        return FacilityCredential(
            facility_id=self.facility_id,
            principal_email='',
            secret='',
            session_token=None
        )


@dataclass(frozen=True)
class RosterMember:
    """Person linked to a vendor account (player, sibling, parent)."""
    id: str
    name: str


@dataclass(frozen=True)
class ChildProfile:
    """Player profile owned by the application, used as a matching corpus."""
    id: str
    display_name: str
    date_of_birth: Optional[str] = None


@dataclass
class AuthResult:
    """Outcome of a successful authenticate() call."""
    session_token: str
    roster_members: List[RosterMember]
    facility_id: str
    facility_name: str
    has_orders: bool = False


@dataclass(frozen=True)
class Activity:
    """Registered event normalized from a structured-API vendor."""
    id: str
    name: str
    description: str
    start_date: str
    end_date: str
    start_time: str
    end_time: str
    location_name: str
    price: Decimal
    currency: str
    category: str
    registered: bool
    owner_name: str
    owner_id: str


@dataclass(frozen=True)
class Order:
    """Purchase scraped from a storefront vendor's order history."""
    order_id: str
    item_name: str
    location: str
    date_range_text: str
    price: Decimal
    currency: str
    billing_name: str
    billing_address: str
    status: str
    order_date: str
    matched_profile_id: Optional[str] = None

    def reassigned(self, profile_id: Optional[str]) -> 'Order':
        """Return a copy attributed to another profile (user correction)."""
        return replace(self, matched_profile_id=profile_id)


@dataclass(frozen=True)
class CatalogSession:
    """Publicly listed session, camp or clinic."""
    session_id: str
    name: str
    source: str
    location: str = ''
    dates: str = ''
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    price: Decimal = Decimal('0')
    currency: str = 'USD'
    description: str = ''
    url: Optional[str] = None
    image_url: Optional[str] = None
    session_type: Optional[str] = None


@dataclass(frozen=True)
class Program:
    """Bookable program offered to one roster member."""
    id: str
    name: str
    description: str
    category: str
    start_date: str
    end_date: str
    price: Decimal
    location: str
    spots_available: int
    customer_id: str
    skill_level: str
    age_range: str
    season: str


@dataclass(frozen=True)
class ImportIssue:
    """A single record that could not be imported."""
    reference: str
    message: str


@dataclass
class ActivityImportResult:
    """Full replacement set of activities for one facility."""
    activities: List[Activity]
    upcoming: List[Activity]
    past: List[Activity]
    facility_name: str
    owner_names: Dict[str, str] = field(default_factory=dict)
    errors: List[ImportIssue] = field(default_factory=list)


@dataclass
class OrderImportResult:
    """Orders split by whether a known profile was matched."""
    matched: List[Order]
    unmatched: List[Order]
    errors: List[ImportIssue] = field(default_factory=list)
    scraped_links: int = 0
    skipped_links: int = 0
