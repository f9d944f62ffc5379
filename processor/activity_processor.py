"""Normalization helpers that turn vendor values into canonical fields."""
import hashlib
import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

from adapters.errors import UpstreamSchemaMismatch
from processor.models import Activity

logger = logging.getLogger(__name__)


class ActivityProcessor:
    """Validates and normalizes activity data coming from adapters."""

    MAX_NAME_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 2000
    DEFAULT_CATEGORY = 'Hockey'
    DEFAULT_NAME = 'Activity'

    def parse_timestamp(self, raw: Optional[str]) -> Optional[datetime]:
        """
        Parse a vendor timestamp.

        Naive strings are facility-local wall-clock times and are kept as
        they are. Zulu/offset strings are converted to naive UTC.

        Args:
            raw: Timestamp such as "2026-01-15T06:00:00" or "2026-01-15 06:00:00Z"

        Returns:
            Naive datetime or None if the value is empty or unparseable
        """
        if not raw or not isinstance(raw, str):
            return None

        text = raw.strip().replace(' ', 'T', 1)
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'

        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        return parsed

    def normalize_window(self, start_raw: Optional[str],
                         end_raw: Optional[str]) -> Tuple[datetime, datetime]:
        """
        Resolve the start/end pair of an activity.

        A missing end defaults to the start. An end before the start is
        clamped to the start so that start_date <= end_date always holds.

        Raises:
            UpstreamSchemaMismatch: If the start timestamp is missing or invalid
        """
        start = self.parse_timestamp(start_raw)
        if start is None:
            raise UpstreamSchemaMismatch(f"Unparseable start timestamp: {start_raw!r}")

        end = self.parse_timestamp(end_raw) or start
        if end < start:
            logger.warning(f"End {end_raw!r} precedes start {start_raw!r}; using start")
            end = start
        return start, end

    def normalize_price(self, amount) -> Decimal:
        """
        Convert a vendor amount to a non-negative Decimal.

        Missing amounts are zero. Negative amounts (refund lines) are
        clamped to zero.
        """
        if amount is None or amount == '':
            return Decimal('0')
        try:
            price = Decimal(str(amount))
        except InvalidOperation:
            logger.warning(f"Ignoring non-numeric amount: {amount!r}")
            return Decimal('0')
        if not price.is_finite():
            return Decimal('0')
        if price < 0:
            logger.warning(f"Clamping negative amount {price} to zero")
            return Decimal('0')
        return price

    def format_clock(self, value: datetime) -> str:
        """Format a time of day like "06:30 PM"."""
        return value.strftime('%I:%M %p')

    def truncate_name(self, name: Optional[str]) -> str:
        return (name or self.DEFAULT_NAME).strip()[:self.MAX_NAME_LENGTH]

    def truncate_description(self, description: Optional[str]) -> str:
        return (description or '').strip()[:self.MAX_DESCRIPTION_LENGTH]

    def partition(self, activities: Iterable[Activity],
                  today: Optional[date] = None) -> Tuple[List[Activity], List[Activity]]:
        """
        Split activities into upcoming (ends today or later) and past.

        Args:
            activities: Canonical activities
            today: Reference date (default: today)

        Returns:
            Tuple of (upcoming, past), each preserving input order
        """
        cutoff = (today or date.today()).isoformat()
        upcoming = []
        past = []
        for activity in activities:
            if activity.end_date >= cutoff:
                upcoming.append(activity)
            else:
                past.append(activity)
        return upcoming, past

    def normalize_date(self, date_str: Optional[str]) -> Optional[str]:
        """
        Normalize date to ISO 8601 format (YYYY-MM-DD).

        Args:
            date_str: Date string in various formats

        Returns:
            ISO 8601 formatted date string or None if parsing fails
        """
        if not date_str:
            return None

        date_formats = [
            '%Y-%m-%d',      # ISO 8601
            '%m/%d/%Y',      # US format
            '%B %d, %Y',     # Full month name
            '%b %d, %Y',     # Abbreviated month name
        ]

        text = date_str.strip()
        if len(text) > 10 and text[4] == '-' and 'T' in text:
            text = text[:10]

        for fmt in date_formats:
            try:
                return datetime.strptime(text, fmt).strftime('%Y-%m-%d')
            except ValueError:
                continue

        return None

    def generate_record_id(self, *parts: str) -> str:
        """
        Build a stable identifier from the given parts (SHA256 of "a|b|c").

        Used for vendor records that carry no id of their own.
        """
        composite = '|'.join(part or '' for part in parts)
        return hashlib.sha256(composite.encode('utf-8')).hexdigest()
