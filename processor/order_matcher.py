"""Attribute scraped orders to the caller's known player profiles.

Billing names are free text typed by the payer, so this is a heuristic and
never an identity guarantee. Two tiers are tried, each in roster order with
the first hit winning:

1. the profile name is a case-insensitive substring of the billing name;
2. the profile name's words appear in order among the billing name's words
   ("Jane A Smith" matches "Jane Smith").

Overlapping names ("Ann Lee" / "Joann Lee") are not disambiguated beyond
roster order.
"""
import re
from typing import List, Optional, Sequence, Tuple

from processor.models import ChildProfile, Order

WORD_PATTERN = re.compile(r"[a-z0-9']+")


def _words(text: str) -> List[str]:
    return WORD_PATTERN.findall(text.lower())


def _is_ordered_subsequence(needle: List[str], haystack: List[str]) -> bool:
    remaining = iter(haystack)
    return all(word in remaining for word in needle)


def match_profile(billing_name: str,
                  profiles: Sequence[ChildProfile]) -> Optional[ChildProfile]:
    """
    Find the profile a billing name most plausibly refers to.

    Args:
        billing_name: Name from the order's billing address
        profiles: Candidate profiles in roster order

    Returns:
        The first matching profile or None
    """
    billing_lower = (billing_name or '').lower()
    if not billing_lower.strip():
        return None

    candidates = [p for p in profiles if p.display_name and p.display_name.strip()]

    for profile in candidates:
        if profile.display_name.strip().lower() in billing_lower:
            return profile

    billing_words = _words(billing_lower)
    for profile in candidates:
        profile_words = _words(profile.display_name)
        if profile_words and _is_ordered_subsequence(profile_words, billing_words):
            return profile

    return None


def match_orders(orders: Sequence[Order],
                 profiles: Sequence[ChildProfile]) -> Tuple[List[Order], List[Order]]:
    """
    Assign matched_profile_id to each order.

    Returns:
        Tuple of (matched, unmatched) orders
    """
    matched = []
    unmatched = []
    for order in orders:
        profile = match_profile(order.billing_name, profiles)
        if profile is None:
            unmatched.append(order.reassigned(None))
        else:
            matched.append(order.reassigned(profile.id))
    return matched, unmatched
