"""Classify public ice-time sessions by their vendor names."""
import re
from typing import Optional

STICK_AND_PUCK = 'stick-and-puck'
PUBLIC_SKATE = 'public-skate'
DROP_IN = 'drop-in'
OPEN_HOCKEY = 'open-hockey'

_STICK_N_PUCK = re.compile(r'\bstick\s*n\s*puck\b')
_OPEN_SKATE = re.compile(r'\bopen\s+skat')


def classify_session_type(event_name: str, event_type_name: str = '') -> Optional[str]:
    """
    Map an event to a public session type.

    Stick & puck is checked first because it is the most specific. Anything
    that is not public ice (lessons, games, league play, private rentals)
    yields None.

    Args:
        event_name: Event name as listed by the facility
        event_type_name: Name of the vendor's event type, if any

    Returns:
        One of the session type constants or None
    """
    combined = f"{event_name or ''} | {event_type_name or ''}".lower()

    if 'stick' in combined and 'puck' in combined:
        return STICK_AND_PUCK
    if 's&p' in combined or 's & p' in combined or _STICK_N_PUCK.search(combined):
        return STICK_AND_PUCK

    if 'public' in combined and 'skat' in combined:
        return PUBLIC_SKATE
    if _OPEN_SKATE.search(combined) or 'family skate' in combined:
        return PUBLIC_SKATE

    if 'drop-in' in combined or 'drop in' in combined:
        return DROP_IN
    if 'rat hockey' in combined or 'shinny' in combined:
        return DROP_IN

    if 'open hockey' in combined:
        return OPEN_HOCKEY
    if any(term in combined for term in ('pickup hockey', 'pick-up hockey', 'pick up hockey')):
        return OPEN_HOCKEY
    if 'adult hockey' in combined and 'league' not in combined:
        return OPEN_HOCKEY
    if 'adult open' in combined and 'hock' in combined:
        return OPEN_HOCKEY

    return None
