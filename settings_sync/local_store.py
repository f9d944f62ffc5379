"""Observable in-memory settings state."""
import copy
import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any], Dict[str, Any]], None]

DEFAULT_STATE: Dict[str, Any] = {
    'favorite_ids': [],
    'child_profiles': [],
    'active_child_ids': [],
    'registrations': [],
    'team_theme_id': None,
    'color_mode': 'system',
    'home_location': None,
    'notifications_enabled': True,
    'auto_refresh_interval': 15,
    'preferred_currency': 'USD',
    'daysmart_config': {'email': '', 'password': '', 'facility_id': '', 'session_token': None},
    'icehockeypro_config': {'email': '', 'password': '', 'session_token': None},
    'email_scan_config': {'enabled': False, 'last_scan_at': None},
}


class LocalSettingsStore:
    """Holds the app's settings and notifies listeners on every update.

    Listeners are called synchronously, in subscription order, with the new
    and the previous state. Both are copies.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._state = copy.deepcopy(DEFAULT_STATE)
        if initial:
            self._state.update(copy.deepcopy(initial))
        self._listeners: List[Listener] = []

    def get_state(self) -> Dict[str, Any]:
        return copy.deepcopy(self._state)

    def set_state(self, updates: Dict[str, Any]) -> None:
        """
        Apply a partial update and notify listeners once.

        Args:
            updates: Keys to replace at the top level
        """
        if not updates:
            return
        previous = self._state
        self._state = {**previous, **copy.deepcopy(updates)}
        logger.debug(f"Settings updated: {sorted(updates)}")
        for listener in list(self._listeners):
            listener(self.get_state(), copy.deepcopy(previous))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener; calling it twice is harmless
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
