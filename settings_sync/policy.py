"""Which settings are synchronized and how a pulled document is merged.

Field classes:

* set-valued: union of local and remote, local order first
* seeded once: remote is adopted only while local is empty
* scalar preferences: remote wins whenever it carries a value
* credential configs: adopted only when local has no account email;
  the vendor session token never leaves the device
* push only: backed up remotely, never pulled back
"""
import copy
from typing import Any, Dict

SET_VALUED = ('favorite_ids',)
SEEDED_COLLECTIONS = ('child_profiles', 'registrations')
SEEDED_SCALARS = ('home_location',)
SCALAR_PREFERENCES = (
    'team_theme_id',
    'color_mode',
    'notifications_enabled',
    'auto_refresh_interval',
    'preferred_currency',
)
CREDENTIAL_CONFIGS = ('daysmart_config', 'icehockeypro_config')
PUSH_ONLY = ('email_scan_config',)

# Follows child_profiles: adopted together with a seeded roster
ROSTER_SELECTION = 'active_child_ids'

EPHEMERAL_FIELDS = ('session_token',)

SYNC_KEYS = (
    SET_VALUED + SEEDED_COLLECTIONS + (ROSTER_SELECTION,) + SEEDED_SCALARS
    + SCALAR_PREFERENCES + CREDENTIAL_CONFIGS + PUSH_ONLY
)


def strip_ephemeral(config: Any) -> Any:
    """Drop vendor session tokens from a credential config."""
    if not isinstance(config, dict):
        return config
    return {k: v for k, v in config.items() if k not in EPHEMERAL_FIELDS}


def build_sync_document(state: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the document pushed to the remote store.

    Only whitelisted keys are included and credential configs lose their
    session token.

    Args:
        state: Full local settings state

    Returns:
        New dict safe to serialize
    """
    document = {}
    for key in SYNC_KEYS:
        if key not in state:
            continue
        value = copy.deepcopy(state[key])
        if key in CREDENTIAL_CONFIGS:
            value = strip_ephemeral(value)
        document[key] = value
    return document


def merge_remote(local: Dict[str, Any], remote: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a pulled document into local state.

    Args:
        local: Current local settings state
        remote: Document read from the remote store

    Returns:
        Partial update containing only keys whose value changes; applying
        it with one store update keeps the merge atomic for observers
    """
    updates: Dict[str, Any] = {}

    for key in SET_VALUED:
        remote_items = remote.get(key)
        if not isinstance(remote_items, list) or not remote_items:
            continue
        local_items = list(local.get(key) or [])
        merged = list(dict.fromkeys(local_items + remote_items))
        if merged != local_items:
            updates[key] = merged

    for key in SEEDED_COLLECTIONS:
        remote_items = remote.get(key)
        if local.get(key) or not isinstance(remote_items, list) or not remote_items:
            continue
        updates[key] = copy.deepcopy(remote_items)
        if key == 'child_profiles' and isinstance(remote.get(ROSTER_SELECTION), list):
            updates[ROSTER_SELECTION] = list(remote[ROSTER_SELECTION])

    for key in SEEDED_SCALARS:
        if not local.get(key) and remote.get(key):
            updates[key] = copy.deepcopy(remote[key])

    for key in SCALAR_PREFERENCES:
        if remote.get(key) is not None and remote[key] != local.get(key):
            updates[key] = remote[key]

    for key in CREDENTIAL_CONFIGS:
        remote_config = remote.get(key)
        local_config = local.get(key) or {}
        if not isinstance(remote_config, dict) or not remote_config.get('email'):
            continue
        if local_config.get('email'):
            continue
        adopted = {**local_config, **strip_ephemeral(remote_config)}
        adopted['session_token'] = local_config.get('session_token')
        updates[key] = adopted

    return updates
