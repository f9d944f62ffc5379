"""Client-side settings synchronization: debounced push, one guarded pull."""
import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

from settings_sync.local_store import LocalSettingsStore
from settings_sync.policy import build_sync_document, merge_remote
from settings_sync.remote_client import RemoteSettingsClient, RemoteSyncError

logger = logging.getLogger(__name__)


def fingerprint(document: Dict[str, Any]) -> str:
    return json.dumps(document, sort_keys=True, default=str)


class SettingsSyncEngine:
    """Keeps the local settings store and the remote document in step.

    While the user is signed in, every local change re-arms a debounce
    timer; when it fires the whitelisted document is pushed. On sign-in the
    remote document is pulled once and merged. The ``applying_remote`` flag
    is raised before the merged state is written and lowered only after the
    store's observers have run, so the merge is never pushed straight back.

    All methods must be called from the event loop thread.
    """

    DEBOUNCE_SECONDS = 3.0
    GUARD_SETTLE_SECONDS = 0.1

    def __init__(self, store: LocalSettingsStore, remote: RemoteSettingsClient,
                 debounce_seconds: Optional[float] = None,
                 settle_seconds: Optional[float] = None):
        """
        Initialize the engine.

        Args:
            store: Observable local settings
            remote: Blocking client for the remote document
            debounce_seconds: Quiet period before a push (default: 3.0)
            settle_seconds: Delay before the re-entrancy guard drops (default: 0.1)
        """
        self.store = store
        self.remote = remote
        self.debounce_seconds = self.DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.settle_seconds = self.GUARD_SETTLE_SECONDS if settle_seconds is None else settle_seconds

        self.authenticated = False
        self.has_pulled = False
        self.applying_remote = False
        self.push_task: Optional[asyncio.Task] = None
        self._push_lock: Optional[asyncio.Lock] = None

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._guard_timer: Optional[asyncio.TimerHandle] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._last_synced: Optional[str] = None

    @property
    def push_pending(self) -> bool:
        return self._timer is not None

    async def on_auth_state(self, authenticated: bool) -> None:
        """
        React to sign-in and sign-out.

        Signing in subscribes to the store and pulls once per session.
        Signing out cancels any pending push and resets the session flags.
        """
        if authenticated and not self.authenticated:
            self._loop = asyncio.get_running_loop()
            self._push_lock = asyncio.Lock()
            self.authenticated = True
            self._unsubscribe = self.store.subscribe(self._on_local_change)
            logger.info("Settings sync started")
            await self.pull()
        elif not authenticated and self.authenticated:
            self.sign_out()

    def sign_out(self) -> None:
        self.authenticated = False
        self.has_pulled = False
        self.applying_remote = False
        self._last_synced = None
        self._cancel_timer()
        if self._guard_timer is not None:
            self._guard_timer.cancel()
            self._guard_timer = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.info("Settings sync stopped")

    async def pull(self) -> bool:
        """
        Fetch the remote document and merge it into local state.

        Runs at most once per signed-in session. A failure leaves local
        state untouched and allows the next sign-in to try again.

        Returns:
            True if a remote document was merged
        """
        if self.has_pulled or not self.authenticated:
            return False
        self.has_pulled = True

        try:
            remote = await asyncio.to_thread(self.remote.get_settings)
        except RemoteSyncError as e:
            logger.warning(f"Settings pull failed: {e}")
            self.has_pulled = False
            return False

        if not self.authenticated:
            return False
        if remote is None:
            logger.info("No remote settings stored yet")
            return False

        self._apply_remote(remote)
        return True

    def _apply_remote(self, remote: Dict[str, Any]) -> None:
        updates = merge_remote(self.store.get_state(), remote)
        self._last_synced = fingerprint(build_sync_document(remote))
        if not updates:
            return

        logger.info(f"Merging remote settings: {sorted(updates)}")
        self.applying_remote = True
        try:
            self.store.set_state(updates)
        finally:
            self._guard_timer = self._loop.call_later(self.settle_seconds, self._release_guard)

    def _release_guard(self) -> None:
        self._guard_timer = None
        self.applying_remote = False

    def _on_local_change(self, state: Dict[str, Any], previous: Dict[str, Any]) -> None:
        if self.applying_remote or not self.authenticated:
            return
        self._cancel_timer()
        self._timer = self._loop.call_later(self.debounce_seconds, self._fire_push)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire_push(self) -> None:
        self._timer = None
        self.push_task = self._loop.create_task(self.push_now())

    async def push_now(self) -> bool:
        """
        Push the current document unless the server already has it.

        Only one push is in flight at a time. A push that has to wait
        builds its document after the previous one completes, so the last
        write always carries the newest local state.

        Failures are logged; the next local change schedules another try.

        Returns:
            True if a document was written
        """
        if not self.authenticated:
            return False

        async with self._push_lock:
            if not self.authenticated:
                return False

            document = build_sync_document(self.store.get_state())
            current = fingerprint(document)
            if current == self._last_synced:
                logger.debug("Settings unchanged since last sync; skipping push")
                return False

            try:
                await asyncio.to_thread(self.remote.put_settings, document)
            except RemoteSyncError as e:
                logger.warning(f"Settings push failed: {e}")
                return False

            if self.authenticated:
                self._last_synced = current
            return True

    async def flush(self) -> bool:
        """Push immediately if a debounced push is pending."""
        if self._timer is None:
            return False
        self._cancel_timer()
        return await self.push_now()
