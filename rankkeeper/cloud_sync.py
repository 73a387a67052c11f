"""
rankkeeper/cloud_sync.py
Keeps the local rating store and the remote copy eventually consistent.

Pushes are fire-and-forget: every store change schedules one on the background
scheduler. A push only runs once the session is reconciled (the remote history has
been pulled and merged) and when no other push or pull is in flight; otherwise it is
dropped, because the next mutation schedules a fresh one anyway.
"""

import threading
from typing import Callable, Optional
from rankkeeper.events import StoreEvent
from rankkeeper.errors import RemotePayloadError, RemoteSyncError
from rankkeeper.logger import create_logger
from rankkeeper.rating_store import RatingStore, new_session_id, wall_clock_ms
from rankkeeper.remote import CloudClient
from rankkeeper.scheduler import ThreadScheduler
from rankkeeper.schema import IncrementalSyncPayload, SyncPayload

logger = create_logger()


class SyncEngine:
    def __init__(
        self,
        store: RatingStore,
        client: Optional[CloudClient],
        scheduler=None,
        incremental: bool = False,
        on_warning: Optional[Callable[[str], None]] = None,
    ):
        """
        :param client: Remote endpoint client; None keeps the store local-only.
        :param scheduler: Object with submit(task); defaults to daemon threads.
        :param incremental: Push only changed ratings after routine updates.
        :param on_warning: Receives user-facing, non-fatal sync warnings.
        """
        self.store = store
        self.client = client
        self.scheduler = scheduler or ThreadScheduler()
        self.incremental = incremental
        self.on_warning = on_warning
        self._condition = threading.Condition()
        self._sync_in_progress = False
        self._timer: Optional[threading.Timer] = None
        self._unsubscribe = store.events.subscribe_all(self._on_store_event)

    @property
    def sync_in_progress(self) -> bool:
        with self._condition:
            return self._sync_in_progress

    def close(self) -> None:
        self.stop_auto_pull()
        self._unsubscribe()

    # ------------------------------------------------------------------ scheduling

    def _on_store_event(self, event: StoreEvent) -> None:
        if event == StoreEvent.LOADED_FROM_REMOTE:
            return
        if event == StoreEvent.CLEARED or not self.incremental:
            self.request_push()
        else:
            self.request_push(incremental=True)

    def request_push(self, incremental: bool = False) -> None:
        """Schedule a push without waiting for it"""
        if self.client is None:
            return
        task = self.sync_changes_to_cloud if incremental else self.sync_to_cloud
        self.scheduler.submit(task)

    def _begin(self, wait: bool) -> bool:
        with self._condition:
            if wait:
                while self._sync_in_progress:
                    self._condition.wait()
            elif self._sync_in_progress:
                return False
            self._sync_in_progress = True
            return True

    def _end(self) -> None:
        with self._condition:
            self._sync_in_progress = False
            self._condition.notify_all()

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self.on_warning:
            try:
                self.on_warning(message)
            except Exception as error:
                logger.error(f"Sync warning handler failed: {error}")

    # ------------------------------------------------------------------ push

    def sync_to_cloud(self) -> bool:
        """Upload the full local state. Returns True when the remote accepted it."""
        if self.client is None:
            return False
        if not self.store.reconciled:
            logger.info("Push skipped: session has not been reconciled with the remote store")
            return False
        if not self._begin(wait=False):
            logger.debug("Push dropped: another sync is in flight")
            return False
        try:
            state = self.store.snapshot()
            if not state.reconciled:
                logger.info("Push skipped: session changed before the push started")
                return False
            payload = SyncPayload(
                session_id=state.session_id,
                ratings=state.ratings,
                total_battles=state.total_battles,
                total_battles_last_updated=state.total_battles_last_updated,
                pending_battles=state.pending_battles,
                refinement_queue=state.refinement_queue,
                last_updated=wall_clock_ms(),
            )
            self.client.push(payload)
            self.store.acknowledge_changes(state.ratings)
            self.store.mark_synced()
            logger.info(f"Pushed {len(state.ratings)} ratings for session {state.session_id}")
            return True
        except (RemoteSyncError, RemotePayloadError) as error:
            self._warn(f"Cloud sync failed, changes are kept locally: {error}")
            return False
        finally:
            self._end()

    def sync_changes_to_cloud(self) -> bool:
        """Upload only the ratings changed since the last accepted push"""
        if self.client is None:
            return False
        if not self.store.reconciled:
            logger.info("Incremental push skipped: session has not been reconciled")
            return False
        if not self._begin(wait=False):
            logger.debug("Incremental push dropped: another sync is in flight")
            return False
        try:
            state = self.store.snapshot()
            if not state.reconciled:
                return False
            changed = self.store.changed_ratings()
            payload = IncrementalSyncPayload(
                session_id=state.session_id,
                changed_ratings=changed,
                total_battles=state.total_battles,
                pending_battles=state.pending_battles,
                last_updated=wall_clock_ms(),
            )
            self.client.push_incremental(payload)
            self.store.acknowledge_changes(changed)
            self.store.mark_synced()
            logger.info(f"Pushed {len(changed)} changed ratings for session {state.session_id}")
            return True
        except (RemoteSyncError, RemotePayloadError) as error:
            self._warn(f"Cloud sync failed, changes are kept locally: {error}")
            return False
        finally:
            self._end()

    # ------------------------------------------------------------------ pull

    def load_from_cloud(self, reconcile: Optional[bool] = None) -> bool:
        """
        Pull the remote state for the current session and merge it into the store.

        :param reconcile: Open the push gate after a successful merge. By default this
                          happens whenever a signed-in session is still unreconciled, so
                          any later pull recovers from an earlier failed one.
        The store is marked hydrated whatever the outcome so dependents never hang, unless
        the session changed while the pull was in flight.
        """
        if self.client is None:
            self.store.mark_hydrated()
            return False
        self._begin(wait=True)
        session_id = self.store.session_id
        if reconcile is None:
            reconcile = bool(self.store.identity) and not self.store.reconciled
        merged = False
        opened = False
        try:
            snapshot = self.client.pull(session_id)
            merged = self.store.apply_merge(snapshot, session_id=session_id)
            if merged and reconcile:
                self.store.mark_reconciled(True)
                opened = True
                logger.info(f"Session {session_id} reconciled with the remote store")
            if merged:
                self.store.mark_synced()
        except RemoteSyncError as error:
            self._warn(f"Unable to load rankings from the cloud: {error}")
        except RemotePayloadError as error:
            logger.warning(f"Remote payload unusable, keeping local data: {error}")
        finally:
            self._end()
            if self.store.session_id == session_id:
                self.store.mark_hydrated()
            else:
                logger.info(f"Pull for replaced session {session_id} finished, hydration left pending")

        if opened:
            self.request_push()
        return merged

    def reconcile(self) -> bool:
        """Pull and merge, unblock pushes, then push the merged state back"""
        return self.load_from_cloud(reconcile=True)

    # ------------------------------------------------------------------ identity

    def start(self) -> None:
        """
        Called once after the store record is loaded. A signed-in record drops its cached
        data and is repopulated from the remote copy; an anonymous one is ready at once.
        """
        identity = self.store.identity
        if identity and self.client is not None:
            logger.info(f"Signed-in session found for {identity}, discarding local cache")
            self.store.discard_local_state()
            self.scheduler.submit(self.reconcile)
        else:
            self.store.mark_hydrated()

    def attach_identity(self, identity: str) -> None:
        """
        Associate the store with a signed-in identity. Anonymous data is discarded, not
        merged, and pushes stay blocked until the identity's remote history is pulled.
        """
        if self.store.identity != identity:
            logger.info(f"Attaching identity {identity}")
            self.store.discard_local_state()
            self.store.set_session_id(identity)
            self.store.set_identity(identity)
        self.store.mark_reconciled(False)
        self.store.reset_hydration()
        self.scheduler.submit(self.reconcile)

    def detach_identity(self) -> None:
        """Sign out: continue in a fresh anonymous session"""
        # anonymous sessions are local-only: never reconciled, so never pulled or pushed
        self.store.set_identity(None)
        self.store.set_session_id(new_session_id())
        self.store.mark_hydrated()

    # ------------------------------------------------------------------ periodic pull

    def start_auto_pull(self, interval: float) -> None:
        """
        Re-pull and merge every `interval` seconds while signed in. A session whose first
        pull failed gets reconciled by the next successful tick.
        """
        self.stop_auto_pull()
        if self.client is None or interval <= 0:
            return

        def tick():
            if self.store.identity:
                self.scheduler.submit(self.load_from_cloud)
            self._timer = threading.Timer(interval, tick)
            self._timer.daemon = True
            self._timer.start()

        self._timer = threading.Timer(interval, tick)
        self._timer.daemon = True
        self._timer.start()

    def stop_auto_pull(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
