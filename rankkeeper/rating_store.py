"""
rankkeeper/rating_store.py
Authoritative, persisted holder of ratings, battle counters, the pending-battle set,
the refinement queue and the session metadata.

Every operation is synchronous with respect to in-memory state. Mutations persist the
record to disk and then notify listeners through StoreEvents; the sync engine listens
and schedules a push, so callers never wait on the network.
"""

import json
import os
import threading
import time
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from pydantic import ValidationError
from rankkeeper.events import StoreEvent, StoreEvents
from rankkeeper.logger import create_logger
from rankkeeper.merge import merge_state
from rankkeeper.schema import (
    Rating,
    RefinementBattle,
    RemoteSnapshot,
    StoreState,
    STORE_VERSION,
)

logger = create_logger()


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def new_session_id() -> str:
    return str(uuid.uuid4())


class RatingStore:
    def __init__(
        self,
        file_location: Optional[str] = None,
        events: Optional[StoreEvents] = None,
        clock: Callable[[], int] = wall_clock_ms,
    ):
        """
        :param file_location: JSON record location; None keeps the store in memory only.
        :param events: Listener registry shared with the sync engine and view model.
        :param clock: Returns the current time in epoch milliseconds.
        """
        self.file_location = file_location
        self.events = events or StoreEvents()
        self._clock = clock
        self._lock = threading.RLock()
        self._state = StoreState(session_id=new_session_id())
        self._last_timestamp = 0
        self._changed_ids: set = set()
        self._hydrated = threading.Event()

    # ------------------------------------------------------------------ persistence

    def load(self) -> bool:
        """Load the persisted record; returns False and starts empty if it is missing or invalid"""
        state = None
        if self.file_location:
            try:
                with open(self.file_location, "r", encoding="utf-8") as json_file:
                    state = StoreState.model_validate(json.load(json_file))
                if state.version < STORE_VERSION:
                    logger.info(f"Upgrading store record from version {state.version}")
                    state.version = STORE_VERSION
            except FileNotFoundError:
                logger.info(f"No store record at {self.file_location}")
            except (OSError, ValueError, ValidationError) as error:
                logger.error(f"Failed to load store record {self.file_location}: {error}")
                state = None

        with self._lock:
            if state is None:
                self._state = StoreState(session_id=new_session_id())
                self._persist()
                return False
            state.sync_in_progress = False
            if not state.session_id:
                state.session_id = new_session_id()
            self._state = state
            self._observe_timestamps()
            logger.info(
                f"Loaded {len(state.ratings)} ratings for session {state.session_id}"
            )
            return True

    def _persist(self) -> bool:
        if not self.file_location:
            return True
        record = self._state.model_dump(by_alias=True)
        record["syncInProgress"] = False
        try:
            folder = os.path.dirname(self.file_location)
            if folder and not os.path.exists(folder):
                os.makedirs(folder)
            temp_location = f"{self.file_location}.tmp"
            with open(temp_location, "w", encoding="utf-8") as json_file:
                json.dump(record, json_file)
            os.replace(temp_location, self.file_location)
            return True
        except OSError as error:
            logger.error(f"Failed to write store record {self.file_location}: {error}")
            return False

    def _observe_timestamps(self) -> None:
        """Never issue a timestamp older than one already present in the record"""
        self._last_timestamp = max(
            [self._last_timestamp, self._state.total_battles_last_updated]
            + [rating.last_updated for rating in self._state.ratings.values()]
        )

    def _now(self) -> int:
        """Strictly increasing timestamps so a batch commit keeps its causal order"""
        timestamp = self._clock()
        if timestamp <= self._last_timestamp:
            timestamp = self._last_timestamp + 1
        self._last_timestamp = timestamp
        return timestamp

    # ------------------------------------------------------------------ ratings

    def get_rating(self, item_id: str) -> Rating:
        """Stored rating, or the unrated prior when the item has none"""
        with self._lock:
            return self._state.ratings.get(str(item_id)) or Rating()

    def has_rating(self, item_id: str) -> bool:
        with self._lock:
            return str(item_id) in self._state.ratings

    def get_all_ratings(self) -> Dict[str, Rating]:
        with self._lock:
            return dict(self._state.ratings)

    def set_rating(self, item_id: str, mu: float, sigma: float) -> Rating:
        return self.set_ratings([(item_id, mu, sigma)])[0]

    def set_ratings(self, updates: Iterable[Tuple[str, float, float]]) -> List[Rating]:
        """
        Upsert several ratings as one atomic change. Readers never observe a partial batch.
        battleCount is preserved; lastUpdated follows the order of `updates`.
        """
        updates = list(updates)
        with self._lock:
            new_ratings = []
            for item_id, mu, sigma in updates:
                item_id = str(item_id)
                existing = self._state.ratings.get(item_id)
                new_ratings.append(
                    (
                        item_id,
                        Rating(
                            mu=mu,
                            sigma=sigma,
                            battle_count=existing.battle_count if existing else 0,
                            last_updated=self._now(),
                        ),
                    )
                )
            for item_id, rating in new_ratings:
                self._state.ratings[item_id] = rating
                self._changed_ids.add(item_id)
            if new_ratings:
                self._persist()
        if new_ratings:
            self.events.emit(StoreEvent.UPDATED)
        return [rating for _, rating in new_ratings]

    def increment_battle_count(self, item_id: str) -> Rating:
        item_id = str(item_id)
        with self._lock:
            existing = self._state.ratings.get(item_id) or Rating()
            rating = existing.model_copy(
                update={
                    "battle_count": existing.battle_count + 1,
                    "last_updated": self._now(),
                }
            )
            self._state.ratings[item_id] = rating
            self._changed_ids.add(item_id)
            self._persist()
        self.events.emit(StoreEvent.UPDATED)
        return rating

    def commit_battle(self, updates: Iterable[Tuple[str, float, float]]) -> List[Rating]:
        """
        Store the outcome of one battle as a single change: the new ratings with their
        battle counts bumped, the session battle counter, and the participants removed
        from the pending set.
        """
        updates = list(updates)
        with self._lock:
            committed = []
            for item_id, mu, sigma in updates:
                item_id = str(item_id)
                existing = self._state.ratings.get(item_id)
                rating = Rating(
                    mu=mu,
                    sigma=sigma,
                    battle_count=(existing.battle_count if existing else 0) + 1,
                    last_updated=self._now(),
                )
                self._state.ratings[item_id] = rating
                self._changed_ids.add(item_id)
                if item_id in self._state.pending_battles:
                    self._state.pending_battles.remove(item_id)
                committed.append(rating)
            self._state.total_battles += 1
            self._state.total_battles_last_updated = self._now()
            self._persist()
        self.events.emit(StoreEvent.UPDATED)
        return committed

    @property
    def total_battles(self) -> int:
        with self._lock:
            return self._state.total_battles

    def increment_total_battles(self, count: int = 1) -> int:
        with self._lock:
            self._state.total_battles += count
            self._state.total_battles_last_updated = self._now()
            total = self._state.total_battles
            self._persist()
        self.events.emit(StoreEvent.UPDATED)
        return total

    def clear_all(self) -> None:
        """Restart the ranking process: drop every rating, queue and counter"""
        with self._lock:
            count = len(self._state.ratings)
            self._wipe(cleared_at=self._now())
            self._persist()
        logger.warning(f"Cleared {count} ratings for session {self.session_id}")
        self.events.emit(StoreEvent.CLEARED)

    def _wipe(self, cleared_at: int = 0) -> None:
        """Empty the record. cleared_at 0 lets any remote battle counter win the next merge."""
        self._state.ratings = {}
        self._state.pending_battles = []
        self._state.refinement_queue = []
        self._state.total_battles = 0
        self._state.total_battles_last_updated = cleared_at
        self._state.last_synced_at = None
        self._changed_ids = set()

    # ------------------------------------------------------------------ pending battles

    def add_pending_battle(self, item_id: str) -> bool:
        item_id = str(item_id)
        with self._lock:
            if item_id in self._state.pending_battles:
                return False
            self._state.pending_battles.append(item_id)
            self._persist()
        self.events.emit(StoreEvent.UPDATED)
        return True

    def remove_pending_battle(self, item_id: str) -> bool:
        item_id = str(item_id)
        with self._lock:
            if item_id not in self._state.pending_battles:
                return False
            self._state.pending_battles.remove(item_id)
            self._persist()
        self.events.emit(StoreEvent.UPDATED)
        return True

    def is_pending(self, item_id: str) -> bool:
        with self._lock:
            return str(item_id) in self._state.pending_battles

    def get_pending_battles(self) -> List[str]:
        with self._lock:
            return list(self._state.pending_battles)

    # ------------------------------------------------------------------ refinement queue

    def queue_refinement_battles(
        self,
        primary_id: str,
        opponent_ids: Iterable[str],
        priority: int = 0,
        reason: str = "",
        replace_existing: bool = False,
    ) -> int:
        """
        Append one battle per opponent, keep the queue ordered by priority, return its length.
        With replace_existing, queued battles involving primary_id are dropped first.
        """
        primary_id = str(primary_id)
        battles = [
            RefinementBattle(
                primary_item_id=primary_id,
                opponent_item_id=str(opponent_id),
                priority=priority,
                reason=reason,
            )
            for opponent_id in opponent_ids
            if str(opponent_id) != primary_id
        ]
        with self._lock:
            if not battles:
                return len(self._state.refinement_queue)
            queue = list(self._state.refinement_queue)
            if replace_existing:
                queue = [
                    battle
                    for battle in queue
                    if primary_id not in (battle.primary_item_id, battle.opponent_item_id)
                ]
            queue += battles
            queue.sort(key=lambda battle: battle.priority)
            self._state.refinement_queue = queue
            length = len(queue)
            self._persist()
        logger.info(f"Queued {len(battles)} refinement battles for {primary_id}")
        self.events.emit(StoreEvent.UPDATED)
        return length

    def peek_next_refinement_battle(self) -> Optional[RefinementBattle]:
        with self._lock:
            queue = self._state.refinement_queue
            return queue[0] if queue else None

    def pop_refinement_battle(self) -> Optional[RefinementBattle]:
        with self._lock:
            if not self._state.refinement_queue:
                return None
            battle = self._state.refinement_queue.pop(0)
            self._persist()
        self.events.emit(StoreEvent.UPDATED)
        return battle

    def get_refinement_queue(self) -> List[RefinementBattle]:
        with self._lock:
            return list(self._state.refinement_queue)

    def clear_refinement_queue(self) -> int:
        with self._lock:
            count = len(self._state.refinement_queue)
            if not count:
                return 0
            self._state.refinement_queue = []
            self._persist()
        self.events.emit(StoreEvent.UPDATED)
        return count

    # ------------------------------------------------------------------ session

    @property
    def session_id(self) -> str:
        with self._lock:
            return self._state.session_id

    @property
    def identity(self) -> Optional[str]:
        with self._lock:
            return self._state.identity

    @property
    def reconciled(self) -> bool:
        with self._lock:
            return self._state.reconciled

    @property
    def last_synced_at(self) -> Optional[int]:
        with self._lock:
            return self._state.last_synced_at

    def set_session_id(self, session_id: str) -> bool:
        """Adopt a new session; local data never carries across sessions"""
        with self._lock:
            if session_id == self._state.session_id:
                return False
            logger.info(f"Switching session {self._state.session_id} -> {session_id}")
            self._wipe()
            self._state.session_id = session_id
            self._state.reconciled = False
            self._persist()
        self.events.emit(StoreEvent.CLEARED)
        return True

    def set_identity(self, identity: Optional[str]) -> None:
        with self._lock:
            self._state.identity = identity
            self._persist()

    def discard_local_state(self) -> None:
        """Drop locally cached data so the remote copy can repopulate it"""
        with self._lock:
            self._wipe()
            self._state.reconciled = False
            self._persist()
        self.events.emit(StoreEvent.CLEARED)

    def mark_reconciled(self, reconciled: bool = True) -> None:
        with self._lock:
            self._state.reconciled = reconciled
            self._persist()

    def mark_synced(self) -> None:
        with self._lock:
            self._state.last_synced_at = self._clock()
            self._persist()

    # ------------------------------------------------------------------ sync support

    def snapshot(self) -> StoreState:
        """Deep copy of the full record for serialization"""
        with self._lock:
            return self._state.model_copy(deep=True)

    def changed_ratings(self) -> Dict[str, Rating]:
        """Ratings modified since they were last acknowledged by the remote store"""
        with self._lock:
            return {
                item_id: self._state.ratings[item_id]
                for item_id in self._changed_ids
                if item_id in self._state.ratings
            }

    def acknowledge_changes(self, pushed: Dict[str, Rating]) -> None:
        """Forget change markers for ratings the remote store has accepted, unless modified since"""
        with self._lock:
            for item_id, rating in pushed.items():
                current = self._state.ratings.get(item_id)
                if current is None or current.last_updated <= rating.last_updated:
                    self._changed_ids.discard(item_id)

    def apply_merge(self, remote: RemoteSnapshot, session_id: Optional[str] = None) -> bool:
        """
        Fold a pulled snapshot into local state using the timestamp rules.
        A snapshot fetched for a session that is no longer current is ignored.
        """
        with self._lock:
            if session_id is not None and session_id != self._state.session_id:
                logger.info(f"Ignoring remote snapshot for stale session {session_id}")
                return False
            before = len(self._state.ratings)
            self._state = merge_state(self._state, remote)
            self._observe_timestamps()
            self._persist()
            logger.info(
                f"Merged remote snapshot: {before} local, {len(remote.ratings)} remote, "
                f"{len(self._state.ratings)} after merge"
            )
        self.events.emit(StoreEvent.LOADED_FROM_REMOTE)
        return True

    # ------------------------------------------------------------------ hydration

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated.is_set()

    def mark_hydrated(self) -> None:
        self._hydrated.set()

    def reset_hydration(self) -> None:
        """Block dependents again until the next pull completes"""
        self._hydrated.clear()

    def wait_until_hydrated(self, timeout: Optional[float] = None) -> bool:
        return self._hydrated.wait(timeout)
