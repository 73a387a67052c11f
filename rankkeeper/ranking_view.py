"""
rankkeeper/ranking_view.py
Derives the displayed ranking from the store and turns drag-and-drop gestures into
manual reorders.
"""

import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple
from rankkeeper.configuration import Configuration
from rankkeeper.constants import REFINEMENT_PRIORITY_MANUAL_REORDER
from rankkeeper.events import StoreEvent
from rankkeeper.logger import create_logger
from rankkeeper.rating_store import RatingStore
from rankkeeper.reorder import ManualReorderAdjuster, ReorderResult
from rankkeeper.schema import Rating

logger = create_logger()


@dataclass(frozen=True)
class DragEndEvent:
    """
    End of a drag gesture. `over_id` is the item the dragged one was dropped on, None
    when dropped outside any target. `over_index` is set for drops on an empty slot.
    """

    active_id: str
    over_id: Optional[str] = None
    over_index: Optional[int] = None


class RankingView:
    def __init__(
        self,
        store: RatingStore,
        adjuster: Optional[ManualReorderAdjuster] = None,
        config: Optional[Configuration] = None,
    ):
        self.store = store
        self.config = config or Configuration()
        self.adjuster = adjuster or ManualReorderAdjuster(self.config.reorder)
        self._lock = threading.Lock()
        self._cache: Optional[List[Tuple[str, Rating]]] = None
        self._unsubscribe = store.events.subscribe_all(self._on_store_event)

    def close(self) -> None:
        self._unsubscribe()

    def _on_store_event(self, event: StoreEvent) -> None:
        with self._lock:
            self._cache = None

    def ranked_ratings(self) -> List[Tuple[str, Rating]]:
        """(item id, rating) pairs by descending conservative score; equal scores keep id order"""
        with self._lock:
            if self._cache is None:
                ratings = self.store.get_all_ratings()
                ordered = sorted(ratings.items(), key=lambda entry: entry[0])
                ordered.sort(key=lambda entry: entry[1].score, reverse=True)
                self._cache = ordered
            return list(self._cache)

    def ranked_ids(self) -> List[str]:
        return [item_id for item_id, _ in self.ranked_ratings()]

    def leaderboard(self, size: Optional[int] = None) -> List[Tuple[int, str, Rating]]:
        size = size or self.config.settings.leaderboard_size
        return [
            (position, item_id, rating)
            for position, (item_id, rating) in enumerate(self.ranked_ratings()[:size], 1)
        ]

    def move_item(self, item_id: str, new_index: int) -> ReorderResult:
        """Place an item at a position, commit the adjusted ratings and queue validation battles"""
        result = self.adjuster.compute(
            self.ranked_ids(), self.store.get_rating, item_id, new_index
        )
        self.store.set_ratings(result.as_updates())

        opponents = self._refinement_opponents(result)
        if opponents:
            self.store.queue_refinement_battles(
                result.moved_id,
                opponents,
                priority=REFINEMENT_PRIORITY_MANUAL_REORDER,
                reason=f"Position validation for manual reorder to position {new_index}",
                replace_existing=True,
            )
        return result

    def _refinement_opponents(self, result: ReorderResult) -> List[str]:
        count = self.config.reorder.refinement_neighbors
        if count <= 0:
            return []
        index = result.new_index
        above = result.order[max(0, index - count) : index]
        below = result.order[index + 1 : index + 1 + count]
        # closest first, alternating above and below
        opponents = []
        for offset in range(count):
            if offset < len(above):
                opponents.append(above[-1 - offset])
            if offset < len(below):
                opponents.append(below[offset])
        return opponents

    def handle_drag_end(self, event: DragEndEvent) -> Optional[ReorderResult]:
        """Translate a drop into a reorder. Drops outside a target or onto itself do nothing."""
        active_id = str(event.active_id)
        ranked = self.ranked_ids()

        if event.over_id is not None:
            over_id = str(event.over_id)
            if over_id == active_id:
                return None
            if over_id not in ranked:
                logger.info(f"Drop target {over_id} is not ranked, ignoring")
                return None
            new_index = ranked.index(over_id)
        elif event.over_index is not None:
            new_index = event.over_index
        else:
            return None

        if active_id in ranked:
            last_index = len(ranked) - 1
        else:
            last_index = len(ranked)
        new_index = min(max(new_index, 0), last_index)

        if active_id in ranked and ranked.index(active_id) == new_index:
            return None
        return self.move_item(active_id, new_index)
