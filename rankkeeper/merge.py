"""
rankkeeper/merge.py
Reconciles the local store record with a snapshot pulled from the remote store.

Rules:
    - ratings: per item, the side with the strictly greater lastUpdated wins the whole
      Rating; a missing local timestamp counts as 0 and loses to the remote copy.
    - totalBattles: same rule on totalBattlesLastUpdated.
    - pending battles: set union, local order first.
    - refinement queue: concatenation, then a stable sort on priority.
"""

from typing import Dict, List, Mapping, Optional, Tuple
from rankkeeper.schema import Rating, RefinementBattle, RemoteSnapshot, StoreState


def remote_wins(local_timestamp: int, remote_timestamp: int) -> bool:
    """Decide a last-write-wins comparison between two timestamps"""
    if local_timestamp <= 0:
        return True
    return remote_timestamp > local_timestamp


def choose_rating(local: Optional[Rating], remote: Optional[Rating]) -> Optional[Rating]:
    if remote is None:
        return local
    if local is None:
        return remote
    return remote if remote_wins(local.last_updated, remote.last_updated) else local


def merge_ratings(
    local: Mapping[str, Rating], remote: Mapping[str, Rating]
) -> Dict[str, Rating]:
    merged: Dict[str, Rating] = dict(local)
    for item_id, remote_rating in remote.items():
        merged[item_id] = choose_rating(local.get(item_id), remote_rating)
    return merged


def merge_scalar(
    local_value: int, local_timestamp: int, remote_value: int, remote_timestamp: int
) -> Tuple[int, int]:
    if remote_wins(local_timestamp, remote_timestamp):
        return remote_value, remote_timestamp
    return local_value, local_timestamp


def merge_pending_battles(local: List[str], remote: List[str]) -> List[str]:
    merged = list(dict.fromkeys(local))
    seen = set(merged)
    for item_id in remote:
        if item_id not in seen:
            seen.add(item_id)
            merged.append(item_id)
    return merged


def merge_refinement_queues(
    local: List[RefinementBattle], remote: List[RefinementBattle]
) -> List[RefinementBattle]:
    return sorted(list(local) + list(remote), key=lambda battle: battle.priority)


def merge_state(local: StoreState, remote: RemoteSnapshot) -> StoreState:
    """Return a new StoreState with the remote snapshot folded into the local record"""
    total_battles, total_battles_last_updated = merge_scalar(
        local.total_battles,
        local.total_battles_last_updated,
        remote.total_battles,
        remote.total_battles_last_updated,
    )
    return local.model_copy(
        update={
            "ratings": merge_ratings(local.ratings, remote.ratings),
            "total_battles": total_battles,
            "total_battles_last_updated": total_battles_last_updated,
            "pending_battles": merge_pending_battles(
                local.pending_battles, remote.pending_battles
            ),
            "refinement_queue": merge_refinement_queues(
                local.refinement_queue, remote.refinement_queue
            ),
        },
        deep=True,
    )
