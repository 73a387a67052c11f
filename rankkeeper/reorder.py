"""
rankkeeper/reorder.py
Turns "move item P to index N" into new ratings so that sorting by conservative score
(mu - sigma) reproduces exactly the requested arrangement.

Only P and, when its new neighbors are tied, the contiguous runs of tied items next to
it are touched. Everything here is pure computation; committing is the caller's job.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from rankkeeper.configuration import ReorderSettings
from rankkeeper.logger import create_logger
from rankkeeper.schema import Rating

logger = create_logger()

RatingLookup = Union[Mapping[str, Rating], Callable[[str], Rating]]


@dataclass
class RatingAdjustment:
    item_id: str
    mu: float
    sigma: float

    @property
    def score(self) -> float:
        return self.mu - self.sigma


@dataclass
class ReorderResult:
    order: List[str]
    moved_id: str
    new_index: int
    adjustments: List[RatingAdjustment] = field(default_factory=list)
    neighbor_above: Optional[str] = None
    neighbor_below: Optional[str] = None
    tie_broken: bool = False

    def as_updates(self) -> List[Tuple[str, float, float]]:
        """Adjustments in commit order: tie-break neighbors first, the moved item last"""
        return [(a.item_id, a.mu, a.sigma) for a in self.adjustments]


class ManualReorderAdjuster:
    def __init__(self, settings: Optional[ReorderSettings] = None):
        self.settings = settings or ReorderSettings()

    def compute(
        self,
        ranked_ids: Sequence[str],
        ratings: RatingLookup,
        item_id: str,
        new_index: int,
    ) -> ReorderResult:
        """
        Compute the ratings needed to place `item_id` at `new_index`.

        :param ranked_ids: Item ids sorted by descending conservative score. `item_id`
                           may be absent, in which case it is inserted.
        :param ratings: Mapping or callable returning the current Rating of an item.
        :raises IndexError: when `new_index` is outside the resulting list.
        :raises ValueError: when `ranked_ids` has duplicates or is not sorted.
        """
        item_id = str(item_id)
        order = [str(i) for i in ranked_ids]
        if len(set(order)) != len(order):
            raise ValueError("ranked list contains duplicate item ids")
        if item_id in order:
            order.remove(item_id)
        if not 0 <= new_index <= len(order):
            raise IndexError(
                f"index {new_index} out of range for a list of {len(order) + 1} items"
            )
        order.insert(new_index, item_id)

        lookup = _make_lookup(ratings)
        working: Dict[str, Tuple[float, float]] = {}

        def rating_of(target: str) -> Tuple[float, float]:
            if target in working:
                return working[target]
            rating = lookup(target)
            return rating.mu, rating.sigma

        def score_of(target: str) -> float:
            mu, sigma = rating_of(target)
            return mu - sigma

        above = order[new_index - 1] if new_index > 0 else None
        below = order[new_index + 1] if new_index < len(order) - 1 else None
        result = ReorderResult(
            order=order,
            moved_id=item_id,
            new_index=new_index,
            neighbor_above=above,
            neighbor_below=below,
        )
        _, moved_sigma = rating_of(item_id)

        if above is not None and below is not None:
            if abs(score_of(above) - score_of(below)) <= self.settings.epsilon:
                result.adjustments.extend(
                    self._break_ties(order, new_index, rating_of, score_of, working)
                )
                result.tie_broken = True
            target = (score_of(above) + score_of(below)) / 2
        elif above is not None:
            target = score_of(above) - self.settings.edge_offset
        elif below is not None:
            target = score_of(below) + self.settings.edge_offset
        else:
            target = score_of(item_id)

        result.adjustments.append(
            RatingAdjustment(item_id=item_id, mu=target + moved_sigma, sigma=moved_sigma)
        )
        logger.info(
            f"Reorder {item_id} -> index {new_index}: score {target:.6f}, "
            f"{len(result.adjustments) - 1} neighbors adjusted"
        )
        return result

    def _break_ties(self, order, new_index, rating_of, score_of, working) -> List[RatingAdjustment]:
        """
        Spread the runs of items tied with the new neighbors into strictly distinct scores.
        The upper run steps down from the nearest distinct score above it, the lower run
        steps up from the nearest distinct score below it.
        """
        epsilon = self.settings.epsilon
        adjustments = []

        tie_above = score_of(order[new_index - 1])
        run_above = []
        index = new_index - 1
        while index >= 0 and abs(score_of(order[index]) - tie_above) <= epsilon:
            run_above.append(order[index])
            index -= 1
        top = score_of(order[index]) if index >= 0 else tie_above + self.settings.fallback_gap
        run_above.reverse()
        step = self._step(top - tie_above, len(run_above))
        current = top
        for neighbor in run_above:
            current -= step
            adjustments.append(self._adjust(neighbor, current, rating_of, working))

        tie_below = score_of(order[new_index + 1])
        run_below = []
        index = new_index + 1
        while index < len(order) and abs(score_of(order[index]) - tie_below) <= epsilon:
            run_below.append(order[index])
            index += 1
        bottom = (
            score_of(order[index])
            if index < len(order)
            else tie_below - self.settings.fallback_gap
        )
        step = self._step(tie_below - bottom, len(run_below))
        current = bottom
        for neighbor in reversed(run_below):
            current += step
            adjustments.append(self._adjust(neighbor, current, rating_of, working))

        return adjustments

    def _step(self, gap: float, run_length: int) -> float:
        if gap <= 0:
            raise ValueError("ranked list is not sorted by descending score")
        return min(self.settings.step, gap / (run_length + 1))

    def _adjust(self, item_id, score, rating_of, working) -> RatingAdjustment:
        _, sigma = rating_of(item_id)
        sigma = sigma * self.settings.sigma_factor
        adjustment = RatingAdjustment(item_id=item_id, mu=score + sigma, sigma=sigma)
        working[item_id] = (adjustment.mu, adjustment.sigma)
        return adjustment


def _make_lookup(ratings: RatingLookup) -> Callable[[str], Rating]:
    if callable(ratings):
        return ratings

    def lookup(item_id: str) -> Rating:
        return ratings.get(item_id) or Rating()

    return lookup
