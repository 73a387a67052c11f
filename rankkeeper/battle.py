"""
rankkeeper/battle.py
Applies pairwise battle results. The rating update itself comes from trueskill;
this module only feeds it the stored ratings and commits what it returns.
"""

from typing import Optional, Tuple
import trueskill
from rankkeeper.constants import DEFAULT_MU, DEFAULT_SIGMA
from rankkeeper.logger import create_logger
from rankkeeper.rating_store import RatingStore
from rankkeeper.schema import Rating

logger = create_logger()


def create_environment() -> trueskill.TrueSkill:
    return trueskill.TrueSkill(mu=DEFAULT_MU, sigma=DEFAULT_SIGMA)


class BattleRecorder:
    def __init__(self, store: RatingStore, env: Optional[trueskill.TrueSkill] = None):
        self.store = store
        self.env = env or create_environment()

    def _to_trueskill(self, rating: Rating) -> trueskill.Rating:
        return self.env.create_rating(mu=rating.mu, sigma=rating.sigma)

    def record_battle(self, winner_id: str, loser_id: str) -> Tuple[Rating, Rating]:
        """Rate one win and commit both participants atomically"""
        winner_id, loser_id = str(winner_id), str(loser_id)
        if winner_id == loser_id:
            raise ValueError(f"{winner_id} cannot battle itself")

        winner = self._to_trueskill(self.store.get_rating(winner_id))
        loser = self._to_trueskill(self.store.get_rating(loser_id))
        new_winner, new_loser = self.env.rate_1vs1(winner, loser)

        committed = self.store.commit_battle(
            [
                (winner_id, float(new_winner.mu), float(new_winner.sigma)),
                (loser_id, float(new_loser.mu), float(new_loser.sigma)),
            ]
        )

        head = self.store.peek_next_refinement_battle()
        if head is not None and {head.primary_item_id, head.opponent_item_id} == {
            winner_id,
            loser_id,
        }:
            self.store.pop_refinement_battle()
            logger.info(f"Refinement battle {winner_id} vs {loser_id} resolved")

        logger.info(
            f"Battle {winner_id} beat {loser_id}: "
            f"{committed[0].score:.3f} / {committed[1].score:.3f}"
        )
        return committed[0], committed[1]

    def next_battle(self) -> Optional[Tuple[str, str]]:
        """
        Pair to present next: the head of the refinement queue, otherwise the first two
        pending items. None when there is nothing scheduled.
        """
        head = self.store.peek_next_refinement_battle()
        if head is not None:
            return head.primary_item_id, head.opponent_item_id
        pending = self.store.get_pending_battles()
        if len(pending) >= 2:
            return pending[0], pending[1]
        return None
