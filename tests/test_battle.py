import pytest
from rankkeeper.battle import BattleRecorder


@pytest.fixture
def recorder(store):
    return BattleRecorder(store)


def test_winner_moves_above_loser(recorder, store):
    winner, loser = recorder.record_battle("pikachu", "bulbasaur")

    assert winner.mu > loser.mu
    assert winner.score > loser.score
    assert winner.sigma < 8.333
    assert store.get_rating("pikachu") == winner
    assert store.total_battles == 1


def test_battle_counts_and_pending_are_updated(recorder, store):
    store.add_pending_battle("a")
    store.add_pending_battle("b")
    store.add_pending_battle("c")

    recorder.record_battle("a", "b")
    recorder.record_battle("a", "c")

    assert store.get_rating("a").battle_count == 2
    assert store.get_rating("b").battle_count == 1
    assert store.get_pending_battles() == []
    assert store.total_battles == 2


def test_matching_refinement_battle_is_consumed(recorder, store):
    store.queue_refinement_battles("a", ["b", "c"])

    recorder.record_battle("b", "a")

    queue = store.get_refinement_queue()
    assert len(queue) == 1
    assert queue[0].opponent_item_id == "c"


def test_unrelated_battle_leaves_refinement_queue(recorder, store):
    store.queue_refinement_battles("a", ["b"])

    recorder.record_battle("c", "d")

    assert len(store.get_refinement_queue()) == 1


def test_next_battle_prefers_refinement_queue(recorder, store):
    assert recorder.next_battle() is None

    store.add_pending_battle("x")
    assert recorder.next_battle() is None
    store.add_pending_battle("y")
    assert recorder.next_battle() == ("x", "y")

    store.queue_refinement_battles("a", ["b"])
    assert recorder.next_battle() == ("a", "b")


def test_self_battle_rejected(recorder):
    with pytest.raises(ValueError):
        recorder.record_battle("a", "a")
