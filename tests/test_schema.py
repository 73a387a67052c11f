import pytest
from pydantic import ValidationError
from rankkeeper.schema import (
    Rating,
    RemoteSnapshot,
    StoreState,
    SyncPayload,
    to_epoch_ms,
)


def test_timestamp_normalization():
    assert to_epoch_ms(None) == 0
    assert to_epoch_ms("") == 0
    assert to_epoch_ms(1700000000000) == 1700000000000
    assert to_epoch_ms("1700000000000") == 1700000000000
    assert to_epoch_ms("2024-01-01T00:00:00Z") == 1704067200000
    assert to_epoch_ms("2024-01-01T00:00:00") == 1704067200000


def test_timestamp_rejects_garbage():
    with pytest.raises(ValueError):
        to_epoch_ms("yesterday")
    with pytest.raises(ValueError):
        to_epoch_ms(True)


def test_rating_score_and_aliases():
    rating = Rating.model_validate(
        {"mu": 30.0, "sigma": 5.0, "battleCount": 4, "lastUpdated": "2024-01-01T00:00:00Z"}
    )
    assert rating.score == 25.0
    assert rating.battle_count == 4
    assert rating.last_updated == 1704067200000


def test_rating_requires_positive_sigma():
    with pytest.raises(ValidationError):
        Rating(mu=25.0, sigma=0.0)
    with pytest.raises(ValidationError):
        Rating(mu=25.0, sigma=-1.0)


def test_remote_snapshot_tolerates_nulls_and_numeric_ids():
    snapshot = RemoteSnapshot.model_validate(
        {
            "success": True,
            "ratings": None,
            "totalBattles": 12,
            "totalBattlesLastUpdated": None,
            "pendingBattles": [25, "26"],
            "refinementQueue": [{"primaryItemId": 1, "opponentItemId": 2, "priority": 0}],
        }
    )
    assert snapshot.ratings == {}
    assert snapshot.total_battles_last_updated == 0
    assert snapshot.pending_battles == ["25", "26"]
    assert snapshot.refinement_queue[0].primary_item_id == "1"


def test_sync_payload_serializes_with_wire_names():
    payload = SyncPayload(
        session_id="abc",
        ratings={"a": Rating(mu=30.0, sigma=5.0, last_updated=10)},
        total_battles=3,
        last_updated=99,
    )
    body = payload.model_dump(by_alias=True)
    assert body["sessionId"] == "abc"
    assert body["totalBattles"] == 3
    assert body["lastUpdated"] == 99
    assert body["ratings"]["a"] == {
        "mu": 30.0,
        "sigma": 5.0,
        "battleCount": 0,
        "lastUpdated": 10,
    }


def test_store_state_accepts_legacy_record():
    state = StoreState.model_validate(
        {"version": 1, "sessionId": "s", "ratings": {"a": {"mu": 20.0, "sigma": 3.0}}}
    )
    assert state.ratings["a"].last_updated == 0
    assert state.reconciled is False
