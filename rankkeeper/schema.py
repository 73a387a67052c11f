"""
rankkeeper/schema.py
Data models for the rating store, its persisted record and the remote payloads.
All timestamps are integer epoch milliseconds; 0 means "unknown".
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from rankkeeper.constants import DEFAULT_MU, DEFAULT_SIGMA

STORE_VERSION = 2


def to_epoch_ms(value) -> int:
    """
    Normalize a timestamp from the local record or a remote row.
    Accepts epoch milliseconds, numeric strings and ISO-8601 strings; anything missing is 0.
    """
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError("timestamp must not be a boolean")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            return int(float(value))
        except ValueError:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"unsupported timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


class Rating(BaseModel):
    """Skill estimate for one item. Immutable; the store replaces whole values."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    mu: float = DEFAULT_MU
    sigma: float = Field(default=DEFAULT_SIGMA, gt=0)
    battle_count: int = Field(default=0, ge=0, alias="battleCount")
    last_updated: int = Field(default=0, alias="lastUpdated")

    @field_validator("last_updated", mode="before")
    @classmethod
    def normalize_last_updated(cls, value):
        return to_epoch_ms(value)

    @property
    def score(self) -> float:
        """Conservative score used as the sole sort key"""
        return self.mu - self.sigma


class RefinementBattle(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, frozen=True, coerce_numbers_to_str=True
    )

    primary_item_id: str = Field(alias="primaryItemId")
    opponent_item_id: str = Field(alias="opponentItemId")
    priority: int = 0
    reason: str = ""


class StoreState(BaseModel):
    """The single persisted record owned by the rating store"""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    version: int = STORE_VERSION
    session_id: str = Field(default="", alias="sessionId")
    identity: Optional[str] = None
    ratings: Dict[str, Rating] = Field(default_factory=dict)
    pending_battles: List[str] = Field(default_factory=list, alias="pendingBattles")
    refinement_queue: List[RefinementBattle] = Field(
        default_factory=list, alias="refinementQueue"
    )
    total_battles: int = Field(default=0, ge=0, alias="totalBattles")
    total_battles_last_updated: int = Field(default=0, alias="totalBattlesLastUpdated")
    reconciled: bool = False
    sync_in_progress: bool = Field(default=False, alias="syncInProgress")
    last_synced_at: Optional[int] = Field(default=None, alias="lastSyncedAt")

    @field_validator("total_battles_last_updated", mode="before")
    @classmethod
    def normalize_timestamp(cls, value):
        return to_epoch_ms(value)


class SyncPayload(BaseModel):
    """Body sent to the push endpoint"""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    ratings: Dict[str, Rating] = Field(default_factory=dict)
    total_battles: int = Field(default=0, alias="totalBattles")
    total_battles_last_updated: int = Field(default=0, alias="totalBattlesLastUpdated")
    pending_battles: List[str] = Field(default_factory=list, alias="pendingBattles")
    refinement_queue: List[RefinementBattle] = Field(
        default_factory=list, alias="refinementQueue"
    )
    last_updated: int = Field(default=0, alias="lastUpdated")


class IncrementalSyncPayload(BaseModel):
    """Body sent to the incremental push endpoint: only ratings changed since the last push"""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    changed_ratings: Dict[str, Rating] = Field(
        default_factory=dict, alias="changedRatings"
    )
    total_battles: int = Field(default=0, alias="totalBattles")
    pending_battles: List[str] = Field(default_factory=list, alias="pendingBattles")
    last_updated: int = Field(default=0, alias="lastUpdated")


class RemoteSnapshot(BaseModel):
    """Body returned by the pull endpoint"""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    success: bool = False
    error: Optional[str] = None
    ratings: Dict[str, Rating] = Field(default_factory=dict)
    total_battles: int = Field(default=0, ge=0, alias="totalBattles")
    total_battles_last_updated: int = Field(default=0, alias="totalBattlesLastUpdated")
    pending_battles: List[str] = Field(default_factory=list, alias="pendingBattles")
    refinement_queue: List[RefinementBattle] = Field(
        default_factory=list, alias="refinementQueue"
    )

    @model_validator(mode="before")
    @classmethod
    def drop_null_fields(cls, data):
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @field_validator("total_battles_last_updated", mode="before")
    @classmethod
    def normalize_timestamp(cls, value):
        return to_epoch_ms(value)


class PushResult(BaseModel):
    success: bool = False
    error: Optional[str] = None
