from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator

from mahjong_league.domain import DEFAULT_UMA, GameType, Ruleset, SeatEntry, SeatMember


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: Any | None = None


UMA_FIELDS = ("uma_first", "uma_second", "uma_third")


def _three_player_uma_defaults(model: BaseModel) -> None:
    # the field defaults are the four-player table
    for field_name, value in zip(UMA_FIELDS, DEFAULT_UMA[GameType.THREE_PLAYER]):
        if field_name not in model.model_fields_set:
            setattr(model, field_name, value)
    model.uma_fourth = None


class RuleCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128, examples=["Standard four-player"])
    game_type: GameType = GameType.FOUR_PLAYER
    starting_points: int = Field(25000, gt=0)
    return_points: int = Field(30000, gt=0)
    uma_first: int = 30
    uma_second: int = 10
    uma_third: int = -10
    uma_fourth: int | None = -30
    created_by: str | None = None

    @model_validator(mode="after")
    def validate_uma(self) -> "RuleCreateRequest":
        if self.game_type is GameType.FOUR_PLAYER and self.uma_fourth is None:
            raise ValueError("four-player rules need uma_fourth")
        if self.game_type is GameType.THREE_PLAYER:
            _three_player_uma_defaults(self)
        return self


class RuleUpdateRequest(BaseModel):
    """Fields left out keep their stored value; the game type is fixed at creation."""

    name: str | None = Field(None, min_length=1, max_length=128)
    starting_points: int | None = Field(None, gt=0)
    return_points: int | None = Field(None, gt=0)
    uma_first: int | None = None
    uma_second: int | None = None
    uma_third: int | None = None
    uma_fourth: int | None = None


class RuleResponse(BaseModel):
    id: int
    name: str
    game_type: GameType
    starting_points: int
    return_points: int
    uma: list[int]
    oka_pool: float


class RulesetResponse(BaseModel):
    game_type: GameType
    uma: list[int]
    oka: float
    starting_points: int
    return_points: int
    rule_id: int | None = None
    name: str | None = None

    @classmethod
    def from_ruleset(cls, ruleset: Ruleset) -> "RulesetResponse":
        return cls(
            game_type=ruleset.game_type,
            uma=list(ruleset.uma),
            oka=ruleset.oka,
            starting_points=ruleset.starting_points,
            return_points=ruleset.return_points,
            rule_id=ruleset.rule_id,
            name=ruleset.name,
        )


class LeagueCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str | None = Field(None, max_length=512)
    game_type: GameType = GameType.FOUR_PLAYER
    owner_id: str = Field(..., min_length=1)
    owner_name: str | None = None
    rule_id: int | None = None
    uma_first: int = 30
    uma_second: int = 10
    uma_third: int = -10
    uma_fourth: int | None = -30
    oka: float = 0
    starting_points: int = Field(25000, gt=0)
    return_points: int = Field(30000, gt=0)

    @model_validator(mode="after")
    def validate_uma(self) -> "LeagueCreateRequest":
        if self.game_type is GameType.THREE_PLAYER:
            _three_player_uma_defaults(self)
        return self


class LeagueResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    game_type: GameType
    owner_id: str
    rule_id: int | None = None
    ruleset: RulesetResponse


class LeagueUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = Field(None, max_length=512)


class LeagueMemberRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1, max_length=128)


class SeatMemberPayload(BaseModel):
    name: str = Field(..., examples=["Aoi"])
    user_id: str | None = None


class SeatPayload(BaseModel):
    raw_score: int = Field(..., examples=[32000])
    members: list[SeatMemberPayload] = Field(..., min_length=1, max_length=2)
    bonus_points: float = Field(0.0, allow_inf_nan=False)

    def to_domain(self) -> SeatEntry:
        return SeatEntry(
            raw_score=self.raw_score,
            members=tuple(SeatMember(name=member.name, user_id=member.user_id) for member in self.members),
            bonus_points=self.bonus_points,
        )


class GamePreviewRequest(BaseModel):
    game_type: GameType = GameType.FOUR_PLAYER
    league_id: int | None = None
    rule_id: int | None = None
    seats: list[SeatPayload] = Field(..., min_length=3, max_length=4)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "game_type": "four_player",
                    "seats": [
                        {"raw_score": 40000, "members": [{"name": "Aoi"}]},
                        {"raw_score": 30000, "members": [{"name": "Ren"}]},
                        {"raw_score": 20000, "members": [{"name": "Mio"}]},
                        {"raw_score": 10000, "members": [{"name": "Sora"}]},
                    ],
                }
            ]
        }
    }


class GameCreateRequest(GamePreviewRequest):
    created_by: str = Field(..., min_length=1)
    played_at: datetime | None = None


class PlayerResultResponse(BaseModel):
    model_config = {"from_attributes": True}

    seat_index: int
    player_name: str
    user_id: str | None = None
    rank: int
    raw_score: int
    point: float
    bonus_points: float


class GamePreviewResponse(BaseModel):
    ruleset: RulesetResponse
    results: list[PlayerResultResponse]
    total_points: float


class GameResponse(BaseModel):
    id: int
    game_type: GameType
    league_id: int | None = None
    created_by: str
    played_at: datetime
    ruleset: RulesetResponse
    results: list[PlayerResultResponse]


class SessionTotalsRequest(BaseModel):
    game_ids: list[int] = Field(..., min_length=1)
