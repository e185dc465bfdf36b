"""Score settlement: raw table scores to ranks and zero-sum points."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import groupby

from .errors import (
    DomainValidationError,
    PointBalanceError,
    ScoreBalanceError,
    SettlementInputError,
)
from .rules import Ruleset

# per-member points after bonuses; raw settlement is held to SETTLEMENT_EPSILON
POINT_EPSILON = 0.01
SETTLEMENT_EPSILON = 1e-6
MAX_SEAT_MEMBERS = 2


@dataclass(frozen=True, slots=True)
class PlayerEntry:
    name: str
    raw_score: int
    user_id: str | None = None


@dataclass(frozen=True, slots=True)
class SettlementResult:
    rank: int
    point: float


@dataclass(frozen=True, slots=True)
class SeatMember:
    name: str
    user_id: str | None = None


@dataclass(frozen=True, slots=True)
class SeatEntry:
    raw_score: int | None
    members: tuple[SeatMember, ...]
    bonus_points: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(self.members))


@dataclass(frozen=True, slots=True)
class PlayerResult:
    seat_index: int
    player_name: str
    user_id: str | None
    rank: int
    raw_score: int
    point: float
    bonus_points: float


@dataclass(frozen=True, slots=True)
class GameSettlement:
    ruleset: Ruleset
    seats: tuple[SettlementResult, ...]
    results: tuple[PlayerResult, ...] = field(default_factory=tuple)

    @property
    def total_points(self) -> float:
        return round2(sum(result.point for result in self.results))


def round2(value: float) -> float:
    return round(value, 2)


def settle(entries: Sequence[PlayerEntry], ruleset: Ruleset) -> tuple[SettlementResult, ...]:
    """Rank one finished table and compute each player's point delta.

    Equal raw scores form a tie group that shares the best rank of the block
    and splits the uma of every rank it occupies (and the oka, when the block
    holds first place) evenly. Results are returned in input order.
    """
    player_count = ruleset.player_count
    if len(entries) != player_count:
        raise SettlementInputError(f"expected {player_count} entries, got {len(entries)}")
    for entry in entries:
        if isinstance(entry.raw_score, bool) or not isinstance(entry.raw_score, int):
            raise SettlementInputError(f"raw score of {entry.name!r} must be an integer")

    ordered = sorted(enumerate(entries), key=lambda item: item[1].raw_score, reverse=True)
    oka_pool = ruleset.oka_pool

    results: list[SettlementResult | None] = [None] * player_count
    rank_start = 1
    for _, grouped in groupby(ordered, key=lambda item: item[1].raw_score):
        group = list(grouped)
        size = len(group)
        average_uma = sum(ruleset.uma[rank_start - 1 : rank_start - 1 + size]) / size
        average_oka = oka_pool / size if rank_start == 1 else 0.0

        for index, entry in group:
            base_point = (entry.raw_score - ruleset.return_points) / 1000
            results[index] = SettlementResult(rank=rank_start, point=base_point + average_uma + average_oka)

        rank_start += size

    return tuple(results)  # type: ignore[arg-type]


def check_score_balance(raw_scores: Iterable[int], ruleset: Ruleset) -> None:
    actual = sum(raw_scores)
    expected = ruleset.expected_total_score
    if actual != expected:
        raise ScoreBalanceError(expected=expected, actual=actual)


def check_point_balance(points: Iterable[float], tolerance: float = POINT_EPSILON) -> None:
    total = sum(points)
    if not math.isfinite(total) or abs(total) > tolerance:
        raise PointBalanceError(total)


def settle_table(entries: Sequence[PlayerEntry], ruleset: Ruleset) -> tuple[SettlementResult, ...]:
    """Balance-check the raw scores, settle, and re-check the zero sum."""
    for entry in entries:
        if not entry.name.strip():
            raise DomainValidationError("player name must be non-empty")
    check_score_balance((entry.raw_score for entry in entries), ruleset)

    results = settle(entries, ruleset)
    check_point_balance((result.point for result in results), tolerance=SETTLEMENT_EPSILON)
    return results


def validate_seats(seats: Sequence[SeatEntry], ruleset: Ruleset) -> list[SeatEntry]:
    if len(seats) != ruleset.player_count:
        raise DomainValidationError(f"{ruleset.player_count} seats required, got {len(seats)}")

    normalized: list[SeatEntry] = []
    seen_users: set[str] = set()
    for position, seat in enumerate(seats, start=1):
        if not 1 <= len(seat.members) <= MAX_SEAT_MEMBERS:
            raise DomainValidationError(f"seat {position} needs 1 to {MAX_SEAT_MEMBERS} players")
        if seat.raw_score is None:
            raise DomainValidationError(f"seat {position} has no raw score")
        if not math.isfinite(seat.bonus_points):
            raise DomainValidationError(f"seat {position} bonus points must be a finite number")

        members = []
        for member in seat.members:
            name = member.name.strip()
            if not name:
                raise DomainValidationError("player name must be non-empty")
            if member.user_id is not None:
                if member.user_id in seen_users:
                    raise DomainValidationError(f"user {member.user_id} is seated twice")
                seen_users.add(member.user_id)
            members.append(SeatMember(name=name, user_id=member.user_id))

        normalized.append(SeatEntry(raw_score=seat.raw_score, members=tuple(members), bonus_points=seat.bonus_points))
    return normalized


def prepare_game(seats: Sequence[SeatEntry], ruleset: Ruleset) -> GameSettlement:
    """Validate a submitted table and build the per-player rows to store.

    A seat may be shared by two players, who split its point and bonus.
    Bonus points are added after settlement and must net to zero across the
    table, so the final check runs on the per-member points before rounding.
    """
    seats = validate_seats(seats, ruleset)
    entries = [
        PlayerEntry(name=" / ".join(member.name for member in seat.members), raw_score=seat.raw_score)
        for seat in seats
    ]
    seat_results = settle_table(entries, ruleset)

    results: list[PlayerResult] = []
    exact_points: list[float] = []
    for seat_index, (seat, outcome) in enumerate(zip(seats, seat_results, strict=True), start=1):
        member_count = len(seat.members)
        split_bonus = seat.bonus_points / member_count
        member_point = outcome.point / member_count + split_bonus
        exact_points.extend([member_point] * member_count)
        for member in seat.members:
            results.append(
                PlayerResult(
                    seat_index=seat_index,
                    player_name=member.name,
                    user_id=member.user_id,
                    rank=outcome.rank,
                    raw_score=seat.raw_score,
                    point=round2(member_point),
                    bonus_points=round2(split_bonus),
                )
            )

    check_point_balance(exact_points)
    return GameSettlement(ruleset=ruleset, seats=seat_results, results=tuple(results))
