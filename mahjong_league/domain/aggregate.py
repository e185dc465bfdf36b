"""Per-player statistics folded from settled results and rollup snapshots."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeVar

from .settlement import round2

RANK_EPSILON = 1e-6
MAX_ROLLUP_RANKS = 4
PODIUM_SIZE = 3

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ResultRow:
    game_id: int
    rank: int
    point: float
    raw_score: int
    played_at: datetime | None = None
    user_id: str | None = None
    player_name: str = ""


@dataclass(frozen=True, slots=True)
class RollupSnapshot:
    game_count: int = 0
    total_points: float = 0.0
    rank_counts: tuple[int, ...] = (0,) * MAX_ROLLUP_RANKS
    best_raw_score: int | None = None
    low_raw_score: int | None = None

    @classmethod
    def from_row(cls, row: Any) -> RollupSnapshot:
        return cls(
            game_count=int(row.rolled_game_count or 0),
            total_points=float(row.rolled_total_points or 0.0),
            rank_counts=tuple(
                int(getattr(row, f"rolled_rank{rank}_count") or 0) for rank in range(1, MAX_ROLLUP_RANKS + 1)
            ),
            best_raw_score=row.rolled_best_raw_score,
            low_raw_score=row.rolled_low_raw_score,
        )


def _max_optional(current: int | None, value: int | None) -> int | None:
    if current is None:
        return value
    if value is None:
        return current
    return max(current, value)


def _min_optional(current: int | None, value: int | None) -> int | None:
    if current is None:
        return value
    if value is None:
        return current
    return min(current, value)


@dataclass(slots=True)
class PlayerAggregate:
    rank_limit: int = 4
    total_points: float = 0.0
    game_count: int = 0
    rank_sum: int = 0
    rank_counts: list[int] = field(default_factory=list)
    best_raw_score: int | None = None
    low_raw_score: int | None = None

    def __post_init__(self) -> None:
        if not self.rank_counts:
            self.rank_counts = [0] * self.rank_limit

    @classmethod
    def from_rollup(cls, snapshot: RollupSnapshot | None, rank_limit: int = 4) -> PlayerAggregate:
        aggregate = cls(rank_limit=rank_limit)
        if snapshot is not None:
            aggregate.add_rollup(snapshot)
        return aggregate

    def add(self, rank: int, point: float, raw_score: int | None) -> None:
        self.total_points += point
        self.game_count += 1
        self.rank_sum += rank
        if 1 <= rank <= self.rank_limit:
            self.rank_counts[rank - 1] += 1
        self.best_raw_score = _max_optional(self.best_raw_score, raw_score)
        self.low_raw_score = _min_optional(self.low_raw_score, raw_score)

    def add_rollup(self, snapshot: RollupSnapshot) -> None:
        counts = snapshot.rank_counts[: self.rank_limit]
        self.total_points += snapshot.total_points
        self.game_count += snapshot.game_count
        self.rank_sum += sum(count * rank for rank, count in enumerate(counts, start=1))
        for index, count in enumerate(counts):
            self.rank_counts[index] += count
        self.best_raw_score = _max_optional(self.best_raw_score, snapshot.best_raw_score)
        self.low_raw_score = _min_optional(self.low_raw_score, snapshot.low_raw_score)

    def add_rows(self, rows: Iterable[ResultRow]) -> PlayerAggregate:
        for row in rows:
            self.add(row.rank, row.point, row.raw_score)
        return self

    @property
    def last_place_count(self) -> int:
        return self.rank_counts[self.rank_limit - 1]

    @property
    def average_rank(self) -> float:
        return self.rank_sum / self.game_count if self.game_count else 0.0

    @property
    def rentai_rate(self) -> float:
        """Percentage of games finished in first or second place."""
        if not self.game_count:
            return 0.0
        return sum(self.rank_counts[:2]) / self.game_count * 100

    @property
    def avoid_rate(self) -> float | None:
        if not self.game_count:
            return None
        return 1 - self.last_place_count / self.game_count

    def as_dict(self) -> dict[str, object]:
        return {
            "game_count": self.game_count,
            "total_points": round2(self.total_points),
            "average_rank": round2(self.average_rank),
            "rentai_rate": round2(self.rentai_rate),
            "rank_counts": list(self.rank_counts),
            "best_raw_score": self.best_raw_score,
            "low_raw_score": self.low_raw_score,
        }


def add_rank_labels(
    items: Sequence[T],
    key: Callable[[T], float],
    epsilon: float = RANK_EPSILON,
) -> list[tuple[int, T]]:
    """Label items already sorted best-first with standard competition ranks.

    Items whose values differ by less than ``epsilon`` share the label of the
    first of them; the next distinct value takes its own position (1, 2, 2, 4).
    """
    labelled: list[tuple[int, T]] = []
    last_value: float | None = None
    last_label = 0
    for position, item in enumerate(items, start=1):
        value = key(item)
        if last_value is None or abs(value - last_value) >= epsilon:
            last_label = position
            last_value = value
        labelled.append((last_label, item))
    return labelled


@dataclass(frozen=True, slots=True)
class HistoryPoint:
    game_number: int
    points: float
    played_at: datetime | None


def points_history(rows: Iterable[ResultRow], snapshot: RollupSnapshot | None = None) -> list[HistoryPoint]:
    """Cumulative points per game, continuing from the rolled-up history."""
    base_points = snapshot.total_points if snapshot else 0.0
    base_games = snapshot.game_count if snapshot else 0

    ordered = sorted(rows, key=lambda row: (row.played_at.timestamp() if row.played_at else 0.0, row.game_id))
    history: list[HistoryPoint] = []
    cumulative = base_points
    for index, row in enumerate(ordered, start=1):
        cumulative += row.point
        history.append(HistoryPoint(game_number=base_games + index, points=round2(cumulative), played_at=row.played_at))
    return history


@dataclass(slots=True)
class Standing:
    user_id: str
    name: str
    aggregate: PlayerAggregate
    rank_label: int | None = None


@dataclass(slots=True)
class LeagueRanking:
    standings: list[Standing]
    unplayed: list[Standing]
    best_scores: list[tuple[int, Standing]]
    avoid_last: list[tuple[int, Standing]]


def league_ranking(
    rows: Iterable[ResultRow],
    rollups: Mapping[str, RollupSnapshot],
    members: Mapping[str, str],
    rank_limit: int = 4,
) -> LeagueRanking:
    """Build the leaderboard of one league.

    ``rows`` are the league's un-rolled results, ``rollups`` the rolled-up
    snapshot per user and ``members`` maps user ids to display names. Rows of
    players without an account do not count towards any standing.
    """
    players: dict[str, Standing] = {}

    def standing_for(user_id: str, name: str | None = None) -> Standing:
        if user_id not in players:
            players[user_id] = Standing(
                user_id=user_id,
                name=name or members.get(user_id) or "Unknown",
                aggregate=PlayerAggregate(rank_limit=rank_limit),
            )
        return players[user_id]

    for row in rows:
        if not row.user_id:
            continue
        standing_for(row.user_id, row.player_name).aggregate.add(row.rank, row.point, row.raw_score)

    for user_id, snapshot in rollups.items():
        standing_for(user_id).aggregate.add_rollup(snapshot)

    for user_id, name in members.items():
        standing = standing_for(user_id, name)
        if standing.name == "Unknown":
            standing.name = name

    played = sorted(
        (standing for standing in players.values() if standing.aggregate.game_count > 0),
        key=lambda standing: standing.aggregate.total_points,
        reverse=True,
    )
    for label, standing in add_rank_labels(played, lambda standing: standing.aggregate.total_points):
        standing.rank_label = label

    unplayed = sorted(
        (standing for standing in players.values() if standing.aggregate.game_count == 0),
        key=lambda standing: standing.name,
    )

    with_best = sorted(
        (standing for standing in played if standing.aggregate.best_raw_score is not None),
        key=lambda standing: standing.aggregate.best_raw_score,
        reverse=True,
    )
    best_scores = [
        (label, standing)
        for label, standing in add_rank_labels(with_best, lambda standing: standing.aggregate.best_raw_score)
        if label <= PODIUM_SIZE
    ]

    by_avoid = sorted(played, key=lambda standing: standing.aggregate.avoid_rate, reverse=True)
    avoid_last = [
        (label, standing)
        for label, standing in add_rank_labels(by_avoid, lambda standing: standing.aggregate.avoid_rate)
        if label <= PODIUM_SIZE
    ]

    return LeagueRanking(standings=played, unplayed=unplayed, best_scores=best_scores, avoid_last=avoid_last)


@dataclass(slots=True)
class SessionTotal:
    name: str
    user_id: str | None
    total: float


def session_totals(games: Iterable[Iterable[ResultRow]]) -> list[SessionTotal]:
    """Sum points per player over the games of one sitting, best first."""
    totals: dict[str, SessionTotal] = {}
    for results in games:
        for row in results:
            key = row.user_id or row.player_name
            if key not in totals:
                totals[key] = SessionTotal(name=row.player_name, user_id=row.user_id, total=0.0)
            totals[key].total += row.point

    for total in totals.values():
        total.total = round2(total.total)
    return sorted(totals.values(), key=lambda total: total.total, reverse=True)
