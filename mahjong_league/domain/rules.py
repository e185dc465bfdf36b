from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .errors import DomainValidationError

DEFAULT_STARTING_POINTS = 25000
DEFAULT_RETURN_POINTS = 30000
# substituted when a four-player rule row leaves the last uma slot empty
DEFAULT_FOURTH_UMA = -30


class GameType(str, Enum):
    FOUR_PLAYER = "four_player"
    THREE_PLAYER = "three_player"

    @property
    def player_count(self) -> int:
        return 4 if self is GameType.FOUR_PLAYER else 3


DEFAULT_UMA: dict[GameType, tuple[int, ...]] = {
    GameType.FOUR_PLAYER: (30, 10, -10, -30),
    GameType.THREE_PLAYER: (30, 0, -30),
}


@dataclass(frozen=True, slots=True)
class Ruleset:
    game_type: GameType
    uma: tuple[int, ...]
    oka: float = 0
    starting_points: int = DEFAULT_STARTING_POINTS
    return_points: int = DEFAULT_RETURN_POINTS
    rule_id: int | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        try:
            game_type = GameType(self.game_type)
        except ValueError as exc:
            raise DomainValidationError(f"unknown game type: {self.game_type}") from exc
        object.__setattr__(self, "game_type", game_type)
        object.__setattr__(self, "uma", tuple(int(value) for value in self.uma))

        if len(self.uma) < game_type.player_count:
            raise DomainValidationError(
                f"uma table needs {game_type.player_count} entries, got {len(self.uma)}"
            )
        if self.starting_points <= 0:
            raise DomainValidationError("starting_points must be positive")
        if self.return_points <= 0:
            raise DomainValidationError("return_points must be positive")

    @property
    def player_count(self) -> int:
        return self.game_type.player_count

    @property
    def oka_pool(self) -> float:
        """Pot for the top finisher, in point units."""
        return (self.return_points - self.starting_points) * self.player_count / 1000

    @property
    def expected_total_score(self) -> int:
        return self.starting_points * self.player_count

    @classmethod
    def default(cls, game_type: GameType | str) -> Ruleset:
        game_type = GameType(game_type)
        return cls(game_type=game_type, uma=DEFAULT_UMA[game_type])


def uma_from_row(row: Any, game_type: GameType) -> tuple[int, ...]:
    """Read the ``uma_first`` .. ``uma_fourth`` columns of a rule or league row."""
    uma = [row.uma_first, row.uma_second, row.uma_third]
    if game_type is GameType.FOUR_PLAYER:
        uma.append(row.uma_fourth if row.uma_fourth is not None else DEFAULT_FOURTH_UMA)
    return tuple(uma)


def resolve_ruleset(game_type: GameType | str, *, league: Any = None, rule: Any = None) -> Ruleset:
    """Pick the ruleset a game is settled with.

    An explicitly chosen rule wins, then the league's rule, then the league's
    own uma and baselines. A game outside any league without a rule falls
    back to the defaults for its game type. Oka always comes from the league.
    """
    game_type = GameType(game_type)
    if league is not None and GameType(league.game_type) is not game_type:
        raise DomainValidationError(
            f"league plays {league.game_type}, game is {game_type.value}"
        )

    oka = float(league.oka or 0) if league is not None else 0.0
    source = rule if rule is not None else getattr(league, "rule", None)

    if source is not None:
        if GameType(source.game_type) is not game_type:
            raise DomainValidationError(
                f"rule {source.name!r} is for {source.game_type}, game is {game_type.value}"
            )
        return Ruleset(
            game_type=game_type,
            uma=uma_from_row(source, game_type),
            oka=oka,
            starting_points=source.starting_points,
            return_points=source.return_points,
            rule_id=source.id,
            name=source.name,
        )

    if league is not None:
        return Ruleset(
            game_type=game_type,
            uma=uma_from_row(league, game_type),
            oka=oka,
            starting_points=league.starting_points,
            return_points=league.return_points,
        )

    return Ruleset.default(game_type)


def check_uma_balance(uma: tuple[int, ...] | list[int]) -> None:
    """Reject an uma table that would keep every settled game from summing to zero."""
    if sum(uma) != 0:
        raise DomainValidationError(f"uma must sum to zero, got {sum(uma)}")
