from .aggregate import (
    HistoryPoint,
    LeagueRanking,
    PlayerAggregate,
    ResultRow,
    RollupSnapshot,
    SessionTotal,
    Standing,
    add_rank_labels,
    league_ranking,
    points_history,
    session_totals,
)
from .errors import (
    DomainValidationError,
    EntityConflictError,
    EntityNotFoundError,
    PointBalanceError,
    ScoreBalanceError,
    SettlementInputError,
)
from .rules import DEFAULT_UMA, GameType, Ruleset, check_uma_balance, resolve_ruleset
from .settlement import (
    GameSettlement,
    PlayerEntry,
    PlayerResult,
    SeatEntry,
    SeatMember,
    SettlementResult,
    check_point_balance,
    check_score_balance,
    prepare_game,
    settle,
    settle_table,
)

__all__ = [
    "DEFAULT_UMA",
    "DomainValidationError",
    "EntityConflictError",
    "EntityNotFoundError",
    "GameSettlement",
    "GameType",
    "HistoryPoint",
    "LeagueRanking",
    "PlayerAggregate",
    "PlayerEntry",
    "PlayerResult",
    "PointBalanceError",
    "ResultRow",
    "RollupSnapshot",
    "Ruleset",
    "ScoreBalanceError",
    "SeatEntry",
    "SeatMember",
    "SessionTotal",
    "SettlementInputError",
    "SettlementResult",
    "Standing",
    "add_rank_labels",
    "check_point_balance",
    "check_score_balance",
    "check_uma_balance",
    "league_ranking",
    "points_history",
    "prepare_game",
    "resolve_ruleset",
    "session_totals",
    "settle",
    "settle_table",
]
