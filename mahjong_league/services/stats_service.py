from __future__ import annotations

from collections.abc import Sequence

from mahjong_league.domain import (
    EntityNotFoundError,
    GameType,
    LeagueRanking,
    PlayerAggregate,
    SessionTotal,
    league_ranking,
    points_history,
    session_totals,
)
from mahjong_league.storage.repository import MahjongRepository


class StatsService:
    """Read-side aggregation over stored results and rollup snapshots."""

    def __init__(self, repo: MahjongRepository) -> None:
        self.repo = repo

    def player_stats(self, user_id: str) -> dict[str, object]:
        rollups = self.repo.user_rollups(user_id)
        stats: dict[str, object] = {}
        for game_type in GameType:
            rows = self.repo.user_results(user_id, game_type=game_type)
            snapshot = rollups.get(game_type)
            aggregate = PlayerAggregate.from_rollup(snapshot, rank_limit=game_type.player_count).add_rows(rows)
            stats[game_type.value] = {
                **aggregate.as_dict(),
                "history": [
                    {
                        "game": point.game_number,
                        "points": point.points,
                        "played_at": point.played_at.isoformat() if point.played_at else None,
                    }
                    for point in points_history(rows, snapshot)
                ],
            }
        return {"user_id": user_id, "stats": stats}

    def league_ranking(self, league_id: int) -> LeagueRanking:
        league = self.repo.get_league(league_id)
        if league is None:
            raise EntityNotFoundError("league", league_id)

        members = self.repo.league_members(league_id)
        # the owner always appears on the board
        members.setdefault(league.owner_id, league.owner_id)
        return league_ranking(
            self.repo.league_results(league_id),
            self.repo.league_rollups(league_id),
            members,
            rank_limit=GameType(league.game_type).player_count,
        )

    def session_totals(self, game_ids: Sequence[int]) -> list[SessionTotal]:
        # a game listed twice still counts once
        game_ids = list(dict.fromkeys(game_ids))
        results = self.repo.game_results(game_ids)
        missing = [game_id for game_id in game_ids if game_id not in results]
        if missing:
            raise EntityNotFoundError("game", missing[0])
        return session_totals(results[game_id] for game_id in game_ids)
