from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from mahjong_league.domain import (
    EntityConflictError,
    EntityNotFoundError,
    GameSettlement,
    GameType,
    Ruleset,
    SeatEntry,
    prepare_game,
    resolve_ruleset,
)
from mahjong_league.storage.repository import MahjongRepository

logger = logging.getLogger(__name__)


class GameService:
    def __init__(self, repo: MahjongRepository, rollup_keep: int = 30) -> None:
        self.repo = repo
        self.rollup_keep = rollup_keep

    def resolve_ruleset(
        self,
        game_type: GameType,
        league_id: int | None = None,
        rule_id: int | None = None,
    ) -> Ruleset:
        league = None
        if league_id is not None:
            league = self.repo.get_league(league_id)
            if league is None:
                raise EntityNotFoundError("league", league_id)
        rule = None
        if rule_id is not None:
            rule = self.repo.get_rule(rule_id)
            if rule is None:
                raise EntityNotFoundError("rule", rule_id)
        return resolve_ruleset(game_type, league=league, rule=rule)

    def preview(
        self,
        game_type: GameType,
        seats: Sequence[SeatEntry],
        league_id: int | None = None,
        rule_id: int | None = None,
    ) -> GameSettlement:
        ruleset = self.resolve_ruleset(game_type, league_id=league_id, rule_id=rule_id)
        return prepare_game(seats, ruleset)

    def record_game(
        self,
        game_type: GameType,
        seats: Sequence[SeatEntry],
        created_by: str,
        league_id: int | None = None,
        rule_id: int | None = None,
        played_at: datetime | None = None,
    ) -> tuple[int, GameSettlement]:
        settlement = self.preview(game_type, seats, league_id=league_id, rule_id=rule_id)
        game_id = self.repo.save_game(
            settlement,
            game_type=game_type,
            league_id=league_id,
            created_by=created_by,
            played_at=played_at,
        )

        user_ids = {result.user_id for result in settlement.results if result.user_id}
        for user_id in sorted(user_ids):
            try:
                self.repo.rollup_and_prune(user_id, keep=self.rollup_keep)
            except SQLAlchemyError:
                # the game is stored; a failed rollup is retried on the next save
                logger.exception("rollup failed for user %s after game %s", user_id, game_id)

        logger.info("recorded %s game %s (league %s)", game_type.value, game_id, league_id)
        return game_id, settlement

    def get_game(self, game_id: int):
        game = self.repo.get_game(game_id)
        if game is None:
            raise EntityNotFoundError("game", game_id)
        return game

    def list_games(self, user_id: str | None = None, league_id: int | None = None, limit: int = 50):
        return self.repo.list_games(user_id=user_id, league_id=league_id, limit=limit)

    def delete_game(self, game_id: int) -> None:
        """Delete a game whose results are all still detail rows.

        Rows already folded into a rollup cannot be taken back out of it
        (best and lowest raw scores are not reversible), so such a game is
        kept and the caller gets a conflict.
        """
        game = self.get_game(game_id)
        rolled = sorted({result.user_id for result in game.results if result.rolled_up and result.user_id})
        if rolled:
            raise EntityConflictError(
                "game_rolled_up",
                f"game {game_id} is already part of rolled-up statistics",
                {"id": game_id, "user_ids": rolled},
            )
        self.repo.delete_game(game)
