from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from mahjong_league.domain import GameSettlement, GameType, ResultRow, RollupSnapshot
from mahjong_league.storage.models import (
    Game,
    GameResult,
    League,
    LeagueMember,
    LeagueUserGameRollup,
    Rule,
    UserGameRollup,
)

logger = logging.getLogger(__name__)


def _result_row(result: GameResult, game: Game) -> ResultRow:
    return ResultRow(
        game_id=game.id,
        rank=result.rank,
        point=float(result.point),
        raw_score=result.raw_score,
        played_at=game.played_at,
        user_id=result.user_id,
        player_name=result.player_name,
    )


def _fold_into_rollup(rollup: UserGameRollup | LeagueUserGameRollup, result: GameResult) -> None:
    rollup.rolled_game_count += 1
    rollup.rolled_total_points += float(result.point)
    if 1 <= result.rank <= 4:
        column = f"rolled_rank{result.rank}_count"
        setattr(rollup, column, getattr(rollup, column) + 1)
    if rollup.rolled_best_raw_score is None or result.raw_score > rollup.rolled_best_raw_score:
        rollup.rolled_best_raw_score = result.raw_score
    if rollup.rolled_low_raw_score is None or result.raw_score < rollup.rolled_low_raw_score:
        rollup.rolled_low_raw_score = result.raw_score


def _empty_rollup_values() -> dict[str, object]:
    return {
        "rolled_game_count": 0,
        "rolled_total_points": 0.0,
        "rolled_rank1_count": 0,
        "rolled_rank2_count": 0,
        "rolled_rank3_count": 0,
        "rolled_rank4_count": 0,
        "rolled_best_raw_score": None,
        "rolled_low_raw_score": None,
    }


class MahjongRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    # rules

    def create_rule(self, **values: object) -> Rule:
        rule = Rule(**values)
        self.db.add(rule)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def get_rule(self, rule_id: int) -> Rule | None:
        return self.db.get(Rule, rule_id)

    def list_rules(self, game_type: GameType | None = None) -> list[Rule]:
        query = select(Rule).order_by(Rule.id)
        if game_type is not None:
            query = query.where(Rule.game_type == game_type.value)
        return list(self.db.scalars(query).all())

    def update_rule(self, rule: Rule, **values: object) -> Rule:
        for key, value in values.items():
            setattr(rule, key, value)
        self.db.commit()
        self.db.refresh(rule)
        return rule

    def leagues_using_rule(self, rule_id: int) -> list[int]:
        return list(self.db.scalars(select(League.id).where(League.rule_id == rule_id).order_by(League.id)).all())

    def delete_rule(self, rule: Rule) -> None:
        self.db.delete(rule)
        self.db.commit()

    # leagues

    def create_league(self, **values: object) -> League:
        league = League(**values)
        self.db.add(league)
        self.db.commit()
        self.db.refresh(league)
        return league

    def get_league(self, league_id: int) -> League | None:
        return self.db.get(League, league_id)

    def add_member(self, league_id: int, user_id: str, display_name: str) -> LeagueMember:
        member = self.db.scalars(
            select(LeagueMember).where(LeagueMember.league_id == league_id, LeagueMember.user_id == user_id)
        ).first()
        if member is None:
            member = LeagueMember(league_id=league_id, user_id=user_id, display_name=display_name)
            self.db.add(member)
        else:
            member.display_name = display_name
        self.db.commit()
        self.db.refresh(member)
        return member

    def list_leagues(self, user_id: str | None = None) -> list[League]:
        query = select(League).order_by(League.id)
        if user_id is not None:
            member_of = select(LeagueMember.league_id).where(LeagueMember.user_id == user_id)
            query = query.where((League.owner_id == user_id) | League.id.in_(member_of))
        return list(self.db.scalars(query).all())

    def update_league(self, league: League, **values: object) -> League:
        for key, value in values.items():
            setattr(league, key, value)
        self.db.commit()
        self.db.refresh(league)
        return league

    def delete_league(self, league: League) -> int:
        """Delete a league, its members and rollups; its games stay as free games.

        Returns the number of games detached from the league.
        """
        league_id = league.id
        games = self.db.scalars(select(Game).where(Game.league_id == league_id)).all()
        for game in games:
            game.league_id = None
        for rollup in self.db.scalars(
            select(LeagueUserGameRollup).where(LeagueUserGameRollup.league_id == league_id)
        ).all():
            self.db.delete(rollup)
        self.db.delete(league)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info("deleted league %s, detached %d games", league_id, len(games))
        return len(games)

    def remove_member(self, league_id: int, user_id: str) -> bool:
        member = self.db.scalars(
            select(LeagueMember).where(LeagueMember.league_id == league_id, LeagueMember.user_id == user_id)
        ).first()
        if member is None:
            return False
        self.db.delete(member)
        self.db.commit()
        return True

    def league_members(self, league_id: int) -> dict[str, str]:
        rows = self.db.scalars(
            select(LeagueMember).where(LeagueMember.league_id == league_id).order_by(LeagueMember.id)
        ).all()
        return {row.user_id: row.display_name for row in rows}

    # games

    def save_game(
        self,
        settlement: GameSettlement,
        *,
        game_type: GameType,
        league_id: int | None,
        created_by: str,
        played_at: datetime | None = None,
    ) -> int:
        """Store a settled game and its result rows in one transaction."""
        ruleset = settlement.ruleset
        uma = list(ruleset.uma) + [None] * (4 - len(ruleset.uma))
        game = Game(
            game_type=game_type.value,
            league_id=league_id,
            created_by=created_by,
            played_at=played_at or datetime.now(timezone.utc).replace(tzinfo=None),
            applied_rule_id=ruleset.rule_id,
            applied_rule_name=ruleset.name,
            applied_starting_points=ruleset.starting_points,
            applied_return_points=ruleset.return_points,
            applied_oka=float(ruleset.oka),
            applied_uma_first=uma[0],
            applied_uma_second=uma[1],
            applied_uma_third=uma[2],
            applied_uma_fourth=uma[3] if game_type is GameType.FOUR_PLAYER else None,
        )
        game.results = [
            GameResult(
                user_id=result.user_id,
                player_name=result.player_name,
                seat_index=result.seat_index,
                rank=result.rank,
                raw_score=result.raw_score,
                point=result.point,
                bonus_points=result.bonus_points,
                rolled_up=False,
            )
            for result in settlement.results
        ]
        self.db.add(game)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info("saved game %s with %d results", game.id, len(settlement.results))
        return game.id

    def get_game(self, game_id: int) -> Game | None:
        return self.db.scalars(
            select(Game).options(selectinload(Game.results)).where(Game.id == game_id)
        ).first()

    def list_games(
        self,
        user_id: str | None = None,
        league_id: int | None = None,
        limit: int = 50,
    ) -> list[Game]:
        """Newest games first, with their complete result rows."""
        query = (
            select(Game)
            .options(selectinload(Game.results))
            .order_by(Game.played_at.desc(), Game.id.desc())
            .limit(limit)
        )
        if user_id is not None:
            query = query.where(Game.id.in_(select(GameResult.game_id).where(GameResult.user_id == user_id)))
        if league_id is not None:
            query = query.where(Game.league_id == league_id)
        return list(self.db.scalars(query).all())

    def delete_game(self, game: Game) -> None:
        game_id = game.id
        self.db.delete(game)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.info("deleted game %s", game_id)

    def game_results(self, game_ids: Sequence[int]) -> dict[int, list[ResultRow]]:
        rows = self.db.execute(
            select(GameResult, Game)
            .join(Game, Game.id == GameResult.game_id)
            .where(Game.id.in_(list(game_ids)))
            .order_by(GameResult.game_id, GameResult.seat_index, GameResult.id)
        ).all()
        grouped: dict[int, list[ResultRow]] = {}
        for result, game in rows:
            grouped.setdefault(game.id, []).append(_result_row(result, game))
        return grouped

    def user_results(self, user_id: str, game_type: GameType | None = None) -> list[ResultRow]:
        query = (
            select(GameResult, Game)
            .join(Game, Game.id == GameResult.game_id)
            .where(GameResult.user_id == user_id, GameResult.rolled_up.is_(False))
            .order_by(Game.played_at, Game.id)
        )
        if game_type is not None:
            query = query.where(Game.game_type == game_type.value)
        return [_result_row(result, game) for result, game in self.db.execute(query).all()]

    def user_rollups(self, user_id: str) -> dict[GameType, RollupSnapshot]:
        rows = self.db.scalars(select(UserGameRollup).where(UserGameRollup.user_id == user_id)).all()
        return {GameType(row.game_type): RollupSnapshot.from_row(row) for row in rows}

    def league_results(self, league_id: int) -> list[ResultRow]:
        rows = self.db.execute(
            select(GameResult, Game)
            .join(Game, Game.id == GameResult.game_id)
            .where(Game.league_id == league_id, GameResult.rolled_up.is_(False))
            .order_by(Game.played_at, Game.id)
        ).all()
        return [_result_row(result, game) for result, game in rows]

    def league_rollups(self, league_id: int) -> dict[str, RollupSnapshot]:
        rows = self.db.scalars(
            select(LeagueUserGameRollup).where(LeagueUserGameRollup.league_id == league_id)
        ).all()
        return {row.user_id: RollupSnapshot.from_row(row) for row in rows}

    # rollups

    def _user_rollup(self, user_id: str, game_type: GameType) -> UserGameRollup:
        rollup = self.db.scalars(
            select(UserGameRollup).where(
                UserGameRollup.user_id == user_id, UserGameRollup.game_type == game_type.value
            )
        ).first()
        if rollup is None:
            rollup = UserGameRollup(user_id=user_id, game_type=game_type.value, **_empty_rollup_values())
            self.db.add(rollup)
        return rollup

    def _league_rollup(self, league_id: int, user_id: str) -> LeagueUserGameRollup:
        rollup = self.db.scalars(
            select(LeagueUserGameRollup).where(
                LeagueUserGameRollup.league_id == league_id, LeagueUserGameRollup.user_id == user_id
            )
        ).first()
        if rollup is None:
            rollup = LeagueUserGameRollup(league_id=league_id, user_id=user_id, **_empty_rollup_values())
            self.db.add(rollup)
        return rollup

    def rollup_and_prune(self, user_id: str, keep: int) -> int:
        """Fold a user's results beyond the newest ``keep`` games into rollup rows.

        Folded rows are flagged ``rolled_up`` and skipped by the detail
        readers, so rollup plus remaining rows still equal the full history.
        Returns the number of rows folded.
        """
        if keep < 1:
            raise ValueError(f"keep must be at least 1, got {keep}")
        folded = 0
        for game_type in GameType:
            rows = self.db.execute(
                select(GameResult, Game)
                .join(Game, Game.id == GameResult.game_id)
                .where(
                    GameResult.user_id == user_id,
                    GameResult.rolled_up.is_(False),
                    Game.game_type == game_type.value,
                )
                .order_by(Game.played_at.desc(), Game.id.desc())
            ).all()
            stale = rows[keep:]
            if not stale:
                continue

            user_rollup = self._user_rollup(user_id, game_type)
            for result, game in stale:
                _fold_into_rollup(user_rollup, result)
                if game.league_id is not None:
                    league_rollup = self._league_rollup(game.league_id, user_id)
                    _fold_into_rollup(league_rollup, result)
                    # later lookups in this loop must find the pending row
                    self.db.flush()
                result.rolled_up = True
                folded += 1

        if folded:
            try:
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise
            logger.info("rolled up %d results for user %s", folded, user_id)
        return folded
