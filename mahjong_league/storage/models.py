from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mahjong_league.storage.database import Base


class Rule(Base):
    __tablename__ = "rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    game_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    starting_points: Mapped[int] = mapped_column(Integer, nullable=False, default=25000)
    return_points: Mapped[int] = mapped_column(Integer, nullable=False, default=30000)
    uma_first: Mapped[int] = mapped_column(Integer, nullable=False)
    uma_second: Mapped[int] = mapped_column(Integer, nullable=False)
    uma_third: Mapped[int] = mapped_column(Integer, nullable=False)
    uma_fourth: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class League(Base):
    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    game_type: Mapped[str] = mapped_column(String(32), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    rule_id: Mapped[int | None] = mapped_column(ForeignKey("rules.id"), nullable=True)
    uma_first: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    uma_second: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    uma_third: Mapped[int] = mapped_column(Integer, nullable=False, default=-10)
    uma_fourth: Mapped[int | None] = mapped_column(Integer, nullable=True, default=-30)
    oka: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    starting_points: Mapped[int] = mapped_column(Integer, nullable=False, default=25000)
    return_points: Mapped[int] = mapped_column(Integer, nullable=False, default=30000)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    rule: Mapped[Rule | None] = relationship()
    members: Mapped[list["LeagueMember"]] = relationship(back_populates="league", cascade="all, delete-orphan")


class LeagueMember(Base):
    __tablename__ = "league_members"
    __table_args__ = (UniqueConstraint("league_id", "user_id", name="uq_league_members_league_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    league_id: Mapped[int] = mapped_column(ForeignKey("leagues.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)

    league: Mapped[League] = relationship(back_populates="members")


class Game(Base):
    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    game_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    league_id: Mapped[int | None] = mapped_column(ForeignKey("leagues.id"), nullable=True, index=True)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    played_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # ruleset the game was settled with, kept even if the rule changes later
    applied_rule_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    applied_rule_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    applied_starting_points: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_return_points: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_oka: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    applied_uma_first: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_uma_second: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_uma_third: Mapped[int] = mapped_column(Integer, nullable=False)
    applied_uma_fourth: Mapped[int | None] = mapped_column(Integer, nullable=True)

    results: Mapped[list["GameResult"]] = relationship(
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="GameResult.id",
    )


class GameResult(Base):
    __tablename__ = "game_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False, index=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    player_name: Mapped[str] = mapped_column(String(128), nullable=False)
    seat_index: Mapped[int] = mapped_column(Integer, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    raw_score: Mapped[int] = mapped_column(Integer, nullable=False)
    point: Mapped[float] = mapped_column(Float, nullable=False)
    bonus_points: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    rolled_up: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    game: Mapped[Game] = relationship(back_populates="results")


class RollupColumns:
    rolled_game_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rolled_total_points: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    rolled_rank1_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rolled_rank2_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rolled_rank3_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rolled_rank4_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rolled_best_raw_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rolled_low_raw_score: Mapped[int | None] = mapped_column(Integer, nullable=True)


class UserGameRollup(RollupColumns, Base):
    __tablename__ = "user_game_rollups"
    __table_args__ = (UniqueConstraint("user_id", "game_type", name="uq_user_game_rollups_user_type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    game_type: Mapped[str] = mapped_column(String(32), nullable=False)


class LeagueUserGameRollup(RollupColumns, Base):
    __tablename__ = "league_user_game_rollups"
    __table_args__ = (UniqueConstraint("league_id", "user_id", name="uq_league_rollups_league_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    league_id: Mapped[int] = mapped_column(ForeignKey("leagues.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
