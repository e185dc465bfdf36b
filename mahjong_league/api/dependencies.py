from fastapi import Depends
from sqlalchemy.orm import Session

from mahjong_league.config import settings
from mahjong_league.services.game_service import GameService
from mahjong_league.services.stats_service import StatsService
from mahjong_league.storage.database import get_db
from mahjong_league.storage.repository import MahjongRepository


def get_repository(db: Session = Depends(get_db)) -> MahjongRepository:
    return MahjongRepository(db)


def get_game_service(repo: MahjongRepository = Depends(get_repository)) -> GameService:
    return GameService(repo, rollup_keep=settings.rollup_keep)


def get_stats_service(repo: MahjongRepository = Depends(get_repository)) -> StatsService:
    return StatsService(repo)
