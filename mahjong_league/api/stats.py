from fastapi import APIRouter, Depends

from mahjong_league.api.dependencies import get_stats_service
from mahjong_league.api.errors import domain_error
from mahjong_league.api.schemas import SessionTotalsRequest
from mahjong_league.domain import DomainValidationError
from mahjong_league.services.stats_service import StatsService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("/player/{user_id}")
def player_stats(user_id: str, stats: StatsService = Depends(get_stats_service)) -> dict:
    return stats.player_stats(user_id)


@router.post("/session")
def session_totals(payload: SessionTotalsRequest, stats: StatsService = Depends(get_stats_service)) -> dict:
    try:
        totals = stats.session_totals(payload.game_ids)
    except DomainValidationError as exc:
        raise domain_error(exc) from exc
    return {
        "game_ids": list(dict.fromkeys(payload.game_ids)),
        "totals": [{"name": total.name, "user_id": total.user_id, "total": total.total} for total in totals],
    }
