from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from mahjong_league.api.dependencies import get_game_service, get_repository, get_stats_service
from mahjong_league.api.errors import api_error, domain_error
from mahjong_league.api.schemas import (
    LeagueCreateRequest,
    LeagueMemberRequest,
    LeagueResponse,
    LeagueUpdateRequest,
    RulesetResponse,
)
from mahjong_league.domain import (
    DomainValidationError,
    EntityNotFoundError,
    GameType,
    Standing,
    check_uma_balance,
    resolve_ruleset,
)
from mahjong_league.domain.rules import uma_from_row
from mahjong_league.services.game_service import GameService
from mahjong_league.services.stats_service import StatsService
from mahjong_league.storage.models import League
from mahjong_league.storage.repository import MahjongRepository

router = APIRouter(prefix="/leagues", tags=["leagues"])


def _league_response(league: League) -> LeagueResponse:
    ruleset = resolve_ruleset(league.game_type, league=league)
    return LeagueResponse(
        id=league.id,
        name=league.name,
        description=league.description,
        game_type=GameType(league.game_type),
        owner_id=league.owner_id,
        rule_id=league.rule_id,
        ruleset=RulesetResponse.from_ruleset(ruleset),
    )


def _standing(standing: Standing, rank: int | None = None) -> dict:
    aggregate = standing.aggregate
    return {
        "rank": rank if rank is not None else standing.rank_label,
        "user_id": standing.user_id,
        "name": standing.name,
        "total_points": round(aggregate.total_points, 2),
        "game_count": aggregate.game_count,
        "average_rank": round(aggregate.average_rank, 2),
        "best_raw_score": aggregate.best_raw_score,
        "avoid_rate": aggregate.avoid_rate,
    }


@router.post("", response_model=LeagueResponse, status_code=status.HTTP_201_CREATED, summary="Create a league")
def create_league(
    payload: LeagueCreateRequest,
    repo: MahjongRepository = Depends(get_repository),
    games: GameService = Depends(get_game_service),
) -> LeagueResponse:
    try:
        # rejects a rule written for the other game type before anything is stored
        games.resolve_ruleset(payload.game_type, rule_id=payload.rule_id)
        if payload.rule_id is None:
            check_uma_balance(uma_from_row(payload, payload.game_type))
    except DomainValidationError as exc:
        raise domain_error(exc) from exc

    values = payload.model_dump(exclude={"owner_name"})
    values["game_type"] = payload.game_type.value
    if payload.game_type is GameType.THREE_PLAYER:
        values["uma_fourth"] = None
    league = repo.create_league(**values)
    repo.add_member(league.id, payload.owner_id, payload.owner_name or payload.owner_id)
    return _league_response(league)


@router.post("/{id}/members", summary="Add a league member")
def add_member(
    id: int,
    payload: LeagueMemberRequest,
    repo: MahjongRepository = Depends(get_repository),
) -> dict:
    if repo.get_league(id) is None:
        raise api_error(
            code="league_not_found",
            message=f"league {id} not found",
            details={"id": id},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    member = repo.add_member(id, payload.user_id, payload.display_name)
    return {"league_id": id, "user_id": member.user_id, "display_name": member.display_name}


@router.get("/{id}/ranking", summary="League leaderboard")
def league_ranking(id: int, stats: StatsService = Depends(get_stats_service)) -> dict:
    try:
        ranking = stats.league_ranking(id)
    except DomainValidationError as exc:
        raise domain_error(exc) from exc

    return {
        "league_id": id,
        "standings": [_standing(standing) for standing in ranking.standings],
        "unplayed": [{"user_id": standing.user_id, "name": standing.name} for standing in ranking.unplayed],
        "best_scores": [_standing(standing, label) for label, standing in ranking.best_scores],
        "avoid_last": [_standing(standing, label) for label, standing in ranking.avoid_last],
    }


def _league_or_404(repo: MahjongRepository, id: int) -> League:
    league = repo.get_league(id)
    if league is None:
        raise domain_error(EntityNotFoundError("league", id))
    return league


@router.get("", response_model=list[LeagueResponse], summary="List leagues")
def list_leagues(
    user_id: str | None = None,
    repo: MahjongRepository = Depends(get_repository),
) -> list[LeagueResponse]:
    return [_league_response(league) for league in repo.list_leagues(user_id)]


@router.patch("/{id}", response_model=LeagueResponse, summary="Rename a league")
def update_league(
    id: int,
    payload: LeagueUpdateRequest,
    repo: MahjongRepository = Depends(get_repository),
) -> LeagueResponse:
    league = _league_or_404(repo, id)
    values = payload.model_dump(exclude_unset=True)
    if "name" in values and values["name"] is None:
        del values["name"]
    return _league_response(repo.update_league(league, **values))


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a league")
def delete_league(id: int, repo: MahjongRepository = Depends(get_repository)) -> Response:
    # the league's games stay in every player's overall statistics
    repo.delete_league(_league_or_404(repo, id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/{id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a league member",
)
def remove_member(id: int, user_id: str, repo: MahjongRepository = Depends(get_repository)) -> Response:
    league = _league_or_404(repo, id)
    if user_id == league.owner_id:
        raise domain_error(DomainValidationError("the league owner cannot be removed"))
    if not repo.remove_member(id, user_id):
        raise api_error(
            code="member_not_found",
            message=f"user {user_id} is not a member of league {id}",
            details={"league_id": id, "user_id": user_id},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
